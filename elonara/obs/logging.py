"""JSON logging for the circles service.

Log lines carry the service identity, the bound request/viewer context and any
`extra=` fields. Fields whose name mentions an e-mail address, message body or
credential are redacted; long id lists (circle members, community scopes) are
collapsed to a count plus the first few ids.
"""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from elonara.settings import settings

_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("elonara_request_id", default=None)
_VIEWER_ID: ContextVar[Optional[int]] = ContextVar("elonara_viewer_id", default=None)

_REDACTED_MARKERS = ("email", "content", "password", "secret", "token", "authorization")
_MAX_TEXT = 256
_MAX_IDS = 10

# Attributes every LogRecord has; anything else came from `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def bind_context(*, request_id: Optional[str] = None, viewer_id: Optional[int] = None) -> Dict[str, Token]:
	"""Attach request/viewer ids to subsequent log lines; pass the result to `reset_context`."""
	tokens: Dict[str, Token] = {}
	if request_id is not None:
		tokens["request_id"] = _REQUEST_ID.set(request_id)
	if viewer_id is not None:
		tokens["viewer_id"] = _VIEWER_ID.set(viewer_id)
	return tokens


def reset_context(tokens: Dict[str, Token]) -> None:
	for name, token in tokens.items():
		var = _REQUEST_ID if name == "request_id" else _VIEWER_ID
		var.reset(token)


def _scrub(key: str, value: Any) -> Any:
	if any(marker in key.lower() for marker in _REDACTED_MARKERS):
		return "[redacted]"
	if isinstance(value, str) and len(value) > _MAX_TEXT:
		return value[:_MAX_TEXT] + "…"
	if isinstance(value, (list, tuple, set, frozenset)):
		items = sorted(value) if isinstance(value, (set, frozenset)) else list(value)
		if len(items) > _MAX_IDS:
			return {"count": len(items), "head": items[:_MAX_IDS]}
		return items
	if isinstance(value, dict):
		return {str(k): _scrub(str(k), v) for k, v in value.items()}
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per record."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		request_id = _REQUEST_ID.get()
		if request_id:
			payload["request_id"] = request_id
		viewer_id = _VIEWER_ID.get()
		if viewer_id is not None:
			payload["viewer_id"] = viewer_id
		for key, value in vars(record).items():
			if key not in _RECORD_ATTRS:
				payload[key] = _scrub(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Keeps a fraction of info records; other levels always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = min(1.0, max(0.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging(level: Optional[str] = None) -> logging.Logger:
	"""Route the root logger through a single JSON stream handler."""
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers.clear()
	root.addHandler(handler)
	root.setLevel((level or settings.obs_log_level).upper())
	return logging.getLogger("elonara")
