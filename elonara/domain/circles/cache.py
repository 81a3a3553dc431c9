"""Cache backends for computed circle contexts.

A cached context is a pure function of the current link graph, so concurrent
writers for the same user race on last-write-wins. Entries are removed by
`LinkStore` whenever a link touching the user changes.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from elonara.domain.circles.models import CircleContext
from elonara.infra.postgres import get_pool
from elonara.infra.redis import redis_client
from elonara.obs import metrics as obs_metrics
from elonara.settings import settings

logger = logging.getLogger(__name__)

_CIRCLE_KEY = "circles:{user_id}"


class CircleCache(Protocol):
	"""Get/Put/Invalidate contract shared by the cache backends."""

	backend: str

	async def get(self, user_id: int) -> Optional[CircleContext]:
		...

	async def put(self, user_id: int, context: CircleContext) -> None:
		...

	async def invalidate(self, user_id: int) -> None:
		...


def _decode(raw: object, *, user_id: int, backend: str) -> Optional[CircleContext]:
	if raw is None:
		return None
	try:
		payload = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
		if not isinstance(payload, dict):
			raise ValueError("circle payload is not an object")
		return CircleContext.from_payload(payload)
	except (TypeError, ValueError) as exc:
		logger.warning(
			"discarding unreadable circle cache entry",
			extra={"cache_user_id": user_id, "backend": backend, "error": str(exc)},
		)
		obs_metrics.inc_circle_cache(backend, "corrupt")
		return None


def _stamp(context: CircleContext) -> CircleContext:
	if context.updated_at is None:
		context.updated_at = datetime.now(timezone.utc)
	return context


class RedisCircleCache:
	"""Stores contexts as JSON strings under `circles:{user_id}`."""

	backend = "redis"

	def __init__(self, *, ttl_seconds: int | None = None) -> None:
		self.ttl_seconds = settings.circle_cache_ttl_seconds if ttl_seconds is None else ttl_seconds

	@staticmethod
	def key(user_id: int) -> str:
		return _CIRCLE_KEY.format(user_id=user_id)

	async def get(self, user_id: int) -> Optional[CircleContext]:
		raw = await redis_client.get(self.key(user_id))
		context = _decode(raw, user_id=user_id, backend=self.backend)
		obs_metrics.inc_circle_cache(self.backend, "hit" if context is not None else "miss")
		return context

	async def put(self, user_id: int, context: CircleContext) -> None:
		payload = json.dumps(_stamp(context).to_payload(), separators=(",", ":"))
		if self.ttl_seconds > 0:
			await redis_client.set(self.key(user_id), payload, ex=self.ttl_seconds)
		else:
			await redis_client.set(self.key(user_id), payload)
		obs_metrics.inc_circle_cache(self.backend, "store")

	async def invalidate(self, user_id: int) -> None:
		await redis_client.delete(self.key(user_id))
		obs_metrics.inc_circle_cache(self.backend, "invalidate")


class PostgresCircleCache:
	"""Stores contexts in the `user_circle_cache` table."""

	backend = "postgres"

	async def get(self, user_id: int) -> Optional[CircleContext]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"SELECT circle_json, updated_at FROM user_circle_cache WHERE user_id = $1",
				user_id,
			)
		if not record:
			obs_metrics.inc_circle_cache(self.backend, "miss")
			return None
		context = _decode(record["circle_json"], user_id=user_id, backend=self.backend)
		if context is None:
			obs_metrics.inc_circle_cache(self.backend, "miss")
			return None
		if context.updated_at is None:
			context.updated_at = record["updated_at"]
		obs_metrics.inc_circle_cache(self.backend, "hit")
		return context

	async def put(self, user_id: int, context: CircleContext) -> None:
		payload = json.dumps(_stamp(context).to_payload(), separators=(",", ":"))
		pool = await get_pool()
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO user_circle_cache (user_id, circle_json, updated_at)
				VALUES ($1, $2::jsonb, NOW())
				ON CONFLICT (user_id)
				DO UPDATE SET circle_json = EXCLUDED.circle_json, updated_at = NOW()
				""",
				user_id,
				payload,
			)
		obs_metrics.inc_circle_cache(self.backend, "store")

	async def invalidate(self, user_id: int) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			await conn.execute("DELETE FROM user_circle_cache WHERE user_id = $1", user_id)
		obs_metrics.inc_circle_cache(self.backend, "invalidate")


def build_cache(backend: str | None = None) -> CircleCache:
	"""Return the configured cache backend."""
	name = (backend or settings.circle_cache_backend).strip().lower()
	if name == "redis":
		return RedisCircleCache()
	if name == "postgres":
		return PostgresCircleCache()
	raise ValueError(f"unknown circle cache backend: {name}")


__all__ = ["CircleCache", "RedisCircleCache", "PostgresCircleCache", "build_cache"]
