"""Pydantic schemas for feed options and pages."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from elonara.settings import settings


class FeedFilter(str, Enum):
	"""Optional narrowing applied on top of the circle/privacy rules."""

	NONE = ""
	MY_EVENTS = "my-events"
	ALL_EVENTS = "all-events"
	COMMUNITIES = "communities"


class FeedOptions(BaseModel):
	page: int = 1
	per_page: int = Field(default_factory=lambda: settings.feed_default_per_page)
	filter: FeedFilter = FeedFilter.NONE
	viewer_email: Optional[str] = None

	@field_validator("page", mode="before")
	@classmethod
	def _clamp_page(cls, value: Any) -> int:
		if value in (None, ""):
			return 1
		return max(1, int(value))

	@field_validator("per_page", mode="before")
	@classmethod
	def _clamp_per_page(cls, value: Any) -> int:
		if value in (None, ""):
			return settings.feed_default_per_page
		return max(1, min(settings.feed_max_per_page, int(value)))

	@field_validator("filter", mode="before")
	@classmethod
	def _normalise_filter(cls, value: Any) -> str:
		if value is None:
			return ""
		if isinstance(value, FeedFilter):
			return value.value
		return str(value).strip().lower()

	@field_validator("viewer_email", mode="before")
	@classmethod
	def _strip_email(cls, value: Any) -> Optional[str]:
		if not isinstance(value, str):
			return None
		return value.strip() or None

	@classmethod
	def coerce(cls, options: "FeedOptions | Mapping[str, Any] | None") -> "FeedOptions":
		if options is None:
			return cls()
		if isinstance(options, FeedOptions):
			return options
		return cls.model_validate(dict(options))

	@property
	def offset(self) -> int:
		return (self.page - 1) * self.per_page

	@property
	def fetch_limit(self) -> int:
		# One extra row tells us whether another page exists.
		return self.per_page + 1


class Pagination(BaseModel):
	page: int
	per_page: int
	has_more: bool = False
	next_page: Optional[int] = None


class ConversationRow(BaseModel):
	id: int
	title: Optional[str] = None
	slug: Optional[str] = None
	content: Optional[str] = None
	author_id: Optional[int] = None
	author_name: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
	reply_count: int = 0
	last_reply_date: Optional[datetime] = None
	privacy: str = "public"
	community_id: Optional[int] = None
	event_id: Optional[int] = None
	community_name: Optional[str] = None
	community_slug: Optional[str] = None
	community_privacy: Optional[str] = None
	event_title: Optional[str] = None
	event_slug: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)

	@field_validator("privacy", mode="before")
	@classmethod
	def _default_privacy(cls, value: Any) -> str:
		return "public" if value is None else value

	@field_validator("reply_count", mode="before")
	@classmethod
	def _default_reply_count(cls, value: Any) -> int:
		return 0 if value is None else value

	@property
	def last_activity(self) -> Optional[datetime]:
		return self.updated_at or self.created_at


class FeedPage(BaseModel):
	conversations: list[ConversationRow] = Field(default_factory=list)
	pagination: Pagination
	circle: Optional[str] = None
	community_id: Optional[int] = None

	@classmethod
	def empty(cls, options: FeedOptions, **extra: Any) -> "FeedPage":
		return cls(
			conversations=[],
			pagination=Pagination(page=options.page, per_page=options.per_page),
			**extra,
		)

	@classmethod
	def from_rows(cls, rows: Sequence[ConversationRow], options: FeedOptions, **extra: Any) -> "FeedPage":
		"""Trim an over-fetched result set to one page."""
		has_more = len(rows) > options.per_page
		return cls(
			conversations=list(rows[: options.per_page]),
			pagination=Pagination(
				page=options.page,
				per_page=options.per_page,
				has_more=has_more,
				next_page=options.page + 1 if has_more else None,
			),
			**extra,
		)

	def to_response(self) -> dict[str, Any]:
		"""Payload handed to HTTP callers."""
		payload: dict[str, Any] = {
			"conversations": [row.model_dump(mode="json") for row in self.conversations],
			"pagination": self.pagination.model_dump(mode="json"),
		}
		if self.circle is not None:
			payload["circle"] = self.circle
		if self.community_id is not None:
			payload["community_id"] = self.community_id
		return payload


__all__ = [
	"FeedFilter",
	"FeedOptions",
	"Pagination",
	"ConversationRow",
	"FeedPage",
]
