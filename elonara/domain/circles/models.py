"""Domain models for peer links and circle contexts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from elonara.domain.circles.exceptions import UnknownCircle

DEFAULT_MAX_HOPS = 3


class Circle(str, Enum):
	"""Named trust tiers, innermost first."""

	INNER = "inner"
	TRUSTED = "trusted"
	EXTENDED = "extended"
	ALL = "all"

	@classmethod
	def parse(cls, value: "str | Circle") -> "Circle":
		if isinstance(value, Circle):
			return value
		try:
			return cls(str(value).strip().lower())
		except ValueError as exc:
			raise UnknownCircle(f"unknown_circle:{value}") from exc

	@property
	def hops(self) -> Optional[int]:
		"""Maximum hop distance covered by the circle; None for `all`."""
		return CIRCLE_HOPS.get(self)


CIRCLE_HOPS = {
	Circle.INNER: 1,
	Circle.TRUSTED: 2,
	Circle.EXTENDED: 3,
}

# Bounded tiers in nesting order
TIERS = (Circle.INNER, Circle.TRUSTED, Circle.EXTENDED)


def unique_ids(values: Iterable[Any]) -> list[int]:
	"""Coerce to int, drop duplicates and sort ascending."""
	return sorted({int(value) for value in values})


@dataclass(slots=True)
class CircleContext:
	"""Users grouped by shortest hop distance from a viewer."""

	inner: list[int] = field(default_factory=list)
	trusted: list[int] = field(default_factory=list)
	extended: list[int] = field(default_factory=list)
	updated_at: Optional[datetime] = None

	@classmethod
	def empty(cls) -> "CircleContext":
		return cls()

	@classmethod
	def from_hops(cls, hops: Mapping[int, int], *, updated_at: Optional[datetime] = None) -> "CircleContext":
		buckets: dict[int, list[int]] = {1: [], 2: [], 3: []}
		for peer_id, distance in hops.items():
			if distance in buckets:
				buckets[distance].append(peer_id)
		return cls(
			inner=unique_ids(buckets[1]),
			trusted=unique_ids(buckets[2]),
			extended=unique_ids(buckets[3]),
			updated_at=updated_at,
		)

	@classmethod
	def from_payload(cls, payload: Mapping[str, Any]) -> "CircleContext":
		updated_raw = payload.get("updated_at")
		updated_at = datetime.fromisoformat(updated_raw) if isinstance(updated_raw, str) else updated_raw
		return cls(
			inner=unique_ids(payload.get("inner") or []),
			trusted=unique_ids(payload.get("trusted") or []),
			extended=unique_ids(payload.get("extended") or []),
			updated_at=updated_at,
		)

	def to_payload(self) -> dict[str, Any]:
		return {
			"inner": list(self.inner),
			"trusted": list(self.trusted),
			"extended": list(self.extended),
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}

	def is_empty(self) -> bool:
		return not (self.inner or self.trusted or self.extended)

	def users_within(self, circle: Circle) -> Optional[list[int]]:
		"""Cumulative members of a circle; None means no restriction."""
		if circle is Circle.ALL:
			return None
		if circle is Circle.INNER:
			return list(self.inner)
		if circle is Circle.TRUSTED:
			return unique_ids([*self.inner, *self.trusted])
		return unique_ids([*self.inner, *self.trusted, *self.extended])


@dataclass(slots=True)
class PeerLink:
	"""One directed row of a mutual peer link."""

	user_id: int
	peer_id: int
	created_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "PeerLink":
		return cls(
			user_id=int(record["user_id"]),
			peer_id=int(record["peer_id"]),
			created_at=record.get("created_at"),
		)
