"""Persistence for mutual peer links.

Each link is stored as two directed rows in `user_links` so adjacency lookups
only ever filter on `user_id`. This module is the single place that mutates
links, and therefore the single place that invalidates cached circle contexts.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import asyncpg
from redis.exceptions import RedisError

from elonara.domain.circles.cache import CircleCache, build_cache
from elonara.domain.circles.exceptions import InvalidUserId, SelfLinkError
from elonara.domain.circles.models import PeerLink
from elonara.infra.postgres import get_pool
from elonara.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)
CACHE_ERRORS = STORE_ERRORS + (RedisError,)

_INSERT_LINK_SQL = """
INSERT INTO user_links (user_id, peer_id)
VALUES ($1, $2)
ON CONFLICT (user_id, peer_id) DO NOTHING
"""

_DELETE_LINK_SQL = """
DELETE FROM user_links
WHERE (user_id = $1 AND peer_id = $2)
   OR (user_id = $2 AND peer_id = $1)
"""


def guard_link_ids(user_a: int, user_b: int) -> None:
	if user_a <= 0 or user_b <= 0:
		raise InvalidUserId()
	if user_a == user_b:
		raise SelfLinkError()


class LinkStore:
	"""Create, remove and query symmetric peer links."""

	def __init__(self, cache: CircleCache | None = None) -> None:
		self.cache = cache or build_cache()

	async def link_exists(self, user_a: int, user_b: int) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"SELECT 1 FROM user_links WHERE user_id = $1 AND peer_id = $2",
				user_a,
				user_b,
			)
		return record is not None

	async def create_link(self, user_a: int, user_b: int) -> bool:
		"""Link two users in both directions.

		Raises `InvalidUserId`/`SelfLinkError` before touching the store. Store
		failures roll the transaction back and return False.
		"""
		guard_link_ids(user_a, user_b)
		try:
			if await self.link_exists(user_a, user_b):
				obs_metrics.inc_link_mutation("create", "exists")
				return True
			pool = await get_pool()
			async with pool.acquire() as conn:
				async with conn.transaction():
					await conn.executemany(_INSERT_LINK_SQL, [(user_a, user_b), (user_b, user_a)])
		except STORE_ERRORS as exc:
			logger.error(
				"peer link create failed",
				extra={"link_user_id": user_a, "link_peer_id": user_b, "error": str(exc)},
			)
			obs_metrics.inc_link_mutation("create", "error")
			return False

		obs_metrics.inc_link_mutation("create", "ok")
		await self._invalidate_pair(user_a, user_b)
		return True

	async def remove_link(self, user_a: int, user_b: int) -> bool:
		"""Delete both directed rows; removing a missing link succeeds."""
		if user_a <= 0 or user_b <= 0:
			return False
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				async with conn.transaction():
					await conn.execute(_DELETE_LINK_SQL, user_a, user_b)
		except STORE_ERRORS as exc:
			logger.error(
				"peer link remove failed",
				extra={"link_user_id": user_a, "link_peer_id": user_b, "error": str(exc)},
			)
			obs_metrics.inc_link_mutation("remove", "error")
			return False

		obs_metrics.inc_link_mutation("remove", "ok")
		await self._invalidate_pair(user_a, user_b)
		return True

	async def direct_peers(self, user_id: int) -> set[int]:
		if user_id <= 0:
			return set()
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch("SELECT peer_id FROM user_links WHERE user_id = $1", user_id)
		return {int(row["peer_id"]) for row in rows}

	async def direct_peers_many(self, user_ids: Iterable[int]) -> dict[int, set[int]]:
		"""Adjacency for a batch of users; users without peers are omitted."""
		ids = sorted({int(uid) for uid in user_ids if int(uid) > 0})
		if not ids:
			return {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT user_id, peer_id FROM user_links WHERE user_id = ANY($1::bigint[])",
				ids,
			)
		adjacency: dict[int, set[int]] = {}
		for row in rows:
			adjacency.setdefault(int(row["user_id"]), set()).add(int(row["peer_id"]))
		return adjacency

	async def list_links(self, user_id: int) -> list[PeerLink]:
		"""Outgoing rows for a user, newest first."""
		if user_id <= 0:
			return []
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT user_id, peer_id, created_at
				FROM user_links
				WHERE user_id = $1
				ORDER BY created_at DESC, peer_id ASC
				""",
				user_id,
			)
		return [PeerLink.from_record(row) for row in rows]

	async def _invalidate_pair(self, user_a: int, user_b: int) -> None:
		await self._invalidate_many((user_a, user_b))

	async def _invalidate_many(self, user_ids: Sequence[int]) -> None:
		for user_id in dict.fromkeys(user_ids):
			try:
				await self.cache.invalidate(user_id)
			except CACHE_ERRORS as exc:
				# The link is committed; the stale entry lives until the next mutation or TTL.
				logger.error(
					"circle cache invalidation failed",
					extra={"cache_user_id": user_id, "error": str(exc)},
				)
				obs_metrics.inc_circle_cache(self.cache.backend, "invalidate_error")


__all__ = ["LinkStore", "guard_link_ids", "STORE_ERRORS"]
