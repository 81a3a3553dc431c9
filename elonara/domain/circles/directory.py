"""Read-only community lookups used for circle scope and feed privacy."""

from __future__ import annotations

from typing import Iterable, Optional

from elonara.domain.circles.models import unique_ids
from elonara.infra.postgres import get_pool


class CommunityDirectory:
	"""Thin data-access layer over `communities` and `community_members`."""

	async def communities_created_by(self, user_ids: Iterable[int]) -> list[int]:
		creators = [uid for uid in unique_ids(user_ids) if uid > 0]
		if not creators:
			return []
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT DISTINCT id
				FROM communities
				WHERE creator_id = ANY($1::bigint[])
				  AND is_active
				""",
				creators,
			)
		return unique_ids(row["id"] for row in rows)

	async def communities_hosted_by(self, user_id: int) -> list[int]:
		if user_id <= 0:
			return []
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT DISTINCT community_id
				FROM community_members
				WHERE user_id = $1 AND role = 'host' AND status = 'active'
				""",
				user_id,
			)
		return unique_ids(row["community_id"] for row in rows)

	async def member_communities(self, user_id: int) -> list[int]:
		if user_id <= 0:
			return []
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT DISTINCT community_id
				FROM community_members
				WHERE user_id = $1 AND status = 'active'
				""",
				user_id,
			)
		return unique_ids(row["community_id"] for row in rows)

	async def community_privacy(self, community_id: int) -> Optional[str]:
		if community_id <= 0:
			return None
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT privacy FROM communities WHERE id = $1", community_id)
		if not record:
			return None
		return record["privacy"]


__all__ = ["CommunityDirectory"]
