"""Async repository for privacy-filtered conversation listings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from elonara.domain.circles.exceptions import StoreFailure
from elonara.domain.circles.links import STORE_ERRORS
from elonara.domain.circles.models import unique_ids
from elonara.domain.feed.schemas import ConversationRow
from elonara.infra.postgres import get_pool

_SELECT_CONVERSATIONS = """
SELECT conv.id,
       conv.title,
       conv.slug,
       conv.content,
       conv.author_id,
       conv.author_name,
       conv.created_at,
       conv.updated_at,
       COALESCE(replies.reply_total, conv.reply_count, 0) AS reply_count,
       conv.last_reply_date,
       conv.privacy,
       conv.community_id,
       conv.event_id,
       com.name AS community_name,
       com.slug AS community_slug,
       com.privacy AS community_privacy,
       evt.title AS event_title,
       evt.slug AS event_slug
FROM conversations conv
LEFT JOIN (
    SELECT conversation_id, COUNT(*) AS reply_total
    FROM conversation_replies
    GROUP BY conversation_id
) replies ON replies.conversation_id = conv.id
LEFT JOIN communities com ON conv.community_id = com.id
LEFT JOIN events evt ON conv.event_id = evt.id
"""


@dataclass(slots=True)
class ConversationQuery:
	"""Filters for one page of conversations.

	`None` for `author_ids`/`community_ids`/`event_ids` means unrestricted; an
	empty sequence matches nothing and is short-circuited by the repository.
	"""

	viewer_id: int
	member_communities: Sequence[int]
	author_ids: Optional[Sequence[int]] = None
	community_ids: Optional[Sequence[int]] = None
	event_ids: Optional[Sequence[int]] = None
	event_linked: bool = False
	community_linked: bool = False
	limit: int = 21
	offset: int = 0

	def matches_nothing(self) -> bool:
		return any(
			values is not None and len(values) == 0
			for values in (self.author_ids, self.community_ids, self.event_ids)
		)


class _Params:
	"""Collects positional parameters and hands out `$n` placeholders."""

	def __init__(self) -> None:
		self.values: list[object] = []

	def add(self, value: object) -> str:
		self.values.append(value)
		return f"${len(self.values)}"


def build_conversation_sql(query: ConversationQuery) -> tuple[str, list[object]]:
	params = _Params()
	members = params.add(unique_ids(query.member_communities))
	# Conversations without a community never match: com.privacy is NULL for them.
	conditions = [f"(com.privacy = 'public' OR conv.community_id = ANY({members}::bigint[]))"]
	if query.author_ids is not None:
		conditions.append(f"conv.author_id = ANY({params.add(unique_ids(query.author_ids))}::bigint[])")
	if query.community_ids is not None:
		conditions.append(f"conv.community_id = ANY({params.add(unique_ids(query.community_ids))}::bigint[])")
	if query.event_ids is not None:
		conditions.append(f"conv.event_id = ANY({params.add(unique_ids(query.event_ids))}::bigint[])")
	if query.event_linked:
		conditions.append("conv.event_id IS NOT NULL")
	if query.community_linked:
		conditions.append("conv.community_id IS NOT NULL")

	limit = params.add(query.limit)
	offset = params.add(query.offset)
	sql = (
		_SELECT_CONVERSATIONS
		+ "WHERE "
		+ "\n  AND ".join(conditions)
		+ "\nORDER BY COALESCE(conv.updated_at, conv.created_at) DESC, conv.id DESC"
		+ f"\nLIMIT {limit} OFFSET {offset}"
	)
	return sql, params.values


class ConversationsRepository:
	"""Thin data-access layer around asyncpg."""

	async def list_conversations(self, query: ConversationQuery) -> list[ConversationRow]:
		if query.matches_nothing():
			return []
		sql, params = build_conversation_sql(query)
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				rows = await conn.fetch(sql, *params)
		except STORE_ERRORS as exc:
			raise StoreFailure("conversation_query_failed") from exc
		return [ConversationRow.model_validate(dict(row)) for row in rows]

	async def get_conversation(self, conversation_id: int) -> Optional[ConversationRow]:
		if conversation_id <= 0:
			return None
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(_SELECT_CONVERSATIONS + "WHERE conv.id = $1", conversation_id)
		return ConversationRow.model_validate(dict(record)) if record else None

	async def viewer_event_ids(self, viewer_id: int, viewer_email: Optional[str]) -> list[int]:
		"""Active events the viewer authored or is a guest of."""
		if viewer_id <= 0:
			return []
		email = viewer_email if viewer_email else await self.user_email(viewer_id)
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT DISTINCT e.id
				FROM events e
				LEFT JOIN guests g ON g.event_id = e.id
				WHERE e.event_status = 'active'
				  AND e.status = 'active'
				  AND (
				       e.author_id = $1
				       OR g.converted_user_id = $1
				       OR ($2 <> '' AND LOWER(g.email) = LOWER($2))
				  )
				""",
				viewer_id,
				email or "",
			)
		return unique_ids(row["id"] for row in rows)

	async def user_email(self, user_id: int) -> Optional[str]:
		if user_id <= 0:
			return None
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT email FROM users WHERE id = $1", user_id)
		if not record or not isinstance(record["email"], str):
			return None
		return record["email"].strip() or None


__all__ = ["ConversationQuery", "ConversationsRepository", "build_conversation_sql"]
