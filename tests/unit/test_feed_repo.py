from __future__ import annotations

import pytest

from elonara.domain.circles.exceptions import StoreFailure
from elonara.domain.feed.repo import ConversationQuery, ConversationsRepository, build_conversation_sql
from elonara.infra import postgres


class _CapturingConnection:
	def __init__(self, rows=None, record=None, error: Exception | None = None) -> None:
		self.rows = rows or []
		self.record = record
		self.error = error
		self.calls: list[tuple[str, tuple]] = []

	async def fetch(self, sql, *params):
		self.calls.append((sql, params))
		if self.error is not None:
			raise self.error
		return self.rows

	async def fetchrow(self, sql, *params):
		self.calls.append((sql, params))
		return self.record


class _Acquire:
	def __init__(self, conn) -> None:
		self._conn = conn

	async def __aenter__(self):
		return self._conn

	async def __aexit__(self, exc_type, exc, tb):
		return False


class _Pool:
	def __init__(self, conn: _CapturingConnection) -> None:
		self.conn = conn

	def acquire(self):
		return _Acquire(self.conn)


@pytest.fixture
def capture_pool():
	def _install(**kwargs) -> _CapturingConnection:
		conn = _CapturingConnection(**kwargs)
		postgres.set_pool(_Pool(conn))  # type: ignore[arg-type]
		return conn

	yield _install
	postgres.set_pool(None)


def test_sql_always_carries_privacy_clause():
	sql, params = build_conversation_sql(ConversationQuery(viewer_id=7, member_communities=[3, 1, 3]))

	assert "com.privacy = 'public'" in sql
	assert "conv.community_id = ANY($1::bigint[])" in sql
	assert "(com.privacy = 'public' OR conv.community_id = ANY($1::bigint[]))" in sql
	assert "conv.community_id IS NULL" not in sql
	assert "conv.author_id = $" not in sql
	assert "ORDER BY COALESCE(conv.updated_at, conv.created_at) DESC, conv.id DESC" in sql
	assert sql.rstrip().endswith("LIMIT $2 OFFSET $3")
	assert params == [[1, 3], 21, 0]


def test_sql_adds_optional_filters_in_order():
	query = ConversationQuery(
		viewer_id=1,
		member_communities=[],
		author_ids=[5, 2, 5],
		community_ids=[9],
		event_ids=[4],
		event_linked=True,
		community_linked=True,
		limit=11,
		offset=30,
	)

	sql, params = build_conversation_sql(query)

	assert "conv.author_id = ANY($2::bigint[])" in sql
	assert "conv.community_id = ANY($3::bigint[])" in sql
	assert "conv.event_id = ANY($4::bigint[])" in sql
	assert "conv.event_id IS NOT NULL" in sql
	assert "conv.community_id IS NOT NULL" in sql
	assert "LIMIT $5 OFFSET $6" in sql
	assert params == [[], [2, 5], [9], [4], 11, 30]


def test_unrestricted_query_has_no_author_filter():
	sql, _ = build_conversation_sql(ConversationQuery(viewer_id=0, member_communities=[]))

	assert "conv.author_id = ANY" not in sql
	assert "conv.event_id IS NOT NULL" not in sql


def test_matches_nothing():
	assert ConversationQuery(viewer_id=1, member_communities=[], author_ids=[]).matches_nothing()
	assert ConversationQuery(viewer_id=1, member_communities=[], community_ids=[]).matches_nothing()
	assert not ConversationQuery(viewer_id=1, member_communities=[]).matches_nothing()
	assert not ConversationQuery(viewer_id=1, member_communities=[], author_ids=[3]).matches_nothing()


@pytest.mark.asyncio
async def test_list_conversations_maps_rows(capture_pool):
	conn = capture_pool(
		rows=[
			{"id": 4, "title": "Hello", "author_id": 2, "reply_count": 3, "privacy": "public", "community_id": None},
		]
	)
	repo = ConversationsRepository()

	rows = await repo.list_conversations(ConversationQuery(viewer_id=1, member_communities=[], author_ids=[2]))

	assert [(row.id, row.reply_count) for row in rows] == [(4, 3)]
	assert conn.calls[0][1] == ([], [2], 21, 0)


@pytest.mark.asyncio
async def test_list_conversations_tolerates_null_privacy(capture_pool):
	capture_pool(
		rows=[
			{"id": 5, "author_id": 2, "reply_count": None, "privacy": None, "community_id": 9, "community_privacy": "public"},
			{"id": 4, "author_id": 2, "reply_count": 1, "privacy": "private", "community_id": 9, "community_privacy": "public"},
		]
	)
	repo = ConversationsRepository()

	rows = await repo.list_conversations(ConversationQuery(viewer_id=1, member_communities=[]))

	assert [(row.id, row.privacy, row.reply_count) for row in rows] == [(5, "public", 0), (4, "private", 1)]


@pytest.mark.asyncio
async def test_list_conversations_short_circuits_empty_sets(capture_pool):
	conn = capture_pool()
	repo = ConversationsRepository()

	assert await repo.list_conversations(ConversationQuery(viewer_id=1, member_communities=[], author_ids=[])) == []
	assert conn.calls == []


@pytest.mark.asyncio
async def test_list_conversations_wraps_store_errors(capture_pool):
	capture_pool(error=ConnectionResetError("gone"))
	repo = ConversationsRepository()

	with pytest.raises(StoreFailure) as exc_info:
		await repo.list_conversations(ConversationQuery(viewer_id=1, member_communities=[]))

	assert exc_info.value.reason == "conversation_query_failed"


@pytest.mark.asyncio
async def test_viewer_event_ids_uses_given_email(capture_pool):
	conn = capture_pool(rows=[{"id": 8}, {"id": 3}, {"id": 8}])
	repo = ConversationsRepository()

	assert await repo.viewer_event_ids(5, "Guest@Example.com") == [3, 8]
	assert len(conn.calls) == 1
	assert conn.calls[0][1] == (5, "Guest@Example.com")


@pytest.mark.asyncio
async def test_viewer_event_ids_looks_up_email(capture_pool):
	conn = capture_pool(rows=[], record={"email": "  member@example.com "})
	repo = ConversationsRepository()

	assert await repo.viewer_event_ids(5, None) == []
	assert conn.calls[0][1] == (5,)
	assert conn.calls[1][1] == (5, "member@example.com")
	assert await repo.viewer_event_ids(0, None) == []
