from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

from elonara.infra import postgres


class _FakeTransaction:
	def __init__(self, db: "FakeDatabase") -> None:
		self._db = db
		self._snapshot: set[tuple[int, int]] = set()

	async def __aenter__(self):
		self._snapshot = set(self._db.links)
		self._db.transactions += 1
		return None

	async def __aexit__(self, exc_type, exc, tb):
		if exc_type is not None:
			self._db.links = self._snapshot
			self._db.rollbacks += 1
		return False


class _FakeAcquire:
	def __init__(self, conn):
		self._conn = conn

	async def __aenter__(self):
		return self._conn

	async def __aexit__(self, exc_type, exc, tb):
		return False


class FakeConnection:
	"""Understands the `user_links` and `user_circle_cache` statements."""

	def __init__(self, db: "FakeDatabase") -> None:
		self._db = db

	def transaction(self):
		return _FakeTransaction(self._db)

	def _record(self, query: str, params: tuple) -> str:
		normalised = " ".join(query.split()).lower()
		self._db.executed.append((normalised, params))
		if self._db.unavailable:
			raise ConnectionRefusedError("database unavailable")
		return normalised

	async def fetchrow(self, query: str, *params):
		q = self._record(query, params)
		if q.startswith("select 1 from user_links"):
			return {"?column?": 1} if (params[0], params[1]) in self._db.links else None
		if q.startswith("select circle_json, updated_at from user_circle_cache"):
			entry = self._db.circle_cache.get(params[0])
			if entry is None:
				return None
			return {"circle_json": entry[0], "updated_at": entry[1]}
		raise AssertionError(f"Unexpected query: {q}")

	async def fetch(self, query: str, *params):
		q = self._record(query, params)
		if q.startswith("select peer_id from user_links"):
			return [{"peer_id": peer} for user, peer in sorted(self._db.links) if user == params[0]]
		if q.startswith("select user_id, peer_id from user_links"):
			wanted = set(params[0])
			return [{"user_id": user, "peer_id": peer} for user, peer in sorted(self._db.links) if user in wanted]
		if q.startswith("select user_id, peer_id, created_at from user_links"):
			return [
				{"user_id": user, "peer_id": peer, "created_at": self._db.created_at}
				for user, peer in sorted(self._db.links)
				if user == params[0]
			]
		raise AssertionError(f"Unexpected query: {q}")

	async def execute(self, query: str, *params):
		q = self._record(query, params)
		if q.startswith("delete from user_links"):
			a, b = params
			before = len(self._db.links)
			self._db.links -= {(a, b), (b, a)}
			return f"DELETE {before - len(self._db.links)}"
		if q.startswith("insert into user_circle_cache"):
			self._db.circle_cache[params[0]] = (params[1], datetime.now(timezone.utc))
			return "INSERT 0 1"
		if q.startswith("delete from user_circle_cache"):
			self._db.circle_cache.pop(params[0], None)
			return "DELETE 1"
		raise AssertionError(f"Unexpected query: {q}")

	async def executemany(self, query: str, args):
		q = self._record(query, tuple(args))
		if not q.startswith("insert into user_links"):
			raise AssertionError(f"Unexpected query: {q}")
		for index, (user_id, peer_id) in enumerate(args):
			if self._db.fail_insert_at is not None and index == self._db.fail_insert_at:
				raise ConnectionResetError("connection lost mid-transaction")
			self._db.links.add((user_id, peer_id))


class FakeDatabase:
	"""In-memory stand-in for the asyncpg pool used by the circles domain."""

	def __init__(self) -> None:
		self.links: set[tuple[int, int]] = set()
		self.circle_cache: dict[int, tuple[str, datetime]] = {}
		self.executed: list[tuple[str, tuple]] = []
		self.transactions = 0
		self.rollbacks = 0
		self.unavailable = False
		self.fail_insert_at: int | None = None
		self.created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
		self._conn = FakeConnection(self)

	def acquire(self):
		return _FakeAcquire(self._conn)

	def link(self, *pairs: tuple[int, int]) -> None:
		for a, b in pairs:
			self.links.update({(a, b), (b, a)})

	def statements(self, prefix: str) -> list[tuple[str, tuple]]:
		return [(q, p) for q, p in self.executed if q.startswith(prefix)]


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from elonara.infra.redis import redis_client, set_redis_client

	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		await client.flushall()
		set_redis_client(original)


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture
def fake_db():
	db = FakeDatabase()
	postgres.set_pool(db)  # type: ignore[arg-type]
	try:
		yield db
	finally:
		postgres.set_pool(None)
