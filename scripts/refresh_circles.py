"""Recompute cached trust circles for the given users (or every linked user)."""

from __future__ import annotations

import argparse
import asyncio

from elonara import obs
from elonara.domain.circles import CircleGraph, LinkStore, build_cache
from elonara.infra import postgres
from elonara.infra.redis import close_redis
from elonara.jobs.refresh_circles import CircleRefreshJob


async def _linked_user_ids() -> list[int]:
    pool = await postgres.get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT DISTINCT user_id FROM user_links ORDER BY user_id")
    return [int(row["user_id"]) for row in rows]


async def main(user_ids: list[int], backend: str | None) -> None:
    obs.init()
    links = LinkStore(build_cache(backend))
    job = CircleRefreshJob(CircleGraph(links))
    try:
        targets = user_ids or await _linked_user_ids()
        refreshed = await job.run_once(targets)
        print(f"Refreshed circles for {refreshed} users")
    finally:
        await postgres.close_pool()
        await close_redis()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_ids", nargs="*", type=int, help="users to refresh (default: all linked users)")
    parser.add_argument("--backend", choices=("redis", "postgres"), default=None, help="override CIRCLE_CACHE_BACKEND")
    args = parser.parse_args()
    asyncio.run(main(args.user_ids, args.backend))
