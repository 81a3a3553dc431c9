"""Trust circle classification over the peer link graph."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional, Protocol

from elonara.domain.circles.cache import CircleCache
from elonara.domain.circles.models import DEFAULT_MAX_HOPS, Circle, CircleContext
from elonara.obs import metrics as obs_metrics
from elonara.settings import settings

logger = logging.getLogger(__name__)


class PeerSource(Protocol):
	cache: CircleCache

	async def direct_peers_many(self, user_ids: list[int]) -> dict[int, set[int]]:
		...


class CircleGraph:
	"""Computes and caches inner/trusted/extended circles for a viewer."""

	def __init__(
		self,
		links: PeerSource,
		cache: CircleCache | None = None,
		*,
		max_hops: int | None = None,
	) -> None:
		self.links = links
		self.cache = cache or links.cache
		self.max_hops = settings.circle_max_hops if max_hops is None else max_hops

	async def compute_hops(self, user_id: int, max_hops: int = DEFAULT_MAX_HOPS) -> dict[int, int]:
		"""Breadth-first hop distances from `user_id`, origin excluded.

		Users found at exactly `max_hops` are included but never expanded. Each
		frontier is expanded with one adjacency query, so the first distance a
		user is assigned is its shortest.
		"""
		if user_id <= 0 or max_hops < 1:
			return {}

		started = time.perf_counter()
		visited: dict[int, int] = {user_id: 0}
		frontier = [user_id]
		hop = 0
		while frontier and hop < max_hops:
			hop += 1
			adjacency = await self.links.direct_peers_many(frontier)
			next_frontier: list[int] = []
			for current in frontier:
				for peer_id in sorted(adjacency.get(current, ())):
					if peer_id not in visited:
						visited[peer_id] = hop
						next_frontier.append(peer_id)
			frontier = next_frontier

		del visited[user_id]
		obs_metrics.observe_bfs(time.perf_counter() - started, len(visited))
		return visited

	async def build_context(self, viewer_id: int) -> CircleContext:
		"""Cached circles for a viewer; anonymous viewers get an empty context."""
		if viewer_id <= 0:
			return CircleContext.empty()

		cached = await self.cache.get(viewer_id)
		if cached is not None:
			return cached

		context = await self._compute_context(viewer_id)
		await self.cache.put(viewer_id, context)
		return context

	@staticmethod
	def resolve_users_for_circle(context: CircleContext, circle: str | Circle) -> Optional[list[int]]:
		"""Cumulative user ids for a circle, or None for `all`.

		Raises `UnknownCircle` for names outside inner/trusted/extended/all.
		"""
		return context.users_within(Circle.parse(circle))

	async def refresh_cache(self, user_id: int) -> CircleContext:
		"""Drop and recompute the cached context for one user."""
		if user_id <= 0:
			return CircleContext.empty()
		await self.cache.invalidate(user_id)
		context = await self._compute_context(user_id)
		await self.cache.put(user_id, context)
		logger.info(
			"circle cache refreshed",
			extra={
				"circle_user_id": user_id,
				"inner": len(context.inner),
				"trusted": len(context.trusted),
				"extended": len(context.extended),
			},
		)
		return context

	async def _compute_context(self, user_id: int) -> CircleContext:
		hops = await self.compute_hops(user_id, self.max_hops)
		return CircleContext.from_hops(hops, updated_at=datetime.now(timezone.utc))


__all__ = ["CircleGraph"]
