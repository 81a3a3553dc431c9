"""Community visibility scope derived from trust circles.

Tiers are built bottom-up in a single pass:

- inner: communities the viewer created or actively hosts
- trusted: inner plus communities created by inner-circle users
- extended: trusted plus communities created by trusted-circle users

Each tier only queries the creators it adds, so a wider tier is always a
superset of the narrower one. Host roles never propagate past the viewer.
"""

from __future__ import annotations

from typing import Optional

from elonara.domain.circles.directory import CommunityDirectory
from elonara.domain.circles.graph import CircleGraph
from elonara.domain.circles.models import TIERS, Circle


class CommunityScopeResolver:
	def __init__(self, graph: CircleGraph, directory: CommunityDirectory | None = None) -> None:
		self.graph = graph
		self.directory = directory or CommunityDirectory()

	async def get_community_scope(self, viewer_id: int, circle: str | Circle) -> Optional[list[int]]:
		"""Community ids visible under `circle`; None means unrestricted."""
		target = Circle.parse(circle)
		if target is Circle.ALL:
			return None
		if viewer_id <= 0:
			return []
		tiers = await self.resolve_tiers(viewer_id, upto=target)
		return tiers[target]

	async def resolve_tiers(self, viewer_id: int, *, upto: Circle = Circle.EXTENDED) -> dict[Circle, list[int]]:
		if upto is Circle.ALL:
			upto = Circle.EXTENDED
		if viewer_id <= 0:
			return {tier: [] for tier in TIERS[: TIERS.index(upto) + 1]}

		scope = set(await self.directory.communities_created_by([viewer_id]))
		scope.update(await self.directory.communities_hosted_by(viewer_id))
		tiers: dict[Circle, list[int]] = {Circle.INNER: sorted(scope)}
		if upto is Circle.INNER:
			return tiers

		context = await self.graph.build_context(viewer_id)
		new_creators = {
			Circle.TRUSTED: context.inner,
			Circle.EXTENDED: context.trusted,
		}
		for tier in TIERS[1 : TIERS.index(upto) + 1]:
			creators = new_creators[tier]
			if creators:
				scope.update(await self.directory.communities_created_by(creators))
			tiers[tier] = sorted(scope)
		return tiers


__all__ = ["CommunityScopeResolver"]
