"""Feed assembly on top of trust circles and community membership."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from elonara.domain.circles.directory import CommunityDirectory
from elonara.domain.circles.graph import CircleGraph
from elonara.domain.circles.models import Circle, unique_ids
from elonara.domain.circles.scope import CommunityScopeResolver
from elonara.domain.feed import access
from elonara.domain.feed.repo import ConversationQuery, ConversationsRepository
from elonara.domain.feed.schemas import ConversationRow, FeedFilter, FeedOptions, FeedPage
from elonara.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

OptionsLike = FeedOptions | Mapping[str, Any] | None


class FeedAssembler:
	"""Builds paginated, privacy-filtered conversation feeds."""

	def __init__(
		self,
		graph: CircleGraph,
		*,
		directory: CommunityDirectory | None = None,
		repository: ConversationsRepository | None = None,
		scope: CommunityScopeResolver | None = None,
	) -> None:
		self.graph = graph
		self.directory = directory or CommunityDirectory()
		self.repo = repository or ConversationsRepository()
		self.scope = scope or CommunityScopeResolver(graph, self.directory)

	async def global_feed(self, viewer_id: int, circle: str | Circle, options: OptionsLike = None) -> FeedPage:
		"""Conversations whose author is within the circle's hop distance.

		The viewer always sees their own conversations. An empty author set
		("no one in range") returns an empty page without querying; `all`
		applies no author restriction.
		"""
		target = Circle.parse(circle)
		opts = FeedOptions.coerce(options)

		context = await self.graph.build_context(viewer_id)
		allowed = self.graph.resolve_users_for_circle(context, target)
		if allowed is not None and viewer_id > 0:
			allowed = unique_ids([*allowed, viewer_id])
		if allowed is not None and not allowed:
			return self._empty("global", opts, circle=target.value)

		query = ConversationQuery(
			viewer_id=viewer_id,
			member_communities=await self.directory.member_communities(viewer_id),
			author_ids=allowed,
		)
		return await self._run("global", query, opts, circle=target.value)

	async def circle_feed(self, viewer_id: int, circle: str | Circle, options: OptionsLike = None) -> FeedPage:
		"""Conversations posted in communities within the circle's scope."""
		target = Circle.parse(circle)
		opts = FeedOptions.coerce(options)

		communities = await self.scope.get_community_scope(viewer_id, target)
		if communities is not None and not communities:
			return self._empty("circle", opts, circle=target.value)

		query = ConversationQuery(
			viewer_id=viewer_id,
			member_communities=await self.directory.member_communities(viewer_id),
			community_ids=communities,
		)
		return await self._run("circle", query, opts, circle=target.value)

	async def community_feed(self, viewer_id: int, community_id: int, options: OptionsLike = None) -> FeedPage:
		"""All conversations of one community, gated by membership or public privacy only."""
		opts = FeedOptions.coerce(options)
		if community_id <= 0:
			return self._empty("community", opts, community_id=community_id)

		query = ConversationQuery(
			viewer_id=viewer_id,
			member_communities=await self.directory.member_communities(viewer_id),
			community_ids=[community_id],
		)
		return await self._run("community", query, opts, community_id=community_id)

	async def personal_feed(self, viewer_id: int, options: OptionsLike = None) -> FeedPage:
		"""The viewer's own conversations, still privacy-filtered."""
		opts = FeedOptions.coerce(options)
		if viewer_id <= 0:
			return self._empty("personal", opts)

		query = ConversationQuery(
			viewer_id=viewer_id,
			member_communities=await self.directory.member_communities(viewer_id),
			author_ids=[viewer_id],
		)
		return await self._run("personal", query, opts)

	async def can_view(self, conversation: ConversationRow, viewer_id: int) -> bool:
		members = await self.directory.member_communities(viewer_id)
		privacy = conversation.community_privacy
		if conversation.community_id and privacy is None:
			privacy = await self.directory.community_privacy(conversation.community_id)
		return access.can_viewer_access(conversation, viewer_id, members, community_privacy=privacy)

	async def _run(self, kind: str, query: ConversationQuery, opts: FeedOptions, **extra: Any) -> FeedPage:
		if opts.filter is FeedFilter.MY_EVENTS:
			event_ids = await self.repo.viewer_event_ids(query.viewer_id, opts.viewer_email)
			if not event_ids:
				return self._empty(kind, opts, **extra)
			query.event_ids = event_ids
		elif opts.filter is FeedFilter.ALL_EVENTS:
			query.event_linked = True
		elif opts.filter is FeedFilter.COMMUNITIES:
			query.community_linked = True

		query.limit = opts.fetch_limit
		query.offset = opts.offset
		rows = await self.repo.list_conversations(query)
		page = FeedPage.from_rows(rows, opts, **extra)
		obs_metrics.inc_feed_request(kind, "rows" if page.conversations else "empty")
		logger.debug(
			"feed assembled",
			extra={
				"feed_kind": kind,
				"viewer_id": query.viewer_id,
				"page": opts.page,
				"rows": len(page.conversations),
				"has_more": page.pagination.has_more,
			},
		)
		return page

	@staticmethod
	def _empty(kind: str, opts: FeedOptions, **extra: Any) -> FeedPage:
		obs_metrics.inc_feed_request(kind, "empty")
		return FeedPage.empty(opts, **extra)
