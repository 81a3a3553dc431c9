"""Visibility rules for conversations."""

from __future__ import annotations

from typing import Collection, Optional

from elonara.domain.feed.schemas import ConversationRow


def feed_visible(
	conversation: ConversationRow,
	member_communities: Collection[int],
	*,
	community_privacy: Optional[str] = None,
) -> bool:
	"""Mirror of the privacy clause in `build_conversation_sql`.

	Feeds only list community conversations: public communities are open to
	everyone, private ones to active members.
	"""
	community_id = conversation.community_id or 0
	if community_id <= 0:
		return False
	privacy = community_privacy or conversation.community_privacy
	return privacy == "public" or community_id in set(member_communities)


def can_viewer_access(
	conversation: ConversationRow,
	viewer_id: int,
	member_communities: Collection[int],
	*,
	community_privacy: Optional[str] = None,
) -> bool:
	"""Single-conversation check.

	Community conversations follow the feed rule. Conversations outside any
	community are open when public, otherwise only to their author.
	"""
	community_id = conversation.community_id or 0
	if community_id <= 0:
		if conversation.privacy == "public":
			return True
		return viewer_id > 0 and conversation.author_id == viewer_id
	return feed_visible(conversation, member_communities, community_privacy=community_privacy)


__all__ = ["can_viewer_access", "feed_visible"]
