"""Link creation triggered by user interactions.

Two events connect users: replying to someone else's conversation, and
accepting a connection invitation. Both go through `LinkStore.create_link`,
so cached circles of both users are invalidated the same way.
"""

from __future__ import annotations

import logging

from elonara.domain.circles.links import LinkStore

logger = logging.getLogger(__name__)


async def _link(links: LinkStore, user_a: int, user_b: int, *, trigger: str) -> bool:
	if user_a <= 0 or user_b <= 0 or user_a == user_b:
		return False
	created = await links.create_link(user_a, user_b)
	if not created:
		logger.warning(
			"interaction did not produce a peer link",
			extra={"trigger": trigger, "link_user_id": user_a, "link_peer_id": user_b},
		)
	return created


async def link_on_reply(links: LinkStore, replier_id: int, author_id: int) -> bool:
	"""Connect a replier with the author they replied to.

	Anonymous and self replies are skipped and report False.
	"""
	return await _link(links, replier_id, author_id, trigger="reply")


async def link_on_invitation_accept(links: LinkStore, inviter_id: int, invitee_id: int) -> bool:
	"""Connect the inviter with the user accepting the invitation.

	Accepting an invitation from an existing peer succeeds without a write.
	The caller marks the invitation accepted only when this returns True.
	"""
	return await _link(links, inviter_id, invitee_id, trigger="invitation")
