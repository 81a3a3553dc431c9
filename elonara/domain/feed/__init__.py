"""Conversation feed exports."""

from .access import can_viewer_access  # noqa: F401
from .repo import ConversationQuery, ConversationsRepository  # noqa: F401
from .schemas import ConversationRow, FeedFilter, FeedOptions, FeedPage, Pagination  # noqa: F401
from .service import FeedAssembler  # noqa: F401
