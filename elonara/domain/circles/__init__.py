"""Trust circles domain exports."""

from .cache import CircleCache, PostgresCircleCache, RedisCircleCache, build_cache  # noqa: F401
from .directory import CommunityDirectory  # noqa: F401
from .exceptions import (  # noqa: F401
	CircleError,
	InvalidArgument,
	InvalidUserId,
	SelfLinkError,
	StoreFailure,
	UnknownCircle,
)
from .graph import CircleGraph  # noqa: F401
from .interactions import link_on_invitation_accept, link_on_reply  # noqa: F401
from .links import LinkStore  # noqa: F401
from .models import DEFAULT_MAX_HOPS, Circle, CircleContext, PeerLink  # noqa: F401
from .scope import CommunityScopeResolver  # noqa: F401
