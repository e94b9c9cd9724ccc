"""Asset resolution, classification and delivery."""

from .media import MediaType, classify
from .paths import DEFAULT_SCHEME, Rejected, RejectReason, ResourcePath, resolve_locator
from .rewrite import HOME_NAV_FRAGMENT, HOME_NAV_MARKER, build_home_nav_fragment, inject_path_fixer, rewrite
from .server import ResolvedResource, ResourceResponse, ResourceServer

__all__ = [
    "DEFAULT_SCHEME",
    "HOME_NAV_FRAGMENT",
    "HOME_NAV_MARKER",
    "MediaType",
    "Rejected",
    "RejectReason",
    "ResolvedResource",
    "ResourcePath",
    "ResourceResponse",
    "ResourceServer",
    "build_home_nav_fragment",
    "classify",
    "inject_path_fixer",
    "resolve_locator",
    "rewrite",
]
