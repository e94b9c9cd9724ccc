"""Locator resolution for project assets.

Turns a scheme-qualified locator such as ``myapp://studio/assets/app.js?v=3``
into a path under the asset root, or into a :class:`Rejected` outcome. Pure:
nothing here touches the filesystem.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import unquote

DEFAULT_SCHEME = "myapp"
DEFAULT_DOCUMENT = "index.html"
UNSERVED_MARKERS = ("/api/", "/session/", "/ai/")


class RejectReason(str, Enum):
    NOT_FOUND = "not_found"
    TRAVERSAL = "traversal"
    UNSERVED = "unserved"


@dataclass(frozen=True)
class ResourcePath:
    relative: str
    path: Path


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    requested: str


def strip_locator(locator: str, *, scheme: str = DEFAULT_SCHEME) -> str:
    """Drop the scheme prefix, query, fragment and leading ``./`` or ``/``."""
    text = locator or ""
    prefix = f"{scheme}://"
    if text.startswith(prefix):
        text = text[len(prefix) :]
    text = text.split("?", 1)[0]
    text = text.split("#", 1)[0]
    while True:
        if text.startswith("./"):
            text = text[2:]
        elif text.startswith("/"):
            text = text[1:]
        else:
            return text


def decode_locator(text: str) -> str:
    try:
        return unquote(text, errors="strict")
    except UnicodeDecodeError:
        return text


def is_unserved(path: str) -> bool:
    rooted = "/" + path
    return any(marker in rooted for marker in UNSERVED_MARKERS)


def resolve_locator(
    locator: str,
    root: Path,
    *,
    scheme: str = DEFAULT_SCHEME,
    default_document: str = DEFAULT_DOCUMENT,
) -> ResourcePath | Rejected:
    path = decode_locator(strip_locator(locator, scheme=scheme))

    if is_unserved(path):
        return Rejected(RejectReason.UNSERVED, path)

    if not path or path.endswith("/"):
        path = f"{path}{default_document}"

    relative = _normalize_relative(path)
    if relative is None:
        return Rejected(RejectReason.TRAVERSAL, path)
    if relative == ".":
        relative = default_document
    return ResourcePath(relative=relative, path=root.joinpath(*relative.split("/")))


def _normalize_relative(path: str) -> str | None:
    if "\x00" in path:
        return None
    normalized = path.replace("\\", "/")
    if normalized.startswith("/"):
        return None
    head = normalized.split("/", 1)[0]
    if head.endswith(":"):
        return None
    collapsed = posixpath.normpath(normalized)
    if collapsed == ".." or collapsed.startswith("../"):
        return None
    return collapsed
