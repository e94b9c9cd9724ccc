"""Media type inference for project assets."""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath


class MediaType(str, Enum):
    HTML = "text/html"
    CSS = "text/css"
    JAVASCRIPT = "application/javascript"
    JSON = "application/json"
    PNG = "image/png"
    JPEG = "image/jpeg"
    SVG = "image/svg+xml"
    GIF = "image/gif"
    ICON = "image/x-icon"
    WOFF = "font/woff"
    WOFF2 = "font/woff2"
    TTF = "font/ttf"
    OTF = "font/otf"
    WASM = "application/wasm"
    BINARY = "application/octet-stream"

    @property
    def rewrite_eligible(self) -> bool:
        return self is MediaType.HTML


EXTENSION_MEDIA_TYPES: dict[str, MediaType] = {
    "html": MediaType.HTML,
    "htm": MediaType.HTML,
    "css": MediaType.CSS,
    "js": MediaType.JAVASCRIPT,
    "mjs": MediaType.JAVASCRIPT,
    "json": MediaType.JSON,
    "png": MediaType.PNG,
    "jpg": MediaType.JPEG,
    "jpeg": MediaType.JPEG,
    "svg": MediaType.SVG,
    "gif": MediaType.GIF,
    "ico": MediaType.ICON,
    "woff": MediaType.WOFF,
    "woff2": MediaType.WOFF2,
    "ttf": MediaType.TTF,
    "otf": MediaType.OTF,
    "wasm": MediaType.WASM,
}


def classify(path: str | PurePath) -> MediaType:
    suffix = PurePath(str(path)).suffix
    return EXTENSION_MEDIA_TYPES.get(suffix[1:].lower(), MediaType.BINARY)
