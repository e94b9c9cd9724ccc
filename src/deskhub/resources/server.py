"""Resolve locators against an asset root and build responses."""

from __future__ import annotations

import errno
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..fs.safety import is_within
from .media import MediaType, classify
from .paths import DEFAULT_DOCUMENT, DEFAULT_SCHEME, Rejected, RejectReason, resolve_locator
from .rewrite import HOME_NAV_FRAGMENT, rewrite

logger = logging.getLogger(__name__)

UNSERVED_BODY = json.dumps({"error": "API endpoint not available in desktop app"}).encode("utf-8")
TEXT_PLAIN = "text/plain; charset=utf-8"
MISSING_ERRNOS = frozenset({errno.ENOENT, errno.ENOTDIR, errno.ENAMETOOLONG, errno.ELOOP})


@dataclass(frozen=True)
class ResolvedResource:
    path: Path
    media_type: MediaType
    rewritten: bool


@dataclass
class ResourceResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    resource: ResolvedResource | None = None

    @property
    def content_type(self) -> str | None:
        return self.headers.get("Content-Type")

    @property
    def ok(self) -> bool:
        return self.status == 200


def not_found(requested: str) -> ResourceResponse:
    return ResourceResponse(
        status=404,
        headers={"Content-Type": TEXT_PLAIN},
        body=f"檔案不存在：{requested}".encode("utf-8"),
    )


class ResourceServer:
    """Serve files from one asset root.

    Holds only read-only configuration, so one instance may be shared by any
    number of request threads.
    """

    def __init__(
        self,
        root: Path,
        *,
        scheme: str = DEFAULT_SCHEME,
        default_document: str = DEFAULT_DOCUMENT,
        home_nav: bool = True,
        fragment: str = HOME_NAV_FRAGMENT,
    ) -> None:
        self.root = Path(root)
        self.scheme = scheme
        self.default_document = default_document
        self.home_nav = home_nav
        self.fragment = fragment
        self._canonical_root = self.root.resolve()

    def serve(self, locator: str) -> ResourceResponse:
        resolved = resolve_locator(
            locator,
            self.root,
            scheme=self.scheme,
            default_document=self.default_document,
        )
        if isinstance(resolved, Rejected):
            return self._rejected(resolved)

        path = resolved.path
        try:
            if path.is_dir():
                path = path / self.default_document
            if not is_within(path.resolve(), self._canonical_root):
                logger.warning("拒絕越界路徑：%s", resolved.relative)
                return not_found(resolved.relative)
            body = path.read_bytes()
        except RuntimeError:
            # Symlink loops surface as RuntimeError from resolve() before 3.13.
            logger.warning("符號連結循環：%s", path)
            return not_found(resolved.relative)
        except OSError as exc:
            if exc.errno in MISSING_ERRNOS:
                logger.info("檔案不存在：%s", path)
                return not_found(resolved.relative)
            logger.error("讀取檔案失敗 %s：%s", path, exc)
            return ResourceResponse(
                status=500,
                headers={"Content-Type": TEXT_PLAIN},
                body=f"讀取檔案失敗：{exc}".encode("utf-8"),
            )

        media_type = classify(path)
        rewritten = False
        if self.home_nav and media_type.rewrite_eligible:
            updated = rewrite(body, media_type, fragment=self.fragment)
            rewritten = updated is not body
            body = updated
        logger.debug("已讀取 %s（%d bytes, %s）", path, len(body), media_type.value)
        return ResourceResponse(
            status=200,
            headers={"Content-Type": media_type.value},
            body=body,
            resource=ResolvedResource(path=path, media_type=media_type, rewritten=rewritten),
        )

    def _rejected(self, rejected: Rejected) -> ResourceResponse:
        if rejected.reason is RejectReason.UNSERVED:
            logger.info("API 請求不提供服務：%s", rejected.requested)
            return ResourceResponse(
                status=404,
                headers={"Content-Type": "application/json"},
                body=UNSERVED_BODY,
            )
        if rejected.reason is RejectReason.TRAVERSAL:
            logger.warning("拒絕越界路徑：%s", rejected.requested)
        return not_found(rejected.requested)
