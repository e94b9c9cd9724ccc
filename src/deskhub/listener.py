"""One TCP listener per project directory.

Alternate delivery topology: each project gets its own port and every
accepted connection is answered on its own thread by a minimal request-line
parser that hands the path to a :class:`ResourceServer`.
"""

from __future__ import annotations

import logging
import socketserver
import sys
import threading
from dataclasses import dataclass, field
from http import HTTPStatus
from pathlib import Path
from typing import Any

from .logging import log_event
from .projects import ProjectCatalog, ProjectSpec
from .resources.paths import DEFAULT_SCHEME
from .resources.rewrite import HOME_NAV_FRAGMENT
from .resources.server import ResourceResponse, ResourceServer

logger = logging.getLogger(__name__)

REQUEST_BUFFER_BYTES = 4096
NOT_FOUND_RESPONSE = b"HTTP/1.1 404 NOT FOUND\r\n\r\n404 Not Found"


def parse_request_line(data: bytes) -> tuple[str, str] | None:
    """Return ``(method, path)`` from the first request line, if well formed."""
    line = data.split(b"\r\n", 1)[0].split(b"\n", 1)[0]
    try:
        text = line.decode("latin-1")
    except UnicodeDecodeError:
        return None
    parts = text.split(" ")
    if len(parts) != 3 or not all(parts):
        return None
    method, path, _version = parts
    return method, path


def encode_response(response: ResourceResponse) -> bytes:
    try:
        reason = HTTPStatus(response.status).phrase
    except ValueError:
        reason = "Unknown"
    content_type = response.content_type or "application/octet-stream"
    head = (
        f"HTTP/1.1 {response.status} {reason}\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(response.body)}\r\n"
        "Access-Control-Allow-Origin: *\r\n"
        "\r\n"
    )
    return head.encode("latin-1") + response.body


class _AssetRequestHandler(socketserver.BaseRequestHandler):
    server: "StaticAssetListener"

    def handle(self) -> None:
        data = self.request.recv(REQUEST_BUFFER_BYTES)
        parsed = parse_request_line(data)
        if parsed is None or parsed[0] != "GET":
            self.request.sendall(NOT_FOUND_RESPONSE)
            return
        response = self.server.resources.serve(parsed[1])
        if response.status == 404:
            self.request.sendall(NOT_FOUND_RESPONSE)
            return
        self.request.sendall(encode_response(response))


class StaticAssetListener(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], resources: ResourceServer, *, project_id: str = "") -> None:
        self.resources = resources
        self.project_id = project_id
        super().__init__(address, _AssetRequestHandler)

    @property
    def port(self) -> int:
        return int(self.server_address[1])

    def handle_error(self, request: Any, client_address: tuple[str, int]) -> None:
        exc_type, exc, _ = sys.exc_info()
        if exc_type and issubclass(exc_type, (BrokenPipeError, ConnectionResetError, ConnectionAbortedError)):
            log_event(
                {
                    "level": "INFO",
                    "event": "listener_client_disconnected",
                    "project_id": self.project_id or None,
                    "client": client_address[0] if client_address else "unknown",
                }
            )
            return
        logger.error("處理連線失敗 %s：%s", self.project_id, exc, exc_info=True)


@dataclass
class ListenerGroup:
    listeners: dict[str, StaticAssetListener] = field(default_factory=dict)
    threads: dict[str, threading.Thread] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)

    def start(self, project_id: str, listener: StaticAssetListener) -> None:
        thread = threading.Thread(
            target=listener.serve_forever,
            name=f"deskhub-listener-{project_id}",
            daemon=True,
        )
        self.listeners[project_id] = listener
        self.threads[project_id] = thread
        thread.start()

    def ports(self) -> dict[str, int]:
        return {project_id: listener.port for project_id, listener in self.listeners.items()}

    def stop(self) -> None:
        for listener in self.listeners.values():
            listener.shutdown()
            listener.server_close()
        for thread in self.threads.values():
            thread.join(timeout=5)
        self.listeners.clear()
        self.threads.clear()


def start_project_listeners(
    catalog: ProjectCatalog,
    root: Path,
    *,
    host: str = "127.0.0.1",
    home_nav: bool = True,
    fragment: str = HOME_NAV_FRAGMENT,
    scheme: str = DEFAULT_SCHEME,
    port_overrides: dict[str, int] | None = None,
) -> ListenerGroup:
    """Bind a listener for every project whose asset directory exists.

    Missing directories and ports that fail to bind are logged and skipped;
    the remaining listeners still start.
    """

    group = ListenerGroup()
    for project in catalog:
        port = (port_overrides or {}).get(project.id, project.port)
        if port is None:
            continue
        reason = _start_one(
            group,
            project,
            root,
            host=host,
            port=port,
            resource_options={"home_nav": home_nav, "fragment": fragment, "scheme": scheme},
        )
        if reason:
            group.skipped[project.id] = reason
    return group


def _start_one(
    group: ListenerGroup,
    project: ProjectSpec,
    root: Path,
    *,
    host: str,
    port: int,
    resource_options: dict[str, Any],
) -> str | None:
    asset_dir = project.asset_dir(root)
    if not asset_dir.is_dir():
        logger.warning("專案目錄不存在，略過 %s：%s", project.id, asset_dir, extra={"project_id": project.id})
        return "missing_directory"
    resources = ResourceServer(asset_dir, **resource_options)
    try:
        listener = StaticAssetListener((host, port), resources, project_id=project.id)
    except OSError as exc:
        logger.error("無法綁定 %s:%s（%s）：%s", host, port, project.id, exc)
        log_event(
            {
                "level": "ERROR",
                "event": "listener_bind_failed",
                "project_id": project.id,
                "port": port,
                "message": str(exc),
            }
        )
        return "bind_failed"
    group.start(project.id, listener)
    logger.info("%s 伺服器啟動於 http://%s:%s", project.id, host, listener.port, extra={"project_id": project.id})
    return None
