"""Single-port HTTP gateway serving every project and the host commands."""

from __future__ import annotations

import functools
import json
import logging
import sys
import traceback
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import unquote, urlparse

from .commands import CommandResult, HostCommands, UnknownCommand
from .core import DeskhubCore
from .logging import log_event
from .projects import ProjectCatalog
from .resources.media import MediaType
from .resources.rewrite import inject_path_fixer
from .resources.server import ResourceResponse

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class DeskhubThreadingHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def handle_error(self, request: Any, client_address: tuple[str, int]) -> None:
        exc_type, _, _ = sys.exc_info()
        if exc_type and issubclass(exc_type, (BrokenPipeError, ConnectionResetError, ConnectionAbortedError)):
            log_event(
                {
                    "level": "INFO",
                    "event": "gateway_client_disconnected",
                    "client": client_address[0] if client_address else "unknown",
                }
            )
            return
        super().handle_error(request, client_address)


class GatewayHandler(BaseHTTPRequestHandler):
    _MAX_BODY_BYTES = 1024 * 1024

    def __init__(
        self,
        *args: Any,
        commands: HostCommands,
        catalog: ProjectCatalog,
        path_fixer: bool = False,
        **kwargs: Any,
    ) -> None:
        self.commands = commands
        self.catalog = catalog
        self.path_fixer = path_fixer
        super().__init__(*args, **kwargs)

    def end_headers(self) -> None:
        for key, value in CORS_HEADERS.items():
            self.send_header(key, value)
        super().end_headers()

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(200)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path == "/health":
            self._send_json(200, {"status": "ok", "views": len(self.commands.registry)})
            return
        if parsed.path == "/v1/views":
            self._send_command_result(self.commands.list_views())
            return
        try:
            response = self._serve_asset(parsed.path)
        except Exception as exc:  # noqa: BLE001
            self._handle_error(exc)
            return
        self._send_resource(response)

    def do_POST(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if not parsed.path.startswith("/v1/commands/"):
            self._send_json(404, {"ok": False, "error": "Not Found"})
            return
        name = unquote(parsed.path[len("/v1/commands/") :]).strip("/")
        payload = self._read_json()
        if payload is None:
            self._send_json(400, {"ok": False, "error": "請提供 JSON 物件"})
            return
        try:
            result = self.commands.dispatch(name, payload)
        except UnknownCommand:
            self._send_json(404, {"ok": False, "error": f"未知的指令：{name}"})
            return
        except Exception as exc:  # noqa: BLE001
            self._handle_error(exc)
            return
        if isinstance(result, ResourceResponse):
            self._send_resource(result)
            return
        self._send_command_result(result)

    def _serve_asset(self, path: str) -> ResourceResponse:
        server = self.commands.server
        response = server.serve(f"{server.scheme}://{path.lstrip('/')}")
        if response.status == 404 and response.content_type != "application/json":
            fallback = self._serve_from_referer(path)
            if fallback is not None:
                response = fallback
        if self.path_fixer and response.ok and response.content_type == MediaType.HTML.value:
            html = response.body.decode("utf-8", errors="replace")
            response.body = inject_path_fixer(html, self._base_href(path)).encode("utf-8")
        return response

    def _serve_from_referer(self, path: str) -> ResourceResponse | None:
        """Retry root-absolute asset paths under the referring project."""
        first_segment = path.lstrip("/").split("/", 1)[0]
        if first_segment in self.catalog:
            return None
        referer_project = self._project_from_referer()
        candidates = [referer_project] if referer_project else self.catalog.ids()
        server = self.commands.server
        for project_id in candidates:
            project = self.catalog.get(project_id)
            if project is None:
                continue
            locator = f"{server.scheme}://{project.asset_subdir}/{path.lstrip('/')}"
            response = server.serve(locator)
            if response.status != 404:
                logger.info("依 referer 找到資源：%s -> %s", path, project.id)
                return response
        return None

    def _project_from_referer(self) -> str | None:
        referer = self.headers.get("Referer") or ""
        if not referer:
            return None
        segments = [segment for segment in urlparse(referer).path.split("/") if segment]
        for segment in segments:
            if segment in self.catalog:
                return segment
        return None

    def _base_href(self, path: str) -> str:
        clean = path.lstrip("/")
        for project in self.catalog:
            prefix = f"{project.asset_subdir}/"
            if clean.startswith(prefix):
                return f"/{prefix}"
        return "./"

    def _read_json(self) -> dict[str, Any] | None:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            return None
        if length < 0 or length > self._MAX_BODY_BYTES:
            return None
        raw = self.rfile.read(length) if length else b"{}"
        try:
            payload = json.loads(raw.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        return payload if isinstance(payload, dict) else None

    def _send_resource(self, response: ResourceResponse) -> None:
        self.send_response(response.status)
        for key, value in response.headers.items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        self.wfile.write(response.body)

    def _send_command_result(self, result: CommandResult) -> None:
        self._send_json(200 if result.ok else 400, result.to_dict())

    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _handle_error(self, exc: Exception, status: int = 500) -> None:
        log_event(
            {
                "level": "ERROR",
                "event": "gateway_error",
                "message": str(exc),
                "stack": traceback.format_exc(),
            }
        )
        self._send_json(status, {"ok": False, "error": str(exc)})


def build_gateway(core: DeskhubCore, host: str, port: int) -> DeskhubThreadingHTTPServer:
    gateway_cfg = core.config.get("gateway") or {}
    handler = functools.partial(
        GatewayHandler,
        commands=core.commands,
        catalog=core.catalog,
        path_fixer=bool(gateway_cfg.get("path_fixer", False)),
    )
    return DeskhubThreadingHTTPServer((host, port), handler)


def serve_gateway(core: DeskhubCore, *, host: str | None = None, port: int | None = None) -> None:
    gateway_cfg = core.config.get("gateway") or {}
    bind_host = host or str(gateway_cfg.get("host") or "127.0.0.1")
    bind_port = int(port if port is not None else gateway_cfg.get("port") or 5174)
    server = build_gateway(core, bind_host, bind_port)
    print(f"Gateway 已啟動：http://{bind_host}:{server.server_address[1]}")
    print(f"資源目錄：{core.resource_root}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("已停止 Gateway")
    finally:
        server.server_close()
