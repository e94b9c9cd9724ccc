"""Inbound command surface used by the host application."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from .resources.server import ResourceResponse, ResourceServer
from .views.errors import ViewError
from .views.registry import ViewRegistry, project_url
from .views.types import Geometry

logger = logging.getLogger(__name__)

ALL_VIEWS = "*"


@dataclass
class CommandResult:
    ok: bool
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if self.error is not None:
            payload["error"] = self.error
        if self.data:
            payload["data"] = self.data
        return payload


class UnknownCommand(KeyError):
    pass


class HostCommands:
    """Facade translating host commands into registry and server calls.

    Lifecycle failures come back as ``CommandResult(ok=False, error=...)``;
    nothing raised by the registry escapes to the host.
    """

    def __init__(self, server: ResourceServer, registry: ViewRegistry) -> None:
        self.server = server
        self.registry = registry
        self._handlers: dict[str, Callable[[Mapping[str, Any]], Any]] = {
            "resolve_resource": lambda args: self.resolve_resource(_require_str(args, "locator")),
            "create_view": lambda args: self.create_view(args.get("config", args)),
            "show_view": lambda args: self.show_view(_project_id(args)),
            "hide_view": lambda args: self.hide_view(_project_id(args)),
            "move_view": lambda args: self.move_view(_project_id(args), args),
            "sync_views": lambda args: self.move_view(ALL_VIEWS, args),
            "destroy_view": lambda args: self.destroy_view(_project_id(args)),
            "close_project_window": lambda args: self.destroy_view(_project_id(args)),
            "get_project_url": lambda args: self.get_project_url(_project_id(args)),
            "get_resource_dir": lambda args: self.get_resource_dir(),
            "list_views": lambda args: self.list_views(),
        }

    def resolve_resource(self, locator: str) -> ResourceResponse:
        return self.server.serve(locator)

    def create_view(self, config: Mapping[str, Any]) -> CommandResult:
        def _create() -> dict[str, Any]:
            project_id = _project_id(config)
            geometry = Geometry.from_mapping(config)
            created = self.registry.create(project_id, geometry, visible=bool(config.get("visible", True)))
            return {"created": created, "label": self.registry.label_for(project_id)}

        return self._run("create_view", _create)

    def show_view(self, project_id: str) -> CommandResult:
        return self._run("show_view", lambda: self.registry.show(project_id))

    def hide_view(self, project_id: str) -> CommandResult:
        return self._run("hide_view", lambda: self.registry.hide(project_id))

    def move_view(self, project_id: str, geometry: Geometry | Mapping[str, Any]) -> CommandResult:
        def _move() -> dict[str, Any] | None:
            target = geometry if isinstance(geometry, Geometry) else Geometry.from_mapping(geometry)
            if project_id == ALL_VIEWS:
                report = self.registry.sync_all(target)
                return {"updated": report.updated, "failed": report.failed}
            self.registry.move(project_id, target)
            return None

        return self._run("move_view", _move)

    def destroy_view(self, project_id: str) -> CommandResult:
        return self._run("destroy_view", lambda: {"outcome": self.registry.destroy(project_id).value})

    def get_project_url(self, project_id: str) -> CommandResult:
        return CommandResult(ok=True, data={"url": project_url(project_id, self.server.scheme)})

    def get_resource_dir(self) -> CommandResult:
        return CommandResult(ok=True, data={"path": str(Path(self.server.root))})

    def list_views(self) -> CommandResult:
        return CommandResult(ok=True, data={"views": [view.to_dict() for view in self.registry.snapshot()]})

    def dispatch(self, name: str, args: Mapping[str, Any] | None = None) -> Any:
        """Run a command by name; accepts ``showView`` as well as ``show_view``."""
        key = _snake_case(name)
        handler = self._handlers.get(key)
        if handler is None:
            raise UnknownCommand(name)
        try:
            return handler(args or {})
        except ValueError as exc:
            return CommandResult(ok=False, error=str(exc))

    def _run(self, command: str, action: Callable[[], Any]) -> CommandResult:
        try:
            data = action()
        except (ViewError, ValueError) as exc:
            logger.warning("%s 失敗：%s", command, exc)
            return CommandResult(ok=False, error=str(exc))
        return CommandResult(ok=True, data=data or {})


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name.strip()).lower()


def _project_id(args: Mapping[str, Any]) -> str:
    value = args.get("projectId", args.get("project_id"))
    if not isinstance(value, str) or not value:
        raise ValueError("請提供 projectId")
    return value


def _require_str(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str):
        raise ValueError(f"請提供 {key}")
    return value
