"""Process-wide wiring for deskhub."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from .commands import HostCommands
from .config import ConfigLoader, resolve_data_dir, resolve_resource_root, write_yaml
from .logging_utils import setup_logger
from .projects import ProjectCatalog
from .resources.rewrite import DEFAULT_HOME_TARGETS, build_home_nav_fragment
from .resources.server import ResourceServer
from .views.registry import ViewRegistry, project_url
from .views.surface import HeadlessSurface, ViewSurface


class DeskhubCore:
    """Owns the resolved configuration and the long-lived components.

    The resource root is computed once here and shared read-only with every
    request handler; the view registry is the only mutable shared object.
    """

    def __init__(
        self,
        data_dir: Path | None = None,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        surface: ViewSurface | None = None,
        cwd: Path | None = None,
        packaged_dir: Path | None = None,
    ) -> None:
        self.data_dir = data_dir or resolve_data_dir()
        self.logs_dir = self.data_dir / "logs"
        self.logger = setup_logger("deskhub", self.logs_dir)
        self.config_loader = ConfigLoader(self.data_dir)
        self.cli_overrides = dict(cli_overrides or {})
        self.config = self.config_loader.resolve(self.cli_overrides).effective

        shell = self.config["shell"]
        rewrite_cfg = self.config.get("rewrite") or {}
        self.scheme = str(shell.get("scheme") or "myapp")
        self.resource_root = resolve_resource_root(self.config, cwd=cwd, packaged_dir=packaged_dir)
        self.catalog = ProjectCatalog.from_config(self.config)

        self.resources = ResourceServer(
            self.resource_root,
            scheme=self.scheme,
            home_nav=bool(rewrite_cfg.get("home_nav", True)),
            fragment=build_home_nav_fragment(rewrite_cfg.get("home_targets") or DEFAULT_HOME_TARGETS),
        )
        self.surface = surface or HeadlessSurface(supports_destroy=bool(shell.get("supports_destroy", True)))
        self.registry = ViewRegistry(
            self.surface,
            namespace=str(shell.get("label_prefix") or "child_"),
            url_builder=lambda project_id: project_url(project_id, self.scheme),
        )
        self.commands = HostCommands(self.resources, self.registry)

    def initialize(self) -> None:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.config_loader.global_config_path()
        if not config_path.exists():
            write_yaml(config_path, {"shell": {"mode": self.config["shell"]["mode"]}})
        self.logger.info("資源目錄：%s", self.resource_root)
