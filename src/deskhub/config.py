"""Configuration helpers for deskhub."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .fs.atomic import atomic_write_text

MODE_DEVELOPMENT = "development"
MODE_PACKAGED = "packaged"
KNOWN_MODES = {MODE_DEVELOPMENT, MODE_PACKAGED}

DEFAULT_CONFIG: dict[str, Any] = {
    "shell": {
        "mode": MODE_DEVELOPMENT,
        "dev_resource_dir": "resources",
        "packaged_resource_dir": None,
        "scheme": "myapp",
        "label_prefix": "child_",
        "supports_destroy": True,
    },
    "rewrite": {
        "home_nav": True,
        "home_targets": [
            "app://localhost/",
            "app://localhost/index.html",
            "http://localhost:1420/",
            "http://localhost:1420/index.html",
        ],
    },
    "gateway": {
        "host": "127.0.0.1",
        "port": 5174,
        "path_fixer": False,
    },
    "listeners": {"host": "127.0.0.1"},
    "projects": [
        {
            "id": "studio",
            "name": "Studio",
            "description": "Studio 應用專案",
            "entry": "studio/dist/index.html",
            "port": 5174,
            "window": {"width": 1400, "height": 900, "resizable": True},
        },
        {
            "id": "project2",
            "name": "專案 2",
            "description": "第二個應用專案",
            "entry": "project2/dist/index.html",
            "port": 5175,
            "window": {"width": 1200, "height": 800, "resizable": True},
        },
        {
            "id": "project3",
            "name": "專案 3",
            "description": "第三個應用專案",
            "entry": "project3/dist/index.html",
            "port": 5176,
            "window": {"width": 1000, "height": 700, "resizable": True},
        },
    ],
}


def deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"讀取設定檔失敗：{path}") from exc


def write_yaml(path: Path, data: dict[str, Any]) -> None:
    try:
        atomic_write_text(path, yaml.safe_dump(data, allow_unicode=True, sort_keys=False), encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(f"寫入設定檔失敗：{path}") from exc


def set_config_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    parts = key_path.split(".")
    cursor = config
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
    return config


def get_config_value(config: dict[str, Any], key_path: str) -> Any:
    cursor: Any = config
    for part in key_path.split("."):
        if not isinstance(cursor, dict) or part not in cursor:
            raise KeyError(f"找不到設定鍵：{key_path}")
        cursor = cursor[part]
    return cursor


def _assign_sources(value: Any, source: str) -> Any:
    if isinstance(value, dict):
        return {key: _assign_sources(val, source) for key, val in value.items()}
    return source


def _merge_with_sources(
    base: dict[str, Any],
    sources: dict[str, Any],
    updates: Mapping[str, Any],
    source: str,
) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict) and isinstance(sources.get(key), dict):
            _merge_with_sources(base[key], sources[key], value, source)
        else:
            base[key] = deepcopy(value)
            sources[key] = _assign_sources(value, source)


def annotate_config(effective: Any, sources: Any) -> Any:
    if isinstance(effective, dict) and isinstance(sources, dict):
        return {key: annotate_config(effective[key], sources.get(key)) for key in effective}
    return {"value": effective, "source": sources}


@dataclass
class ConfigResolution:
    effective: dict[str, Any]
    sources: dict[str, Any]

    def annotated(self) -> dict[str, Any]:
        return annotate_config(self.effective, self.sources)


class ConfigLoader:
    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir or resolve_data_dir()

    def load_global(self) -> dict[str, Any]:
        return read_yaml(self.global_config_path())

    def resolve(self, cli_overrides: Mapping[str, Any] | None = None) -> ConfigResolution:
        effective = deepcopy(DEFAULT_CONFIG)
        sources = _assign_sources(DEFAULT_CONFIG, "default")

        _merge_with_sources(effective, sources, self.load_global(), "global")

        env_mode = os.environ.get("DESKHUB_MODE", "").strip()
        if env_mode:
            _merge_with_sources(effective, sources, {"shell": {"mode": env_mode}}, "env")

        if cli_overrides:
            _merge_with_sources(effective, sources, cli_overrides, "cli")

        return ConfigResolution(effective=effective, sources=sources)

    def global_config_path(self) -> Path:
        return self.data_dir / "config.yaml"


def resolve_data_dir() -> Path:
    env_path = os.environ.get("DESKHUB_HOME")
    if env_path:
        return Path(env_path).expanduser()
    return Path("~/.deskhub").expanduser()


def resolve_resource_root(
    config: Mapping[str, Any],
    *,
    cwd: Path | None = None,
    packaged_dir: Path | None = None,
) -> Path:
    """Pick the asset root for this process.

    Development mode serves ``<cwd>/<shell.dev_resource_dir>``; packaged mode
    serves the application-provided resource directory, taken from
    ``packaged_dir`` or ``shell.packaged_resource_dir``. Call once at startup
    and hand the result to every consumer.
    """

    shell = config.get("shell") or {}
    mode = str(shell.get("mode") or MODE_DEVELOPMENT).strip().lower()
    if mode not in KNOWN_MODES:
        raise ValueError(f"不支援的 shell.mode：{mode}")
    if mode == MODE_DEVELOPMENT:
        base = cwd or Path.cwd()
        return (base / str(shell.get("dev_resource_dir") or "resources")).resolve()
    resource_dir = packaged_dir or shell.get("packaged_resource_dir")
    if not resource_dir:
        raise ValueError("packaged 模式需要提供資源目錄（shell.packaged_resource_dir）")
    return Path(resource_dir).expanduser().resolve()
