"""JSONL event logging for deskhub."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from .config import resolve_data_dir
from .fs.atomic import append_jsonl


def log_event(event: dict[str, Any]) -> None:
    payload = _build_payload(event)
    append_jsonl(_log_path("deskhub.log"), payload)


def _build_payload(source: dict[str, Any]) -> dict[str, Any]:
    payload = dict(source)
    payload.setdefault("ts", _now_iso())
    payload.setdefault("level", "INFO")
    payload.setdefault("project_id", None)
    payload.setdefault("label", None)
    return payload


def _log_path(filename: str) -> Path:
    return resolve_data_dir() / "logs" / filename


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")
