"""Runtime logger setup for deskhub processes."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"
# Passed through ``extra=`` by request and view code.
CONTEXT_FIELDS = ("project_id", "label", "client")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def resolve_log_level(default: int = logging.INFO) -> int:
    name = os.environ.get("DESKHUB_LOG_LEVEL", "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def setup_logger(name: str, log_dir: Path, level: int | None = None) -> logging.Logger:
    """Attach the console and ``runtime.log`` JSON handlers to ``name`` once per process."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_dir.mkdir(parents=True, exist_ok=True)
    effective = resolve_log_level() if level is None else level
    logger.setLevel(effective)

    file_handler = logging.FileHandler(log_dir / "runtime.log", encoding="utf-8")
    file_handler.setFormatter(JsonFormatter())
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    for handler in (file_handler, console):
        handler.setLevel(effective)
        logger.addHandler(handler)
    return logger
