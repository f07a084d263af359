"""Logging configuration for the circulation engine.

Provides a JSON formatted logger named ``circulation``. Modules log through
``logging.getLogger(__name__)`` so their records propagate to it. The level
defaults to ``DEBUG`` on the console and can be lowered with the
``CIRC_LOG_LEVEL`` environment variable.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_NAME = "circulation"
LOG_FILE = Path("logs/circulation.log")
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 5

# Keys lifted out of ``extra`` into the top level of each JSON line.
TOP_LEVEL_KEYS = ("request_id", "operation")

_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields are nested under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="seconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {k: v for k, v in vars(record).items() if k not in _RESERVED}
        for key in TOP_LEVEL_KEYS:
            if extras.get(key) is not None:
                payload[key] = extras.pop(key)
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _env_level(default: int) -> int:
    raw = os.getenv("CIRC_LOG_LEVEL", "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    if not isinstance(level, int):
        raise RuntimeError(f"CIRC_LOG_LEVEL must be a logging level name, got {raw!r}")
    return level


def get_logger(level: int = logging.DEBUG, log_file: Path | None = None) -> logging.Logger:
    """Return the configured ``circulation`` logger.

    Handlers are attached once; later calls return the same logger untouched.
    The rotating file only receives ``INFO`` and above.
    """
    logger = logging.getLogger(LOG_NAME)
    if logger.handlers:
        return logger

    level = _env_level(level)
    logger.setLevel(level)
    formatter = JsonFormatter()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)

    path = log_file or LOG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    rotating = RotatingFileHandler(
        path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    rotating.setLevel(max(level, logging.INFO))
    rotating.setFormatter(formatter)

    logger.addHandler(console)
    logger.addHandler(rotating)
    # Records stop here so the root logger does not print them a second time.
    logger.propagate = False
    return logger
