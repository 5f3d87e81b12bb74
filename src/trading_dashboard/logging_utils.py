from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

# Context attached by the client and fetcher via ``extra=``.
_EXTRA_KEYS = ("endpoint", "generation", "status_code", "account_id")


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line, so CLI output can be piped into ``jq``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({key: getattr(record, key) for key in _EXTRA_KEYS if hasattr(record, key)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str, *, stream: TextIO | None = None) -> None:
    """Route all logging to ``stream`` (stderr by default; stdout carries command output)."""
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    # Transport chatter; the client logs its own failed requests.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonLineFormatter())
    root.addHandler(handler)
