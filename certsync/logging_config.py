"""
Logging Configuration — Structured logging for sync runs.

Two output formats share one set of structured fields:
- json: one object per line, for log shippers in the cluster
- text: colored single lines for a terminal

Sync log events carry `action`, `store`, `secret_namespace`, `secret_name`
and, depending on the outcome, `store_id` or `step` and `error`. They are
passed through `extra=` and picked up here; the JSON formatter emits them as
top-level keys, the text formatter appends the identifying ones.

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from certsync.logging_config import setup_logging

    setup_logging()  # Call once at startup
    logger.info("synced", extra={"store": "cloudflare", "store_id": "abc"})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

SYNC_FIELDS = (
    "action",
    "store",
    "secret_namespace",
    "secret_name",
    "store_id",
    "step",
    "error",
)

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("urllib3", "httpx", "httpcore", "kubernetes")


def sync_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Structured sync fields present on a record."""
    return {
        name: getattr(record, name)
        for name in SYNC_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    {"ts": "...", "level": "...", "logger": "...", "message": "...",
     "store": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(sync_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """
    Terminal formatter.

    12:34:56 INFO    [sync           ] Message (store=cloudflare step=upsert)
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    # Fields already spelled out in sync messages are left off the line
    SHOWN_FIELDS = ("store", "step", "error")

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = f"{record.levelname:7}"
        if sys.stderr.isatty():
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        source = record.name.rsplit(".", 1)[-1][:15]
        line = f"{clock} {level} [{source:15}] {record.getMessage()}"

        fields = sync_fields(record)
        shown = [f"{k}={fields[k]}" for k in self.SHOWN_FIELDS if k in fields]
        if shown and record.levelno >= logging.WARNING:
            line += f" ({' '.join(shown)})"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Falls back to LOG_LEVEL, then INFO.
        format_type: json or text. Falls back to LOG_FORMAT, then text.
    """
    log_level = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT") or "text").lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if log_format == "json" else HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={log_level}, format={log_format}"
    )
