"""
Log handlers for the ``recomator`` CLI.

The CLI calls ``configure_logging(config.logging)`` right after loading the
config; engine code only ever asks for ``logging.getLogger(__name__)``.

Output goes to stderr, leaving stdout to the recommendation tables, and
optionally to ``log_file``.  Per-recommendation events carry the record
name as ``extra={"rec_name": ...}``; with ``json_format = true`` every
extra is promoted to a key of the line::

    {"ts": "2026-10-19T15:00:00Z", "level": "INFO", "logger": "recomator.engine.watcher",
     "msg": "Applied successfully.", "rec_name": "projects/p/.../recommendations/r1"}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recomator.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Keys every LogRecord has; whatever else is on a record came from extra=.
_STANDARD_RECORD_KEYS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Third-party loggers that log each HTTP request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore")


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``msg``, extras."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                TIMESTAMP_FORMAT
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        line.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_RECORD_KEYS and not key.startswith("_")
        )
        if record.exc_info:
            line["exc"] = self.formatException(record.exc_info)
        return json.dumps(line, default=str)


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: "LoggingConfig") -> None:
    """Replace the root handlers according to ``config``."""
    level = logging.getLevelName(config.level)
    formatter = (
        JsonLineFormatter()
        if config.json_format
        else logging.Formatter(TEXT_FORMAT, datefmt=TIMESTAMP_FORMAT)
    )

    handlers = [_handler(logging.StreamHandler(sys.stderr), level, formatter)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _handler(logging.FileHandler(log_path, encoding="utf-8"), level, formatter)
        )

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # The watcher polls every few seconds; keep per-request lines out unless asked.
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
