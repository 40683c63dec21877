"""Logging configuration for webreach entry points.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed here, once, by whichever entry point owns the process (the CLI or
a host application).
"""

from __future__ import annotations

import json
import logging
import sys

_LEVEL_MAP = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}


class JsonLineFormatter(logging.Formatter):
    """JSON formatter emitting one ``{"severity", "message", "logger", "time"}`` object per line."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object with severity."""
        entry = {
            "severity": _LEVEL_MAP.get(record.levelname, "DEFAULT"),
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str | None = None, json_lines: bool | None = None) -> None:
    """Install the root handler.

    Locally, uses a human-readable plain-text format.  When ``json_lines`` is
    set (or the environment is not ``local``), emits JSON lines instead.

    Args:
        level: Log level name; defaults to ``settings.logging.level``.
        json_lines: Force JSON output on or off; defaults to settings.
    """
    from webreach.settings import get_settings

    settings = get_settings()
    log_level = (level or settings.logging.level).upper()
    if json_lines is None:
        json_lines = settings.logging.json_lines or settings.env != "local"
    use_json = json_lines

    handler = logging.StreamHandler(sys.stderr)
    if use_json:
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s %(name)s - %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
    logging.root.handlers.clear()
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, log_level, logging.INFO))

    # Playwright's driver chatter is rarely useful at INFO
    logging.getLogger("asyncio").setLevel(logging.WARNING)
