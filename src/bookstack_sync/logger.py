"""Logging setup for the bookstack-sync command line.

Records go to stderr, keeping stdout for tables, JSON reports and
exported pages.  A log file can be added on top.
"""

import json
import logging
import os
import sys

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUIET_LOGGERS = ("urllib3", "requests")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``msg``
    and, for exceptions, ``exc``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(style: str, include_logger: bool) -> logging.Formatter:
    if style == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    prefix = "[%(asctime)s] [%(levelname)s] "
    if include_logger:
        prefix += "%(name)s "
    return logging.Formatter(prefix + "%(message)s", datefmt=DATE_FORMAT)


def _resolve_level(debug: bool, configured: str | None) -> int:
    if debug:
        return logging.DEBUG
    name = os.getenv("LOG_LEVEL") or configured or "INFO"
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure the root logger.

    Level precedence: *debug*, then ``LOG_LEVEL``, then *level* from the
    config file, then INFO.  Unknown level names fall back to INFO.

    Args:
        debug: Force DEBUG.
        log_file: Also append records to this file.  ``LOG_FILE`` is used
            when omitted.
        debug_format: ``"text"`` or ``"json"``.
        level: Level name from the ``logging`` config section.
    """
    log_level = _resolve_level(debug, level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(debug_format, include_logger=False))
    handlers: list[logging.Handler] = [console]

    target = log_file or os.getenv("LOG_FILE")
    if target:
        to_file = logging.FileHandler(target, mode="a")
        to_file.setFormatter(_formatter(debug_format, include_logger=True))
        handlers.append(to_file)

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
