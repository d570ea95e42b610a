from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_log_level(level_name: str | None) -> int:
    return _LEVELS.get((level_name or "INFO").upper(), logging.INFO)


def configure_logging(level_name: str | None = "INFO") -> None:
    """Send application logs to stdout. Safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(resolve_log_level(level_name))
    if any(getattr(handler, "_bridge_handler", False) for handler in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._bridge_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
