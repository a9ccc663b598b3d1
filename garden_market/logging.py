"""
Logging setup shared by every garden_market module.

Modules ask for a logger with get_logger(__name__). The root handler is
installed once, on first import, unless the host application already
configured one:

    LOG_LEVEL   level name for the root logger (default INFO)
    LOG_FORMAT  "simple" drops timestamps for collectors that add their own

Garden ids and plant names come from the upstream catalog, so anything
interpolated into a message goes through the sanitize_* helpers first.
"""

import logging
import os
import sys
from functools import cache

_DETAILED = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

_ESCAPES = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": None})


def _install_root_handler() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    simple = os.environ.get("LOG_FORMAT", "").lower() == "simple"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_SIMPLE if simple else _DETAILED))
    root.setLevel(level)
    root.addHandler(handler)

    # One line per catalog request is noise at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


_install_root_handler()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _escape(value: object) -> str:
    # Line breaks would let a crafted name forge log records (CWE-117)
    return str(value).translate(_ESCAPES)


def sanitize_id_for_logging(id_value: str | None, max_length: int = 16) -> str:
    """Escaped garden/session id cut to max_length, or "N/A" when empty."""
    if not id_value:
        return "N/A"
    return _escape(id_value)[:max_length]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escaped free text such as a plant name; long values end in "..."."""
    if not value:
        return "N/A"
    safe_value = _escape(value)
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."
