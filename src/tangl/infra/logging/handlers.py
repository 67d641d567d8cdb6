from __future__ import annotations

"""
Logging Handlers.

Every handler tangl installs is marked, so reconfiguration and shutdown only
touch tangl's own handlers and leave those of pytest or a host program alone.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, TypeVar

from tangl.infra.logging.config import LoggingConfig

_OWNER_ATTR: str = "_tangl_handler"

H = TypeVar("H", bound=logging.Handler)


def mark_owned(handler: H) -> H:
    setattr(handler, _OWNER_ATTR, True)
    return handler


def is_owned(handler: logging.Handler) -> bool:
    return bool(getattr(handler, _OWNER_ATTR, False))


def console_handler(cfg: LoggingConfig) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(cfg.level_number)
    handler.setFormatter(logging.Formatter(cfg.console_fmt))
    return mark_owned(handler)


def rotating_file_handler(cfg: LoggingConfig) -> Optional[RotatingFileHandler]:
    """
    Open the rotating log file named by cfg, creating its directory.

    Returns:
        Optional[RotatingFileHandler]: None when cfg has no log file or it
        cannot be opened; the reason is written to stderr.
    """
    if not cfg.log_file:
        return None
    try:
        os.makedirs(os.path.dirname(os.path.abspath(cfg.log_file)), exist_ok=True)
        handler = RotatingFileHandler(
            cfg.log_file,
            maxBytes=int(cfg.max_bytes),
            backupCount=int(cfg.backup_count),
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"WARNING: cannot open log file '{cfg.log_file}': {e}\n")
        return None

    handler.setLevel(cfg.level_number)
    handler.setFormatter(logging.Formatter(cfg.file_fmt, datefmt=cfg.datefmt))
    return mark_owned(handler)
