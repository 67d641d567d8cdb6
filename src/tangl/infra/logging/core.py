from __future__ import annotations

"""
Logging Core Orchestrator.

Idempotent setup of the root logger. Records go through a QueueHandler to a
QueueListener that owns the real console and file handlers, so slow file
I/O never blocks git orchestration.
"""

import atexit
import logging
import queue
from logging.handlers import QueueHandler, QueueListener
from typing import List, Optional

from tangl.infra.logging.config import LoggingConfig
from tangl.infra.logging.handlers import (
    console_handler,
    is_owned,
    mark_owned,
    rotating_file_handler,
)

_CONFIGURED_FLAG_ATTR: str = "_tangl_configured"
_QUEUE_LISTENER_ATTR: str = "_tangl_queue_listener"


# ==============================================================================
# PUBLIC API
# ==============================================================================

def configure_logging(cfg: LoggingConfig, *, force: bool = False) -> logging.Logger:
    """
    Configure the root logger once, or again when force is set.

    Args:
        cfg: Logging settings.
        force: If True, replace handlers installed by a previous call.

    Returns:
        logging.Logger: The root logger.
    """
    root = logging.getLogger()
    if getattr(root, _CONFIGURED_FLAG_ATTR, False) and not force:
        return root

    shutdown_logging()

    root.setLevel(cfg.level_number)
    setattr(root, _CONFIGURED_FLAG_ATTR, True)

    sinks: List[logging.Handler] = []
    if cfg.console:
        sinks.append(console_handler(cfg))
    file_handler = rotating_file_handler(cfg)
    if file_handler is not None:
        sinks.append(file_handler)

    if sinks:
        _attach_queue(root, sinks)
    return root


def shutdown_logging() -> None:
    """Flush pending records, close our handlers and allow reconfiguration."""
    root = logging.getLogger()
    listener = getattr(root, _QUEUE_LISTENER_ATTR, None)
    if listener is not None:
        _safe_stop_listener(listener)
        for sink in listener.handlers:
            sink.close()
        setattr(root, _QUEUE_LISTENER_ATTR, None)

    for handler in [h for h in root.handlers if is_owned(h)]:
        root.removeHandler(handler)
        handler.close()
    setattr(root, _CONFIGURED_FLAG_ATTR, False)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ==============================================================================
# PRIVATE HELPERS
# ==============================================================================

def _attach_queue(root: logging.Logger, sinks: List[logging.Handler]) -> None:
    records: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    front = mark_owned(QueueHandler(records))

    listener = QueueListener(records, *sinks, respect_handler_level=True)
    listener.start()
    root.addHandler(front)

    setattr(root, _QUEUE_LISTENER_ATTR, listener)
    atexit.register(_safe_stop_listener, listener)


def _safe_stop_listener(listener: Optional[QueueListener]) -> None:
    """
    Stop a QueueListener, tolerating listeners that were already stopped.

    The atexit hook may run after shutdown_logging() joined the thread.
    """
    if listener is None:
        return
    if getattr(listener, "_thread", None) is not None:
        listener.stop()
