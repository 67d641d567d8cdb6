from __future__ import annotations

"""
Logging Settings.

LoggingConfig is built from the tangl settings dictionary (log_level and
log_to_file) and carries everything configure_logging needs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

VALID_LEVELS = frozenset(_LEVEL_MAP)


@dataclass(frozen=True)
class LoggingConfig:
    """
    Immutable logging settings.

    Attributes:
        level: Minimum level name, e.g. 'WARNING' or 'DEBUG'.
        console: Write records to stderr.
        log_file: Rotating log file, or None for console only.
        max_bytes: Size at which the log file rolls over.
        backup_count: Rolled over files kept next to the log file.
        console_fmt: Record format on stderr.
        file_fmt: Record format in the log file.
        datefmt: Timestamp format of file records.
    """
    level: str = "WARNING"
    console: bool = True
    log_file: Optional[str] = None

    max_bytes: int = 1024 * 1024
    backup_count: int = 3

    console_fmt: str = "%(levelname)s | %(message)s"
    file_fmt: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], log_file: Optional[str] = None) -> LoggingConfig:
        """
        Map validated tangl settings onto logging settings.

        Args:
            settings: Configuration with 'log_level' and 'log_to_file'.
            log_file: Log file used when 'log_to_file' is set.
        """
        return cls(
            level=str(settings.get("log_level") or cls.level),
            log_file=log_file if settings.get("log_to_file") else None,
        )

    @property
    def level_number(self) -> int:
        """Numeric level, INFO when the name is unknown."""
        if not self.level:
            return logging.INFO
        return _LEVEL_MAP.get(str(self.level).strip().upper(), logging.INFO)
