"""Severity levels gating report delivery."""

from __future__ import annotations

from enum import IntEnum
import logging
from typing import Optional


class Severity(IntEnum):
    """Ordinal importance of an event. Higher is more important."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    NOTICE = 25
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def from_name(cls, name: str) -> Optional[Severity]:
        """Look up a level by name (case-insensitive). Unknown names give None."""
        return cls.__members__.get(name.strip().upper())

    @property
    def logging_level(self) -> int:
        """Closest stdlib logging level."""
        if self == Severity.NOTICE:
            return logging.INFO
        return int(self)


DEFAULT_SEVERITY = Severity.INFO
