"""Error definitions and policy helpers for the Tessera engine."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises runtime problems to apply policy thresholds."""

    ARGUMENT = auto()
    FILE_IO = auto()
    STRUCTURE = auto()
    SEQUENCE = auto()
    UNRESOLVED = auto()
    OTHER = auto()


class TesseraError(Exception):
    """Base exception for all custom errors."""


class ConversionError(TesseraError):
    """Raised when an input cannot be read or an output cannot be written."""


class TraceSequenceError(TesseraError):
    """Raised when structural trace sequence numbers repeat or go backwards."""


class MalformedDocumentError(TesseraError):
    """Raised when a native document cannot be parsed by its adapter."""


class StrictModeAbort(TesseraError):
    """Raised when the warning policy dictates termination."""


class UnsupportedFileTypeError(TesseraError):
    """Raised when no adapter handles an input file."""


class OverwriteRefusedError(TesseraError):
    """Raised when attempting to overwrite an output without consent."""


class ConfigurationError(TesseraError):
    """Raised when the configuration is invalid."""


@dataclass
class ErrorRecord:
    """Stores context for a handled warning."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None


class ErrorTracker:
    """Tracks warnings per category and in aggregate."""

    def __init__(self) -> None:
        self.by_category: Counter[ErrorCategory] = Counter()
        self.total: int = 0

    def register(self, category: ErrorCategory, limit: int = 0) -> tuple[int, int, bool]:
        """Register a new warning and return counters.

        ``limit`` of zero disables the aggregate threshold.
        """

        self.by_category[category] += 1
        self.total += 1
        threshold_reached = limit > 0 and self.total >= limit
        return self.by_category[category], self.total, threshold_reached
