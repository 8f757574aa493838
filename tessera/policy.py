"""Warning policy for malformed-structure and lookup problems."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord, ErrorTracker, StrictModeAbort

logger = logging.getLogger(__name__)


class ErrorPolicy:
    """Records non-fatal problems and decides whether processing continues.

    Merging degrades gracefully by default. Callers that need byte-exact output
    construct the policy with ``strict=True`` so the first warning aborts.
    """

    def __init__(self, *, strict: bool = False, warning_limit: int = 0) -> None:
        self.strict = strict
        self.warning_limit = warning_limit
        self.records: List[ErrorRecord] = []
        self.tracker = ErrorTracker()

    @property
    def messages(self) -> List[str]:
        return [record.message for record in self.records]

    def handle_warning(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> None:
        """Record a warning; raise when strict or over the configured limit."""

        self.records.append(ErrorRecord(category=category, message=message, details=details))
        _, total, threshold = self.tracker.register(category, self.warning_limit)

        logger.warning(message)

        if self.strict:
            raise StrictModeAbort(f"Strict mode: {message}")
        if threshold:
            raise StrictModeAbort(
                f"Warning limit of {self.warning_limit} reached ({total} warnings). "
                "Stopping safely."
            )
