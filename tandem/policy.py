"""Error handling policy implementation."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord, ErrorTracker

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ErrorCategory.TRANSLATION: logging.ERROR,
    ErrorCategory.FILE_IO: logging.ERROR,
    ErrorCategory.PLACEHOLDER_CORRUPTION: logging.WARNING,
    ErrorCategory.DECORATION_APPLY: logging.WARNING,
    ErrorCategory.PATTERN_MISMATCH: logging.INFO,
    ErrorCategory.EDITOR_NOT_READY: logging.DEBUG,
}


class ErrorPolicy:
    """Records handled failures; none of them ends the session.

    Provider failures are reduced to one dismissible message for the
    caller. Nothing is retried automatically.
    """

    def __init__(self) -> None:
        self.records: List[ErrorRecord] = []
        self.tracker = ErrorTracker()

    def record_success(self) -> None:
        """Reset consecutive counters after successful work."""

        self.tracker.reset_consecutive()

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> ErrorRecord:
        """Log and remember a failure."""

        record = ErrorRecord(category=category, message=message, details=details)
        self.records.append(record)
        consecutive, total = self.tracker.register(category)
        logger.log(
            _LOG_LEVELS[category],
            "%s (%d in a row, %d total)",
            message,
            consecutive,
            total,
        )
        return record

    def translation_unavailable(self, exc: Exception) -> str:
        """Record a failed provider call and return the message shown to the user."""

        message = f"Translation unavailable for this request. {exc}"
        self.handle_error(ErrorCategory.TRANSLATION, message, details=repr(exc))
        return message

    def messages(self, category: Optional[ErrorCategory] = None) -> List[str]:
        return [
            record.message
            for record in self.records
            if category is None or record.category == category
        ]
