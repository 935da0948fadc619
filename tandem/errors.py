"""Error definitions and bookkeeping helpers for the Tandem pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional


class ErrorCategory(Enum):
    """Categorises handled failures so they can be reported and counted."""

    FILE_IO = auto()
    PATTERN_MISMATCH = auto()
    PLACEHOLDER_CORRUPTION = auto()
    EDITOR_NOT_READY = auto()
    DECORATION_APPLY = auto()
    TRANSLATION = auto()


class TandemError(Exception):
    """Base exception for all custom errors."""


class OverwriteRefusedError(TandemError):
    """Raised when attempting to overwrite an output without consent."""


class TranslationProviderConfigurationError(TandemError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(TandemError):
    """Raised when a translation call fails (network, timeout, quota)."""


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None


class ErrorTracker:
    """Counts handled errors: the current streak, the total and per category."""

    def __init__(self) -> None:
        self.last_category: Optional[ErrorCategory] = None
        self.consecutive = 0
        self.total = 0
        self.by_category: Dict[ErrorCategory, int] = {}

    def register(self, category: ErrorCategory) -> tuple[int, int]:
        """Count one error; return the (streak, total) after counting it."""

        self.consecutive = self.consecutive + 1 if category == self.last_category else 1
        self.last_category = category
        self.total += 1
        self.by_category[category] = self.by_category.get(category, 0) + 1
        return self.consecutive, self.total

    def reset_consecutive(self) -> None:
        """End the current streak after a successful operation."""

        self.consecutive = 0
        self.last_category = None
