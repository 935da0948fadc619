"""Core data structures for the Tandem translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List


ChangeCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]

UNTRANSLATED_STYLE = "untranslated-line"


@dataclass(frozen=True)
class ProtectedSpan:
    """A line swapped out for a placeholder token before translation."""

    placeholder: str
    original_line: str
    rule: str


@dataclass
class ProtectionResult:
    """Output of a protection pass: filtered text plus the token mapping."""

    filtered: str
    placeholders: Dict[str, str] = field(default_factory=dict)
    spans: List[ProtectedSpan] = field(default_factory=list)


class CommentType(Enum):
    HASH = "hash"
    SLASH = "slash"
    XML = "xml"
    OTHER = "other"


@dataclass
class CommentLine:
    """A comment-like line found in code content."""

    line_number: int
    original_line: str
    comment_text: str
    comment_type: CommentType
    is_selected: bool = False

    @property
    def key(self) -> tuple[int, str]:
        return self.line_number, self.comment_text


class Pane(Enum):
    ORIGINAL = "original"
    MODIFIED = "modified"


@dataclass(frozen=True)
class Decoration:
    """A line highlight applied to one pane of the review editor."""

    line_number: int
    start_column: int
    end_column: int
    style_class: str = UNTRANSLATED_STYLE
    whole_line: bool = True


@dataclass(frozen=True)
class TranslationResult:
    """What a provider returns for a single translation call."""

    text: str
    tokens_used: int = 0
    cost: float = 0.0
    provider_name: str = ""
