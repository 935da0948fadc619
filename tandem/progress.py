"""Line-by-line translation progress for a source/target content pair."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence

from .comments import FENCE_MARKER
from .protector import is_protected_line

# Link items damaged by an earlier translation pass.
BROKEN_LINK_PATTERNS: Sequence[re.Pattern[str]] = (
    re.compile(r"^\s*-\s*\[.*\]\(___"),
    re.compile(r"^\s*-\s*\[.*\]\($"),
    re.compile(r"^\s*-\s*\[.*\]\(https?://"),
    re.compile(r"^\s*-\s*\[.*\]\(\s*$"),
    re.compile(r'^\s*"\s*-\s*\[.*\]\('),
)


@dataclass
class ProgressReport:
    total_lines: int = 0
    translated_lines: int = 0
    untranslated_lines: List[int] = field(default_factory=list)

    @property
    def untranslated_count(self) -> int:
        return len(self.untranslated_lines)

    @property
    def percentage(self) -> int:
        if not self.total_lines:
            return 100
        return round(self.translated_lines * 100 / self.total_lines)


def _skip_line(line: str) -> bool:
    if is_protected_line(line):
        return True
    return any(pattern.match(line) for pattern in BROKEN_LINK_PATTERNS)


def measure_progress(source: str, target: str) -> ProgressReport:
    """Count source lines that still need translating.

    Fenced code blocks and lines the protector keeps verbatim are ignored.
    A non-empty source line is untranslated when its target line is empty
    or identical after stripping. ``untranslated_lines`` holds 0-based indices.
    """

    source_lines = source.split("\n")
    target_lines = target.split("\n")
    report = ProgressReport()
    in_code_block = False

    for index in range(max(len(source_lines), len(target_lines))):
        source_line = source_lines[index].strip() if index < len(source_lines) else ""
        target_line = target_lines[index].strip() if index < len(target_lines) else ""

        if source_line.startswith(FENCE_MARKER):
            in_code_block = not in_code_block
            continue
        if in_code_block or not source_line or _skip_line(source_line):
            continue

        report.total_lines += 1
        if not target_line or target_line == source_line:
            report.untranslated_lines.append(index)
        else:
            report.translated_lines += 1

    return report
