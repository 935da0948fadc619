"""Removal of leftover and corrupted placeholder fragments.

Runs after a translation round trip, before text is persisted or shown
again. Providers sometimes insert spaces into tokens, change their case or
translate parts of them; restore() cannot match those, so they are removed
here instead.
"""

from __future__ import annotations

import re
from typing import Sequence

CANONICAL_PLACEHOLDER = re.compile(r"\[NOTR-\d+-KEEP\]")

# Canonical token plus mangled variants: spaces, other dashes, full-width
# or missing brackets.
LOOSE_PLACEHOLDER = re.compile(
    r"[\[［【]?[ \t]*NOTR[ \t]*[-–—_ ][ \t]*\d+[ \t]*[-–—_ ][ \t]*KEEP[ \t]*[\]］】]?",
    re.IGNORECASE,
)

# Older placeholder family and the corrupted forms seen in stored content.
LEGACY_PLACEHOLDERS: Sequence[re.Pattern[str]] = (
    re.compile(r"___TRANSLATION_PROTECT_\d+_\d+___", re.IGNORECASE),
    re.compile(r"__ Protected_\d+_\d+__", re.IGNORECASE),
    re.compile(r"__PROTECTED_\d+_\d+__", re.IGNORECASE),
    re.compile(r"__ Translation_Protect_\d+_\d+__", re.IGNORECASE),
    re.compile(r"_TRANSLATION_PROTECT_\d+_\d+_", re.IGNORECASE),
    re.compile(r"TRANSLATION_PROTECT_\d+_\d+", re.IGNORECASE),
    re.compile(r"Protected_\d+_\d+", re.IGNORECASE),
)

# Underscores left at a line start once the token text itself is gone.
LEFTOVER_UNDERSCORES: Sequence[re.Pattern[str]] = (
    re.compile(r"^_+(?=<YouTubeEmbed)", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^_+(?=<BilibiliEmbed)", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^_+(?=```)", re.MULTILINE),
    re.compile(r"^_+(?=<[a-zA-Z])", re.MULTILINE),
)

CORRUPTED_LEGACY: Sequence[re.Pattern[str]] = (
    re.compile(r"__ Protected_\d+_\d+__", re.IGNORECASE),
    re.compile(r"__ Translation_Protect_\d+_\d+__", re.IGNORECASE),
)

SPREAD_BLANK_LINES = re.compile(r"\n\s*\n\s*\n")
EXCESS_NEWLINES = re.compile(r"\n{3,}")


def _single_pass(text: str) -> str:
    cleaned = CANONICAL_PLACEHOLDER.sub("", text)
    cleaned = LOOSE_PLACEHOLDER.sub("", cleaned)
    for pattern in LEGACY_PLACEHOLDERS:
        cleaned = pattern.sub("", cleaned)
    for pattern in LEFTOVER_UNDERSCORES:
        cleaned = pattern.sub("", cleaned)

    cleaned = SPREAD_BLANK_LINES.sub("\n\n", cleaned)
    cleaned = EXCESS_NEWLINES.sub("\n\n", cleaned)
    return cleaned.strip()


def cleanup(text: str) -> str:
    """Strip placeholder debris and normalise blank lines.

    Removing one fragment can join the halves of another, so passes repeat
    until the text stops changing. Every pass only deletes characters, which
    bounds the loop and makes the function idempotent.
    """

    current = text
    while True:
        cleaned = _single_pass(current)
        if cleaned == current:
            return cleaned
        current = cleaned


def has_corrupted_placeholders(text: str) -> bool:
    """Detect damaged tokens without modifying anything.

    Intact ``[NOTR-<n>-KEEP]`` tokens do not count as corrupted.
    """

    for match in LOOSE_PLACEHOLDER.finditer(text):
        if not CANONICAL_PLACEHOLDER.fullmatch(match.group(0)):
            return True
    return any(pattern.search(text) for pattern in CORRUPTED_LEGACY)
