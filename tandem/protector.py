"""Line-level placeholder protection for content sent to translation providers.

Lines that must survive translation untouched (decorated notes, link lists,
bare URLs, images, embeds) are swapped for ``[NOTR-<n>-KEEP]`` tokens before
the text leaves the system and swapped back afterwards.

A provider may still translate or mangle a token. When that happens
``restore`` cannot find it, the original line is lost for that pass and the
damaged token stays in the output; see ``tandem.sanitizer`` for the cleanup
pass that runs afterwards.
"""

from __future__ import annotations

import logging
import re
from typing import AbstractSet, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .structures import ProtectedSpan, ProtectionResult

logger = logging.getLogger(__name__)

PLACEHOLDER_TEMPLATE = "[NOTR-{index}-KEEP]"
PLACEHOLDER_PATTERN = re.compile(r"\[NOTR-(\d+)-KEEP\]")

COMMENT_RULE = "comment"

SYMBOL_PREFIX_PATTERN = re.compile(
    "^[\u26a0\u2757\U0001f4a1\U0001f525\u2705\u274c\u2b50\U0001f4dd\U0001f4bb"
    "\U0001f3af\U0001f680\U0001f514\U0001f4cb\U0001f4ca\u26a1\U0001f389"
    "\U0001f6e0\U0001f517\U0001f4c1\U0001f4d6\U0001f4cc\ufe0f]+"
)
LINK_ITEM_PATTERN = re.compile(r"^\s*-\s*\[.*\]\(.*\)\s*$")
URL_PATTERN = re.compile(r"^https?://")
DOMAIN_PATTERN = re.compile(
    r"\b(docs\.docker\.com|github\.com|stackoverflow\.com|npmjs\.com|reactjs\.org)\b"
)
IMAGE_PATTERN = re.compile(r"^!\[.*\]\(.*\)$")
VIDEO_OPEN_PATTERN = re.compile(r"<video\s+.*?>")
YOUTUBE_EMBED_PATTERN = re.compile(r"<YouTubeEmbed\s+.*?/>")
BILIBILI_EMBED_PATTERN = re.compile(r"<BiliBiliEmbed\s+.*?/>")
VIDEO_CLOSE_LINE = "</video>"
VIDEO_FALLBACK_LINE = "  Your browser does not support the video tag."

LinePredicate = Callable[[str, str], bool]


def _is_embed(line: str, stripped: str) -> bool:
    return bool(
        VIDEO_OPEN_PATTERN.search(line)
        or line == VIDEO_CLOSE_LINE
        or line == VIDEO_FALLBACK_LINE
        or YOUTUBE_EMBED_PATTERN.search(line)
        or BILIBILI_EMBED_PATTERN.search(line)
    )


# Evaluated top to bottom, first match wins. Keep the order.
PROTECTION_RULES: Sequence[Tuple[str, LinePredicate]] = (
    ("symbol", lambda line, stripped: bool(SYMBOL_PREFIX_PATTERN.match(stripped))),
    ("link-item", lambda line, stripped: bool(LINK_ITEM_PATTERN.match(line))),
    ("url", lambda line, stripped: bool(URL_PATTERN.match(stripped))),
    ("domain", lambda line, stripped: bool(DOMAIN_PATTERN.search(line))),
    ("image", lambda line, stripped: bool(IMAGE_PATTERN.match(stripped))),
    ("embed", _is_embed),
)


def classify_line(line: str) -> Optional[str]:
    """Return the name of the first protection rule matching ``line``."""

    stripped = line.strip()
    for name, predicate in PROTECTION_RULES:
        if predicate(line, stripped):
            return name
    return None


def is_protected_line(line: str) -> bool:
    return classify_line(line) is not None


class ContentProtector:
    """Replaces untranslatable lines with placeholders and restores them."""

    def protect(
        self,
        text: str,
        extra_lines: Optional[AbstractSet[int]] = None,
    ) -> ProtectionResult:
        """Swap every protected line of ``text`` for a fresh placeholder.

        ``extra_lines`` holds 1-indexed line numbers that are protected even
        when no rule matches them (comment lines left out of translation).
        """

        forced = extra_lines or frozenset()
        # Tokens already present in the input are never handed out again,
        # otherwise restore would rewrite them too.
        taken = {match.group(0) for match in PLACEHOLDER_PATTERN.finditer(text)}

        placeholders: Dict[str, str] = {}
        spans: List[ProtectedSpan] = []
        filtered_lines: List[str] = []
        index = 0

        for line_number, line in enumerate(text.split("\n"), start=1):
            rule = classify_line(line)
            if rule is None and line_number in forced:
                rule = COMMENT_RULE
            if rule is None:
                filtered_lines.append(line)
                continue

            placeholder = PLACEHOLDER_TEMPLATE.format(index=index)
            while placeholder in taken:
                index += 1
                placeholder = PLACEHOLDER_TEMPLATE.format(index=index)
            index += 1

            placeholders[placeholder] = line
            spans.append(
                ProtectedSpan(placeholder=placeholder, original_line=line, rule=rule)
            )
            filtered_lines.append(placeholder)

        if spans:
            logger.debug("Protected %d of %d lines", len(spans), len(filtered_lines))
        return ProtectionResult(
            filtered="\n".join(filtered_lines),
            placeholders=placeholders,
            spans=spans,
        )

    def restore(self, translated_text: str, placeholders: Mapping[str, str]) -> str:
        """Put every recorded original line back in place of its token.

        All occurrences of each token are replaced in a single pass, so text
        brought back by one token is never rescanned for another.
        """

        if not placeholders:
            return translated_text

        tokens = sorted(placeholders, key=len, reverse=True)
        pattern = re.compile("|".join(re.escape(token) for token in tokens))
        return pattern.sub(lambda match: placeholders[match.group(0)], translated_text)

    @staticmethod
    def missing_placeholders(
        translated_text: str, placeholders: Mapping[str, str]
    ) -> List[str]:
        """Tokens that did not survive the translation round trip."""

        return [token for token in placeholders if token not in translated_text]

    @staticmethod
    def only_placeholders(result: ProtectionResult) -> bool:
        """True when nothing but whitespace and tokens is left to translate."""

        remainder = result.filtered
        for token in result.placeholders:
            remainder = remainder.replace(token, "")
        return not remainder.strip()
