"""High-level orchestration of a protected translation round trip."""

from __future__ import annotations

import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .comments import lines_to_shield
from .errors import (
    ErrorCategory,
    OverwriteRefusedError,
    TandemError,
    TranslationProviderError,
)
from .policy import ErrorPolicy
from .protector import ContentProtector
from .providers import TranslationProvider
from .sanitizer import cleanup, has_corrupted_placeholders
from .structures import CommentLine
from .usage import UsageStats

logger = logging.getLogger(__name__)


@dataclass
class TranslationOutcome:
    """Report returned after translating one piece of content.

    ``error`` carries the dismissible message when the provider call failed;
    ``text`` is then the untouched input.
    """

    text: str
    source_text: str
    provider_name: str
    target_language: str
    source_language: str | None
    protected_lines: int = 0
    lost_placeholders: List[str] = field(default_factory=list)
    tokens_used: int = 0
    cost: float = 0.0
    skipped: bool = False
    sanitized: bool = False
    error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ArticleOutcome:
    title: TranslationOutcome
    content: TranslationOutcome
    summary: TranslationOutcome

    @property
    def errors(self) -> List[str]:
        return [
            outcome.error
            for outcome in (self.title, self.content, self.summary)
            if outcome.error
        ]


class ContentTranslator:
    """Coordinates protection, the provider call, restoration and cleanup.

    The provider call blocks. Callers that run it off the UI thread must
    accept that a result arriving late still overwrites whatever the user
    typed in the meantime.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        stats: UsageStats,
        policy: ErrorPolicy | None = None,
        protector: ContentProtector | None = None,
        sanitize: bool = True,
    ) -> None:
        self.provider = provider
        self.stats = stats
        self.policy = policy or ErrorPolicy()
        self.protector = protector or ContentProtector()
        self.sanitize = sanitize

    def translate_content(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
        selected_comments: Iterable[CommentLine] | None = None,
        model: str | None = None,
        whole_text_is_code: bool = False,
    ) -> TranslationOutcome:
        """Translate markdown or code, keeping protected lines and code intact.

        Code lines (fenced blocks, or everything when ``whole_text_is_code``)
        are shielded except for the comment lines in ``selected_comments``.
        """

        start_time = time.time()
        outcome = TranslationOutcome(
            text=text,
            source_text=text,
            provider_name=self.provider.name,
            target_language=target_language,
            source_language=source_language,
        )

        shielded = lines_to_shield(
            text,
            selected_comments or (),
            whole_text_is_code=whole_text_is_code,
        )
        protection = self.protector.protect(text, extra_lines=shielded)
        outcome.protected_lines = len(protection.spans)

        if self.protector.only_placeholders(protection):
            logger.info("Nothing to translate: content is empty or fully protected.")
            outcome.skipped = True
            outcome.elapsed_seconds = time.time() - start_time
            return outcome

        result = self._call_provider(
            protection.filtered,
            source_language=source_language,
            target_language=target_language,
            model=model,
            outcome=outcome,
        )
        if result is None:
            outcome.elapsed_seconds = time.time() - start_time
            return outcome

        lost = self.protector.missing_placeholders(result, protection.placeholders)
        for token in lost:
            self.policy.handle_error(
                ErrorCategory.PLACEHOLDER_CORRUPTION,
                f"Placeholder {token} did not survive translation; "
                "its original line is lost for this pass.",
                details=protection.placeholders[token],
            )
        outcome.lost_placeholders = lost

        restored = self.protector.restore(result, protection.placeholders)
        if self.sanitize:
            if has_corrupted_placeholders(restored):
                logger.warning("Corrupted placeholders found in translated output.")
            cleaned = cleanup(restored)
            outcome.sanitized = cleaned != restored
            restored = cleaned

        outcome.text = restored
        outcome.elapsed_seconds = time.time() - start_time
        return outcome

    def translate_plain(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> TranslationOutcome:
        """Translate short fields (titles, summaries) without protection."""

        start_time = time.time()
        outcome = TranslationOutcome(
            text=text,
            source_text=text,
            provider_name=self.provider.name,
            target_language=target_language,
            source_language=source_language,
        )
        if not text.strip():
            outcome.skipped = True
            return outcome

        result = self._call_provider(
            text,
            source_language=source_language,
            target_language=target_language,
            model=model,
            outcome=outcome,
        )
        if result is not None:
            outcome.text = result
        outcome.elapsed_seconds = time.time() - start_time
        return outcome

    def translate_article(
        self,
        *,
        title: str,
        content: str,
        summary: str,
        source_language: str | None,
        target_language: str,
        selected_comments: Iterable[CommentLine] | None = None,
        model: str | None = None,
        whole_text_is_code: bool = False,
    ) -> ArticleOutcome:
        return ArticleOutcome(
            title=self.translate_plain(
                title,
                source_language=source_language,
                target_language=target_language,
                model=model,
            ),
            content=self.translate_content(
                content,
                source_language=source_language,
                target_language=target_language,
                selected_comments=selected_comments,
                model=model,
                whole_text_is_code=whole_text_is_code,
            ),
            summary=self.translate_plain(
                summary,
                source_language=source_language,
                target_language=target_language,
                model=model,
            ),
        )

    def _call_provider(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
        model: str | None,
        outcome: TranslationOutcome,
    ) -> str | None:
        try:
            result = self.provider.translate(
                text,
                source_language=source_language,
                target_language=target_language,
                model=model,
            )
        except TranslationProviderError as exc:
            outcome.error = self.policy.translation_unavailable(exc)
            return None

        self.stats.record(
            tokens=result.tokens_used,
            cost=result.cost,
            provider=result.provider_name or self.provider.name,
        )
        self.policy.record_success()
        outcome.tokens_used += result.tokens_used
        outcome.cost += result.cost
        return result.text


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable text or markdown file."
        )
    if not input_path.is_file():
        raise TandemError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )
