"""Translation provider abstractions."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Mapping

from .configuration import REQUIRED_CREDENTIALS, normalise_backend
from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .structures import TranslationResult

logger = logging.getLogger(__name__)

# USD per one million tokens (input, output).
MODEL_PRICING: Mapping[str, tuple[float, float]] = {
    "gpt-5-mini": (0.25, 2.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gpt-4.1-mini": (0.40, 1.60),
}


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Rough cost of one call; unknown models are treated as free."""

    input_rate, output_rate = MODEL_PRICING.get(model, (0.0, 0.0))
    return (input_tokens * input_rate + output_tokens * output_rate) / 1_000_000


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "provider"

    @abstractmethod
    def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> TranslationResult:
        """Translate ``text`` and report the usage of the call.

        Any failure surfaces as ``TranslationProviderError``.
        """


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> TranslationResult:
        return TranslationResult(text=text, provider_name=self.name)


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-5-mini"

    SYSTEM_PROMPT = (
        "You are a professional translator for technical articles. "
        "Translate the user's markdown into the requested language. "
        "Preserve markdown structure, code fences, inline code and line breaks. "
        "Copy every token shaped like [NOTR-<number>-KEEP] exactly as it appears, "
        "on its own line. Return only the translated text without commentary."
    )

    def __init__(
        self,
        *,
        debug: bool = False,
        credentials: Mapping[str, str | None] | None = None,
    ) -> None:
        self.debug = debug
        self._source: Mapping[str, str | None] = (
            credentials if credentials is not None else os.environ
        )
        self.backend = normalise_backend(self._source.get("LLM_PROVIDER"))
        self._client, self._default_model = self._connect()

    def _connect(self) -> tuple[Any, str]:
        """Create the SDK client for the configured backend."""

        credentials = {
            name: self._source.get(name) for name in REQUIRED_CREDENTIALS[self.backend]
        }
        missing = [name for name, value in credentials.items() if not value]
        if missing:
            raise TranslationProviderConfigurationError(
                f"{self.backend} credentials missing: {', '.join(missing)}. "
                "Set them or run with the echo provider."
            )

        if self.backend == "azure_openai":
            from openai import AzureOpenAI

            client = AzureOpenAI(
                api_key=credentials["AZURE_OPENAI_API_KEY"],
                api_version=credentials["AZURE_OPENAI_API_VERSION"],
                azure_endpoint=credentials["AZURE_OPENAI_ENDPOINT"],
            )
            return client, str(credentials["AZURE_OPENAI_DEPLOYMENT_NAME"])

        from openai import OpenAI

        return OpenAI(api_key=credentials["OPENAI_API_KEY"]), self.DEFAULT_MODEL

    def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> TranslationResult:
        if not text.strip():
            return TranslationResult(text=text, provider_name=self.name)

        chosen_model = model or self._default_model
        instructions = f"Target language: {target_language}."
        if source_language:
            instructions += f" Source language: {source_language}."
        self._log_debug("provider.request.instructions", instructions)
        self._log_debug("provider.request.text", text)

        translated, input_tokens, output_tokens = self._invoke_model(
            instructions=instructions,
            text=text,
            model=chosen_model,
        )
        self._log_debug("provider.response.text", translated)

        return TranslationResult(
            text=translated,
            tokens_used=input_tokens + output_tokens,
            cost=estimate_cost(chosen_model, input_tokens, output_tokens),
            provider_name=self.name,
        )

    def _invoke_model(
        self,
        *,
        instructions: str,
        text: str,
        model: str,
    ) -> tuple[str, int, int]:
        """Call the Responses API; return text plus input/output token counts."""

        try:
            response = self._client.responses.create(
                model=model,
                instructions=f"{self.SYSTEM_PROMPT} {instructions}",
                input=text,
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        self._log_debug("provider.response.raw", self._safe_dump_response(response))

        output_text = getattr(response, "output_text", None)
        if not output_text:
            raise TranslationProviderError(
                "Translation provider response empty or unrecognised."
            )
        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "input_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "output_tokens", 0) or 0)
        return self._strip_code_fence(str(output_text)), input_tokens, output_tokens

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not getattr(self, "debug", False):
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        logger.debug("%s:\n%s", label, message)

    def _safe_dump_response(self, response: Any) -> Any:
        """Best-effort conversion of SDK response objects into JSON-friendly data."""

        for attr in ("model_dump_json", "model_dump"):
            candidate = getattr(response, attr, None)
            if candidate:
                try:
                    data = candidate()
                    if isinstance(data, str):
                        return json.loads(data)
                    return data
                except (TypeError, ValueError):
                    continue
        return str(response)

    def _strip_code_fence(self, text: str) -> str:
        """Remove a fence the model wrapped around the whole answer."""

        stripped = text.strip()
        if not stripped.startswith("```") or not stripped.endswith("```"):
            return text

        first_newline = stripped.find("\n")
        if first_newline == -1:
            return text
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.rstrip("\n")


class LegacyOpenAITranslationProvider(OpenAITranslationProvider):
    """Translation provider that uses the Chat Completions API for compatibility."""

    name = "legacy-openai"

    def _invoke_model(
        self,
        *,
        instructions: str,
        text: str,
        model: str,
    ) -> tuple[str, int, int]:
        """Call the Chat Completions API; return text plus token counts."""

        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=0,
                messages=[
                    {"role": "system", "content": f"{self.SYSTEM_PROMPT} {instructions}"},
                    {"role": "user", "content": text},
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        self._log_debug("provider.response.raw", self._safe_dump_response(response))

        content: str | None = None
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            message_content = getattr(message, "content", None)
            if message_content:
                content = str(message_content)
                break

        if content is None:
            raise TranslationProviderError(
                "Translation provider response empty or unrecognised."
            )

        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "prompt_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "completion_tokens", 0) or 0)
        return self._strip_code_fence(content), input_tokens, output_tokens


def build_provider(
    name: str | None,
    *,
    debug: bool = False,
    credentials: Mapping[str, str | None] | None = None,
) -> TranslationProvider:
    """Create a provider by name.

    ``credentials`` overrides the process environment as the source of API
    keys and the LLM_PROVIDER backend switch.
    """

    normalized = (name or "openai").strip().lower()
    if normalized in {"openai", "gpt", "default"}:
        return OpenAITranslationProvider(debug=debug, credentials=credentials)
    if normalized in {"legacy-openai", "legacy_openai", "legacy", "openai-legacy"}:
        return LegacyOpenAITranslationProvider(debug=debug, credentials=credentials)
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
