"""Settings for Tandem, layered with prepper.

Sources, lowest precedence first: discovered ``tandem.yaml`` files, the
``.env`` file of the working directory, then the process environment.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Sequence, Tuple

from dotenv import dotenv_values
from prepper import (
    ConfigNotFound,
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import TranslationProviderConfigurationError

APP_NAME = "Tandem"

# Providers that never reach a remote service and need no credentials.
OFFLINE_PROVIDERS = frozenset({"echo", "noop", "mock"})

BACKEND_ALIASES = {
    "azure_open_ai": "azure_openai",
    "azureopenai": "azure_openai",
    "azure": "azure_openai",
}

REQUIRED_CREDENTIALS: Mapping[str, Tuple[str, ...]] = {
    "openai": ("OPENAI_API_KEY",),
    "azure_openai": (
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_API_VERSION",
        "AZURE_OPENAI_DEPLOYMENT_NAME",
    ),
}


def normalise_backend(value: str | None) -> str:
    """Map free-form LLM_PROVIDER values onto a supported backend name."""

    key = (value or "openai").strip().lower().replace("-", "_")
    key = BACKEND_ALIASES.get(key, key)
    return key if key in REQUIRED_CREDENTIALS else "openai"


class TandemConfig(SchemaModel):
    """Every option the CLI and the review window understand."""

    LLM_PROVIDER: Literal["azure_openai", "openai"] = Field(
        default="openai",
        description="Backend used by the OpenAI providers.",
    )
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    TANDEM_PROVIDER: str = Field(
        default="openai",
        description="Translation provider used by the CLI and review window.",
    )
    TANDEM_MODEL: str | None = Field(default=None)
    TANDEM_PROVIDER_DEBUG: bool = Field(default=False)
    TANDEM_DECORATION_DELAY_MS: int = Field(
        default=500,
        description="Quiet period before untranslated-line highlights refresh.",
    )
    TANDEM_SANITIZE_OUTPUT: bool = Field(
        default=True,
        description="Remove leftover placeholder fragments after translation.",
    )

    @model_validator(mode="before")
    def _normalise(data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        backend = data.get("LLM_PROVIDER")
        if isinstance(backend, str):
            data["LLM_PROVIDER"] = normalise_backend(backend)

        provider = data.get("TANDEM_PROVIDER")
        if isinstance(provider, str):
            data["TANDEM_PROVIDER"] = provider.strip().lower() or "openai"
        return data


def _read_yaml_layers(app_dir: Path, provenance: ProvenanceRecorder) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for path, label in discover_file_paths(APP_NAME, "yaml", app_dir=app_dir, extra_paths=None):
        document = _parse_file(path, "yaml")
        if not isinstance(document, Mapping):
            raise IoError(f"{path} must contain a mapping at the top level.")
        merge_layer(
            merged,
            document,
            provenance=provenance,
            source=_path_to_source(label, "yaml", path),
            layer="file",
        )
    return merged


def _env_layers(app_dir: Path) -> Sequence[Tuple[str, Mapping[str, str]]]:
    layers = []
    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        values = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        layers.append((".env", values))
    layers.append(("process", dict(os.environ)))
    return layers


def _apply_env_layers(
    merged: Dict[str, Any],
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> None:
    known = set(TandemConfig.__field_infos__)
    for origin, values in _env_layers(app_dir):
        for key in sorted(known.intersection(values)):
            merge_layer(
                merged,
                {key: values[key]},
                provenance=provenance,
                source=f"env:{origin}:{key}",
                layer="env",
            )


def missing_credentials(settings: TandemConfig) -> list[str]:
    """Credential fields the selected backend needs but that are unset."""

    if settings.TANDEM_PROVIDER in OFFLINE_PROVIDERS:
        return []
    return [
        name
        for name in REQUIRED_CREDENTIALS[settings.LLM_PROVIDER]
        if not getattr(settings, name)
    ]


def _check(settings: TandemConfig) -> None:
    problems: list[str] = []
    missing = missing_credentials(settings)
    if missing:
        problems.append(
            f"LLM_PROVIDER '{settings.LLM_PROVIDER}' needs: {', '.join(missing)}."
        )
    if settings.TANDEM_DECORATION_DELAY_MS < 0:
        problems.append("TANDEM_DECORATION_DELAY_MS cannot be negative.")
    if problems:
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n"
            + "\n".join(f"- {problem}" for problem in problems)
        )


def _describe_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    lines: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            where = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            where = str(path)
        text = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        lines.append(
            "- "
            + (f"{where}: " if where else "")
            + text
            + (f" (source: {source})" if source else "")
        )
    return "Configuration validation errors detected:\n" + "\n".join(lines)


@lru_cache(maxsize=1)
def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Load, validate and cache the layered configuration."""

    base_dir = app_dir or Path.cwd()
    provenance = ProvenanceRecorder()
    try:
        merged = _read_yaml_layers(base_dir, provenance)
        _apply_env_layers(merged, app_dir=base_dir, provenance=provenance)
        model = TandemConfig.validate(merged, provenance=provenance)
    except ConfigNotFound as exc:
        raise TranslationProviderConfigurationError(
            "No configuration sources were found. Provide settings via tandem.yaml, "
            "a .env file, or environment variables."
        ) from exc
    except IoError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc
    except ValidationError as exc:
        raise TranslationProviderConfigurationError(
            _describe_validation_errors(exc.to_dict())
        ) from exc

    _check(model)
    return ConfigInstance(
        model=model,
        provenance=provenance,
        env_prefix=None,
        schema_cls=TandemConfig,
    )


def get_settings(app_dir: Path | None = None) -> TandemConfig:
    """Typed view of ``get_config``."""

    return get_config(app_dir=app_dir).model()


def provider_credentials(app_dir: Path | None = None) -> Dict[str, str | None]:
    """Backend switch and API credentials as resolved from every layer."""

    settings = get_settings(app_dir=app_dir)
    names = {"LLM_PROVIDER"}
    for required in REQUIRED_CREDENTIALS.values():
        names.update(required)
    return {name: getattr(settings, name) for name in sorted(names)}
