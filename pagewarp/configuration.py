"""Prepper-backed configuration loader for Pagewarp."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Iterator, Literal, Mapping

from dotenv import dotenv_values
from prepper import (
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

APP_NAME = "Pagewarp"
PROVIDERS = ("openai", "azure_openai", "echo")


class PagewarpConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    LLM_PROVIDER: Literal["azure_openai", "openai", "echo"] = Field(
        default="openai",
        description="Translation provider selection.",
    )
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_MODEL: str | None = Field(default=None)
    PAGEWARP_BATCH_SIZE: int = Field(
        default=5000,
        description="Maximum characters per translation batch.",
    )
    PAGEWARP_REQUEST_TIMEOUT: float = Field(
        default=10.0,
        description="Seconds to wait for a cross-context acknowledgment.",
    )
    PAGEWARP_STATE_FILE: str | None = Field(
        default=None,
        description="Where the UI keeps its durable session state.",
    )
    PAGEWARP_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                synonyms = {
                    "azure_open_ai": "azure_openai",
                    "azureopenai": "azure_openai",
                    "noop": "echo",
                    "mock": "echo",
                }
                normalized = synonyms.get(normalized, normalized)
                if normalized not in PROVIDERS:
                    normalized = "openai"
                data["LLM_PROVIDER"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Merge every configuration layer into one cached instance."""

    base_dir = app_dir or Path.cwd()
    provenance = ProvenanceRecorder()
    try:
        combined: dict[str, Any] = {}
        for source, values in _yaml_layers(base_dir):
            merge_layer(combined, values, provenance=provenance, source=source, layer="file")
        for source, values in _env_layers(base_dir, PagewarpConfig):
            merge_layer(combined, values, provenance=provenance, source=source, layer="env")

        model = PagewarpConfig.validate(combined, provenance=provenance)
    except IoError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc
    except ValidationError as exc:
        issues = "\n".join(
            f"- {_describe_validation_error(entry)}" for entry in exc.to_dict()
        )
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + issues
        ) from exc

    _validate_limits(model)
    return ConfigInstance(
        model=model,
        provenance=provenance,
        env_prefix=None,
        schema_cls=PagewarpConfig,
    )


def _yaml_layers(app_dir: Path) -> Iterator[tuple[str, Mapping[str, Any]]]:
    """Yield ``(source, mapping)`` for every YAML file prepper discovers."""

    for path, label in discover_file_paths(APP_NAME, "yaml", app_dir=app_dir, extra_paths=None):
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(f"{path} must contain a mapping at the root.")
        yield _path_to_source(label, "yaml", path), parsed


def _env_layers(
    app_dir: Path, schema: type[SchemaModel]
) -> Iterator[tuple[str, Mapping[str, str]]]:
    """Yield one single-key layer per known setting, .env before the process."""

    known = set(schema.__field_infos__)
    dotenv_path = app_dir / ".env"
    sources: list[tuple[str, Mapping[str, Any]]] = []
    if dotenv_path.exists():
        sources.append((".env", dotenv_values(dotenv_path)))
    sources.append(("process", os.environ))

    for prefix, values in sources:
        for key in sorted(known.intersection(values)):
            value = values[key]
            if isinstance(value, str):
                yield f"env:{prefix}:{key}", {key: value}


def _raise_issues(issues: Iterable[str]) -> None:
    listed = [f"- {issue}" for issue in issues]
    if listed:
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + "\n".join(listed)
        )


def _describe_validation_error(entry: dict[str, Any]) -> str:
    path = entry.get("path") or []
    if isinstance(path, (list, tuple)):
        location = ".".join(str(part) for part in path if part not in {None, ""})
    else:
        location = str(path)
    message = str(entry.get("message") or entry.get("msg") or "Invalid value")
    source = entry.get("source")
    origin = f" (source: {source})" if source else ""
    return f"{location}: {message}{origin}" if location else f"{message}{origin}"


def _validate_limits(settings: PagewarpConfig) -> None:
    issues: list[str] = []
    if settings.PAGEWARP_BATCH_SIZE <= 0:
        issues.append("PAGEWARP_BATCH_SIZE must be a positive number of characters.")
    if settings.PAGEWARP_REQUEST_TIMEOUT <= 0:
        issues.append("PAGEWARP_REQUEST_TIMEOUT must be a positive number of seconds.")
    _raise_issues(issues)


def validate_provider_settings(settings: PagewarpConfig, provider: str | None = None) -> None:
    """Check that credentials exist for the provider about to be used."""

    provider = (provider or settings.LLM_PROVIDER).strip().lower().replace("-", "_")
    if provider == "openai" and settings.LLM_PROVIDER == "azure_openai":
        provider = "azure_openai"

    if provider == "openai" and not settings.OPENAI_API_KEY:
        _raise_issues(["OPENAI_API_KEY is required when LLM_PROVIDER is 'openai'."])
    if provider == "azure_openai":
        azure = {
            "AZURE_OPENAI_API_KEY": settings.AZURE_OPENAI_API_KEY,
            "AZURE_OPENAI_ENDPOINT": settings.AZURE_OPENAI_ENDPOINT,
            "AZURE_OPENAI_API_VERSION": settings.AZURE_OPENAI_API_VERSION,
            "AZURE_OPENAI_DEPLOYMENT_NAME": settings.AZURE_OPENAI_DEPLOYMENT_NAME,
        }
        missing = [name for name, value in azure.items() if not value]
        if missing:
            _raise_issues(
                [
                    "The following Azure OpenAI settings must be provided when "
                    f"LLM_PROVIDER is 'azure_openai': {', '.join(missing)}."
                ]
            )


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> PagewarpConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


def state_file(settings: PagewarpConfig) -> Path:
    from .preferences import DEFAULT_STATE_PATH

    if settings.PAGEWARP_STATE_FILE:
        return Path(settings.PAGEWARP_STATE_FILE).expanduser()
    return DEFAULT_STATE_PATH
