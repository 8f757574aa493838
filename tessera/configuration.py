"""Prepper-backed configuration loader for Tessera."""

from __future__ import annotations

import codecs
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Literal, Mapping, Sequence

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

from .errors import ConfigurationError

APP_NAME = "Tessera"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class TesseraConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    TESSERA_SOURCE_LOCALE: str = Field(
        default="en",
        description="Locale recorded on imported source segments.",
    )
    TESSERA_ENCODING: str = Field(
        default="utf-8",
        description="Encoding for skeletons, format tables and outputs.",
    )
    TESSERA_MAX_PHASE: int = Field(default=0)
    TESSERA_MAX_TU_DEPTH: int = Field(default=1)
    TESSERA_STRICT: bool = Field(default=False)
    TESSERA_WARNING_LIMIT: int = Field(default=0)
    TESSERA_ESCAPE_AMPERSANDS: bool = Field(default=False)
    TESSERA_MARK_UNTRANSLATED: bool = Field(default=False)
    TESSERA_TRANSLATABLE_ELEMENTS: str = Field(
        default="p,h1,h2,h3,h4,h5,h6,li,td,th,title,caption,dt,dd",
        description="Comma-separated element names that become translation units.",
    )
    TESSERA_TRANSLATABLE_ATTRIBUTES: str = Field(
        default="alt,title",
        description="Comma-separated attribute names whose values become translation units.",
    )
    TESSERA_CONTAINER_TAG: str = Field(default="trans-unit")
    TESSERA_LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")

    @model_validator(mode="before")
    def _normalise_log_level(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("TESSERA_LOG_LEVEL")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().upper()
                normalized = {"WARN": "WARNING"}.get(normalized, normalized)
                if normalized not in LOG_LEVELS:
                    normalized = "WARNING"
                data["TESSERA_LOG_LEVEL"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance.

    Every field has a default, so finding no configuration source at all is
    not an error.
    """

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=TesseraConfig,
        )

        model = TesseraConfig.validate(combined, provenance=provenance)
        _validate_settings(model)

        return ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=TesseraConfig,
        )
    except IoError as exc:
        raise ConfigurationError(f"Configuration files could not be read: {exc}") from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Configuration schema error: {exc}") from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise ConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _validate_settings(settings: TesseraConfig) -> None:
    errors: list[str] = []

    if not settings.TESSERA_SOURCE_LOCALE.strip():
        errors.append("TESSERA_SOURCE_LOCALE must not be empty.")
    try:
        codecs.lookup(settings.TESSERA_ENCODING)
    except LookupError:
        errors.append(f"TESSERA_ENCODING '{settings.TESSERA_ENCODING}' is not a known encoding.")
    if settings.TESSERA_MAX_PHASE < 0:
        errors.append("TESSERA_MAX_PHASE must be zero or positive.")
    if settings.TESSERA_MAX_TU_DEPTH < 1:
        errors.append("TESSERA_MAX_TU_DEPTH must be at least 1.")
    if settings.TESSERA_WARNING_LIMIT < 0:
        errors.append("TESSERA_WARNING_LIMIT must be zero (no limit) or positive.")
    if not split_elements(settings.TESSERA_TRANSLATABLE_ELEMENTS):
        errors.append("TESSERA_TRANSLATABLE_ELEMENTS must name at least one element.")
    if not settings.TESSERA_CONTAINER_TAG.strip():
        errors.append("TESSERA_CONTAINER_TAG must not be empty.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError("Configuration validation errors detected:\n" + bullet_list)


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def split_elements(value: str) -> List[str]:
    """``"p, h1,,li"`` becomes ``["p", "h1", "li"]``."""

    return [name.strip() for name in value.split(",") if name.strip()]


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> TesseraConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()
