"""Configuration management for build-keeper."""

from __future__ import annotations

import hashlib
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = Path("build-keeper.yaml")
DEFAULT_LEDGER_NAME = ".build-versions.json"
MIN_VERSIONS = 1
MAX_VERSIONS = 100


class ConfigurationError(ValueError):
    """Raised when settings fail validation; nothing on disk has been touched yet."""


def _is_inside(base: Path, target: Path) -> bool:
    return target == base or base in target.parents


class BuildKeeperSettings(BaseSettings):
    """Retention options sourced from keyword arguments, environment variables and .env.

    Unknown keyword arguments are rejected; unrelated environment variables are ignored.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUILD_KEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = True
    verbose: bool = True
    max_versions: int = 3
    project_root: Path = Field(default_factory=Path.cwd)
    output_root: Path = Path("dist")
    ledger_path: Path | None = None
    asset_prefix: str = "assets/"
    staging_root: Path | None = None
    stage_with_links: bool = True
    hash_algorithm: str = "md5"
    log_level: str = "INFO"

    def __init__(self, **values: Any) -> None:
        unknown = sorted(key for key in values if not key.startswith("_") and key not in type(self).model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown build-keeper option(s): {', '.join(unknown)}")
        super().__init__(**values)

    @field_validator("max_versions", mode="before")
    @classmethod
    def _reject_bool_max_versions(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("max_versions must be an integer, not a boolean")
        return value

    @field_validator("max_versions")
    @classmethod
    def _validate_max_versions(cls, value: int) -> int:
        if not MIN_VERSIONS <= value <= MAX_VERSIONS:
            raise ValueError(
                f"max_versions must be between {MIN_VERSIONS} and {MAX_VERSIONS}, got {value}"
            )
        return value

    @field_validator("output_root", "ledger_path", "staging_root", "project_root", mode="before")
    @classmethod
    def _reject_empty_paths(cls, value: Any, info) -> Any:
        if isinstance(value, str) and not value.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return value

    @field_validator("asset_prefix")
    @classmethod
    def _normalize_asset_prefix(cls, value: str) -> str:
        prefix = value.strip()
        if not prefix or prefix == "/":
            raise ValueError("asset_prefix must not be empty")
        if "\\" in prefix:
            raise ValueError("asset_prefix must use forward slashes")
        if prefix.startswith("/"):
            raise ValueError("asset_prefix must be relative to the output root")
        if "//" in prefix:
            raise ValueError("asset_prefix must not contain empty path segments ('//')")
        segments = prefix.rstrip("/").split("/")
        if any(segment in {".", ".."} for segment in segments):
            raise ValueError("asset_prefix must not contain '.' or '..' segments")
        return prefix if prefix.endswith("/") else f"{prefix}/"

    @field_validator("hash_algorithm")
    @classmethod
    def _validate_hash_algorithm(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in hashlib.algorithms_available:
            raise ValueError(f"hash_algorithm '{value}' is not supported by hashlib")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError("log_level must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG")
        return normalized

    @model_validator(mode="after")
    def _resolve_paths(self) -> "BuildKeeperSettings":
        project_root = self.project_root.expanduser().resolve()
        if not project_root.is_dir():
            raise ValueError(f"project_root {project_root} is not an existing directory")
        self.project_root = project_root

        self.output_root = (project_root / self.output_root.expanduser()).resolve()
        if not _is_inside(project_root, self.output_root):
            raise ValueError(f"output_root {self.output_root} is outside the project root {project_root}")

        ledger = self.ledger_path if self.ledger_path is not None else self.output_root / DEFAULT_LEDGER_NAME
        self.ledger_path = (project_root / ledger.expanduser()).resolve()
        if self.ledger_path == project_root or not _is_inside(project_root, self.ledger_path):
            raise ValueError(f"ledger_path {self.ledger_path} is outside the project root {project_root}")
        if _is_inside(self.asset_root, self.ledger_path):
            raise ValueError("ledger_path must not live inside the swept asset directory")

        if self.staging_root is not None:
            self.staging_root = (project_root / self.staging_root.expanduser()).resolve()
            if _is_inside(self.asset_root, self.staging_root):
                raise ValueError("staging_root must not live inside the swept asset directory")
        return self

    @property
    def asset_subdir(self) -> str:
        """The asset prefix as a directory path relative to the output root."""

        return self.asset_prefix.rstrip("/")

    @property
    def asset_root(self) -> Path:
        return self.output_root / self.asset_subdir


def _format_validation_error(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML options file into a mapping of setting names to values."""

    path = Path(path)
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Unable to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping of options")
    return document


def load_settings(config_file: Path | None = None, **overrides: Any) -> BuildKeeperSettings:
    """Build validated settings; keyword overrides win over the YAML file, which wins over the environment."""

    values: dict[str, Any] = {}
    if config_file is not None:
        values.update(load_config_file(config_file))
    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return BuildKeeperSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid build-keeper configuration: {_format_validation_error(exc)}") from exc


@lru_cache(maxsize=1)
def get_settings() -> BuildKeeperSettings:
    """Return cached settings instance."""

    return load_settings()


__all__ = [
    "BuildKeeperSettings",
    "ConfigurationError",
    "DEFAULT_CONFIG_FILE",
    "get_settings",
    "load_config_file",
    "load_settings",
]
