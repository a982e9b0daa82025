"""Data models for the version ledger and cycle results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_path(value: str) -> str:
    """Return ``value`` with forward-slash separators."""

    return value.replace("\\", "/")


class FileRecord(BaseModel):
    """One tracked output file, captured when its build completed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str = Field(..., description="Path relative to the output root, forward slashes.")
    content_hash: str = Field(..., alias="hash", description="Hex digest of the file bytes.")
    size: int = Field(..., ge=0, description="Byte count at capture time.")
    modified_at: datetime = Field(..., alias="mtime", description="Modification time at capture.")

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        normalized = normalize_path(value.strip())
        if not normalized:
            raise ValueError("File record path must not be empty")
        return normalized


class Version(BaseModel):
    """The retained footprint of one completed build."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    created_at: datetime = Field(..., alias="timestamp")
    files: tuple[FileRecord, ...] = ()

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Version id must not be empty")
        return normalized

    @field_validator("files")
    @classmethod
    def _unique_paths(cls, value: tuple[FileRecord, ...]) -> tuple[FileRecord, ...]:
        seen: set[str] = set()
        for record in value:
            if record.path in seen:
                raise ValueError(f"Duplicate file path in version: {record.path}")
            seen.add(record.path)
        return value

    def asset_files(self, asset_prefix: str) -> list[FileRecord]:
        return [record for record in self.files if record.path.startswith(asset_prefix)]


@dataclass(slots=True)
class SweepReport:
    """Outcome of one garbage-collection sweep."""

    deleted: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    removed_directories: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def retained_count(self) -> int:
        return len(self.retained)


@dataclass(slots=True)
class BuildResult:
    """Holds the outcome of one retention cycle."""

    version_id: str
    file_count: int
    total_versions: int
    deleted_count: int = 0
    evicted_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def as_dict(self) -> dict[str, Any]:
        return {
            "versionId": self.version_id,
            "fileCount": self.file_count,
            "totalVersions": self.total_versions,
            "deletedCount": self.deleted_count,
            "evictedIds": list(self.evicted_ids),
            "warnings": list(self.warnings),
        }


__all__ = ["BuildResult", "FileRecord", "SweepReport", "Version", "normalize_path"]
