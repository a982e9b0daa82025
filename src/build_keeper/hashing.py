"""Content digests and file metadata for build outputs."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from .models import FileRecord, normalize_path

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True, slots=True)
class FileDigest:
    content_hash: str
    size: int
    modified_at: datetime


Hasher = Callable[[Path], FileDigest]


def hash_file(path: Path, *, algorithm: str = "md5") -> FileDigest:
    """Digest ``path`` and capture its size and modification time.

    Raises ``OSError`` when the file cannot be read, for example when it was
    removed between discovery and hashing.
    """

    path = Path(path)
    digest = hashlib.new(algorithm, usedforsecurity=False)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    stat = path.stat()
    return FileDigest(
        content_hash=digest.hexdigest(),
        size=stat.st_size,
        modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )


def collect_file_records(
    output_root: Path,
    file_names: Iterable[str],
    *,
    hasher: Hasher | None = None,
) -> list[FileRecord]:
    """Build a record for every readable file; unreadable files are logged and omitted."""

    hasher = hasher or hash_file
    records: list[FileRecord] = []
    seen: set[str] = set()
    for name in file_names:
        relative = normalize_path(name).lstrip("/")
        if relative in seen:
            continue
        seen.add(relative)
        try:
            digest = hasher(Path(output_root) / relative)
        except OSError as exc:
            logger.warning(
                "Skipping unreadable build output %s: %s",
                relative,
                exc,
                extra={"path": relative},
            )
            continue
        records.append(
            FileRecord(
                path=relative,
                content_hash=digest.content_hash,
                size=digest.size,
                modified_at=digest.modified_at,
            )
        )
    return records


__all__ = ["FileDigest", "Hasher", "collect_file_records", "hash_file"]
