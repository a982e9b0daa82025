"""JSON-file persistence for the ordered version history."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Sequence

from pydantic import TypeAdapter, ValidationError

from .models import Version

logger = logging.getLogger(__name__)

_VERSIONS_ADAPTER = TypeAdapter(list[Version])


class LedgerWriteError(RuntimeError):
    """Raised when the ledger file cannot be replaced."""


class VersionLedger:
    """Reads and overwrites the persisted list of versions, oldest first."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Version]:
        """Return the persisted versions.

        A missing file is an empty history. An unreadable or malformed file is
        logged and also treated as empty; retention depth shrinks but the
        current build stays protected by the backup guard.
        """

        if not self._path.exists():
            return []

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning(
                "Failed to read version ledger %s: %s",
                self._path,
                exc,
                extra={"ledger_path": str(self._path)},
            )
            return []
        except UnicodeDecodeError as exc:
            logger.warning(
                "Ignoring malformed version ledger %s (not valid UTF-8: %s)",
                self._path,
                exc.reason,
                extra={"ledger_path": str(self._path)},
            )
            return []

        try:
            return _VERSIONS_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Ignoring malformed version ledger %s (%d error(s))",
                self._path,
                exc.error_count(),
                extra={"ledger_path": str(self._path)},
            )
            return []

    def save(self, versions: Sequence[Version]) -> None:
        """Replace the ledger file with ``versions`` in a single rename."""

        payload = json.dumps(
            [version.model_dump(mode="json", by_alias=True) for version in versions],
            indent=2,
        )
        temp_path: Path | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(payload)
                handle.write("\n")
            os.replace(temp_path, self._path)
        except OSError as exc:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            logger.warning(
                "Failed to save version ledger %s: %s",
                self._path,
                exc,
                extra={"ledger_path": str(self._path)},
            )
            raise LedgerWriteError(f"Failed to save version ledger {self._path}: {exc}") from exc

    def clear(self) -> bool:
        """Delete the ledger file. Returns ``True`` when a file was removed."""

        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error(
                "Failed to delete version ledger %s: %s",
                self._path,
                exc,
                extra={"ledger_path": str(self._path)},
            )
            return False
        logger.info("Deleted version ledger %s", self._path)
        return True

    @staticmethod
    def append(
        versions: Sequence[Version],
        version: Version,
        max_versions: int,
    ) -> tuple[list[Version], list[Version]]:
        """Append ``version`` and evict from the front until at most ``max_versions`` remain.

        Eviction follows ledger position only; timestamps are never compared.
        """

        if max_versions < 1:
            raise ValueError("max_versions must be >= 1")

        updated = [*versions, version]
        overflow = max(len(updated) - max_versions, 0)
        return updated[overflow:], updated[:overflow]


__all__ = ["LedgerWriteError", "VersionLedger"]
