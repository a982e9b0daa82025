"""Off-tree staging that keeps the current build's files alive across a sweep."""

from __future__ import annotations

import filecmp
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Sequence

from .models import FileRecord

logger = logging.getLogger(__name__)

STAGING_PREFIX = "build-keeper-stage-"


class BackupGuard:
    """Stage, restore and discard copies of one build's files.

    Staging uses hard links when ``use_links`` is set and the staging area is on
    the same filesystem; otherwise the bytes are copied. Either way the staged
    entry survives the original being unlinked by the sweep.
    """

    def __init__(
        self,
        *,
        staging_root: Path | None = None,
        use_links: bool = True,
        verbose: bool = False,
    ) -> None:
        self._staging_root = Path(staging_root) if staging_root is not None else None
        self._use_links = use_links
        self._decision_level = logging.INFO if verbose else logging.DEBUG
        self._staging_dir: Path | None = None
        self._staged: dict[str, Path] = {}
        self._unrestored: list[str] = []

    @property
    def staging_dir(self) -> Path | None:
        return self._staging_dir

    @property
    def staged(self) -> list[str]:
        return list(self._staged)

    @property
    def unrestored(self) -> list[str]:
        return list(self._unrestored)

    def _ensure_staging_dir(self) -> Path:
        if self._staging_dir is None:
            if self._staging_root is not None:
                self._staging_root.mkdir(parents=True, exist_ok=True)
            self._staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self._staging_root))
        return self._staging_dir

    def _copy_in(self, source: Path, target: Path) -> None:
        if self._use_links:
            try:
                os.link(source, target)
                return
            except OSError as exc:
                logger.debug("Hard link unavailable for %s (%s), copying instead", source, exc)
        shutil.copy2(source, target)

    def stage(self, files: Sequence[FileRecord], output_root: Path) -> list[str]:
        """Stage each file under the staging area, keeping its relative path.

        Returns the staged paths. A file that cannot be staged is logged and left
        unprotected.
        """

        try:
            staging_dir = self._ensure_staging_dir()
        except OSError as exc:
            logger.error("Unable to create staging area, current build is unprotected: %s", exc)
            return []

        output_root = Path(output_root)
        staged: list[str] = []
        for record in files:
            source = output_root / record.path
            target = staging_dir / record.path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                self._copy_in(source, target)
            except OSError as exc:
                logger.warning(
                    "Failed to stage %s, it is not protected from the sweep: %s",
                    record.path,
                    exc,
                    extra={"path": record.path},
                )
                continue
            self._staged[record.path] = target
            staged.append(record.path)
            logger.log(self._decision_level, "Staged file: %s", record.path)
        return staged

    def restore(self, files: Sequence[FileRecord], output_root: Path) -> list[str]:
        """Copy staged files back to their original paths, recreating pruned directories.

        Files still present with identical content are left in place. Returns the
        paths that were written back.
        """

        output_root = Path(output_root)
        restored: list[str] = []
        for record in files:
            staged = self._staged.get(record.path)
            if staged is None:
                continue
            destination = output_root / record.path
            try:
                if destination.is_file() and _same_content(staged, destination):
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(staged, destination)
            except OSError as exc:
                logger.error(
                    "Failed to restore %s from %s: %s",
                    record.path,
                    staged,
                    exc,
                    extra={"path": record.path},
                )
                self._unrestored.append(record.path)
                continue
            restored.append(record.path)
            logger.log(self._decision_level, "Restored file: %s", record.path)
        return restored

    def discard(self) -> bool:
        """Remove the staging area. It is kept when any restore failed."""

        if self._staging_dir is None:
            return True
        if self._unrestored:
            logger.error(
                "Keeping staging area %s, %d file(s) could not be restored",
                self._staging_dir,
                len(self._unrestored),
            )
            return False
        try:
            shutil.rmtree(self._staging_dir)
        except OSError as exc:
            logger.warning("Failed to remove staging area %s: %s", self._staging_dir, exc)
            return False
        self._staging_dir = None
        self._staged.clear()
        return True


def _same_content(left: Path, right: Path) -> bool:
    if os.path.samefile(left, right):
        return True
    return filecmp.cmp(left, right, shallow=False)


__all__ = ["BackupGuard", "STAGING_PREFIX"]
