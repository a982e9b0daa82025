"""Garbage collection of unreferenced files under the asset directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Collection

from .models import SweepReport

logger = logging.getLogger(__name__)


class GarbageCollector:
    """Delete asset files that no retained version references, then prune empty directories."""

    def __init__(self, output_root: Path, asset_subdir: str, *, verbose: bool = False) -> None:
        self._output_root = Path(output_root)
        self._asset_subdir = asset_subdir.strip("/")
        self._decision_level = logging.INFO if verbose else logging.DEBUG

    @property
    def asset_root(self) -> Path:
        return self._output_root / self._asset_subdir

    def sweep(self, reference_set: Collection[str]) -> SweepReport:
        """Remove every file under the asset directory whose output-relative path is not referenced.

        A missing asset directory is a valid empty build and yields an empty report.
        An empty ``reference_set`` marks every file as unreferenced.
        """

        report = SweepReport()
        root = self.asset_root
        if not root.is_dir():
            logger.log(self._decision_level, "Asset directory %s does not exist, skipping cleanup", root)
            return report

        logger.log(
            self._decision_level,
            "Starting file cleanup, all versions reference %d file(s)",
            len(reference_set),
        )
        self._visit(root, reference_set, report)
        self._prune_empty_directories(root, report)
        logger.log(
            self._decision_level,
            "Cleanup completed: deleted %d, retained %d, pruned %d director(ies)",
            report.deleted_count,
            report.retained_count,
            len(report.removed_directories),
        )
        return report

    def _relative(self, path: Path) -> str:
        return path.relative_to(self._output_root).as_posix()

    def _visit(self, directory: Path, reference_set: Collection[str], report: SweepReport) -> None:
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Unable to list %s: %s", directory, exc)
            report.failures.append(self._relative(directory))
            return

        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                self._visit(entry, reference_set, report)
                continue

            relative = self._relative(entry)
            if relative in reference_set:
                report.retained.append(relative)
                logger.log(self._decision_level, "Retained file: %s", relative)
                continue

            try:
                entry.unlink()
            except OSError as exc:
                logger.warning("Failed to delete file %s: %s", relative, exc, extra={"path": relative})
                report.failures.append(relative)
                continue
            report.deleted.append(relative)
            logger.log(self._decision_level, "Deleted file: %s", relative)

    def _prune_empty_directories(self, directory: Path, report: SweepReport) -> None:
        # Children are pruned before their parent is checked, so a chain of
        # emptied directories collapses in one pass. The asset root itself stays.
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Unable to list %s: %s", directory, exc)
            return

        for entry in entries:
            if not entry.is_dir() or entry.is_symlink():
                continue
            self._prune_empty_directories(entry, report)
            relative = self._relative(entry)
            try:
                if any(entry.iterdir()):
                    continue
                entry.rmdir()
            except OSError as exc:
                logger.warning("Failed to delete empty directory %s: %s", relative, exc)
                report.failures.append(relative)
                continue
            report.removed_directories.append(relative)
            logger.log(self._decision_level, "Deleted empty directory: %s", relative)


__all__ = ["GarbageCollector"]
