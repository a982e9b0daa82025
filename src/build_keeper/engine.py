"""Build-cycle orchestration: ledger update, sweep and protective restore."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable

from .backup import BackupGuard
from .collector import GarbageCollector
from .config import BuildKeeperSettings
from .ledger import LedgerWriteError, VersionLedger
from .models import BuildResult, FileRecord, SweepReport, Version
from .references import compute_reference_set

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    IDLE = "idle"
    LEDGER_LOADED = "ledger_loaded"
    VERSION_APPENDED = "version_appended"
    LEDGER_PERSISTED = "ledger_persisted"
    SWEPT = "swept"
    RESTORED = "restored"
    COMPLETE = "complete"


def generate_version_id(now: datetime) -> str:
    """Millisecond timestamp plus a short random suffix."""

    return f"{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}"


class RetentionEngine:
    """Run one retention cycle per completed build.

    The cycle always moves through every state in order. Steps after loading the
    ledger degrade on I/O failure instead of aborting, so the caller receives a
    result even when the ledger could not be saved or a file could not be deleted.
    """

    def __init__(
        self,
        settings: BuildKeeperSettings,
        *,
        ledger: VersionLedger | None = None,
        collector: GarbageCollector | None = None,
        guard_factory: Callable[[], BackupGuard] | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[datetime], str] | None = None,
    ) -> None:
        self._settings = settings
        self._ledger = ledger or VersionLedger(settings.ledger_path)
        self._collector = collector or GarbageCollector(
            settings.output_root,
            settings.asset_subdir,
            verbose=settings.verbose,
        )
        self._guard_factory = guard_factory or (
            lambda: BackupGuard(
                staging_root=settings.staging_root,
                use_links=settings.stage_with_links,
                verbose=settings.verbose,
            )
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory or generate_version_id
        self._decision_level = logging.INFO if settings.verbose else logging.DEBUG
        self._state = CycleState.IDLE

    @property
    def settings(self) -> BuildKeeperSettings:
        return self._settings

    @property
    def ledger(self) -> VersionLedger:
        return self._ledger

    @property
    def state(self) -> CycleState:
        return self._state

    def _transition(self, state: CycleState) -> None:
        logger.debug("Retention cycle %s -> %s", self._state.value, state.value)
        self._state = state

    def _ensure_output_root(self) -> str | None:
        output_root = self._settings.output_root
        if output_root.exists():
            return None
        try:
            output_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Unable to create output root %s: %s", output_root, exc)
            return f"Unable to create output root {output_root}: {exc}"
        logger.log(self._decision_level, "Created output root %s", output_root)
        return None

    def _new_version(self, records: list[FileRecord]) -> Version:
        prefix = self._settings.asset_prefix
        files: dict[str, FileRecord] = {}
        for record in records:
            if record.path.startswith(prefix):
                files.setdefault(record.path, record)
        logger.log(
            self._decision_level,
            "Asset files tracked: %d/%d",
            len(files),
            len(records),
        )
        now = self._clock()
        return Version(id=self._id_factory(now), created_at=now, files=tuple(files.values()))

    async def run_cycle(self, records: Iterable[FileRecord]) -> BuildResult | None:
        """Record a new version for ``records`` and collect unreferenced assets.

        Returns ``None`` without touching the filesystem when retention is disabled.
        """

        settings = self._settings
        if not settings.enabled:
            logger.debug("Build retention disabled; skipping cycle")
            return None

        records = list(records)
        warnings: list[str] = []
        self._state = CycleState.IDLE
        logger.log(self._decision_level, "Starting version retention cycle")

        output_warning = await asyncio.to_thread(self._ensure_output_root)
        if output_warning:
            warnings.append(output_warning)

        versions = await asyncio.to_thread(self._ledger.load)
        self._transition(CycleState.LEDGER_LOADED)

        version = self._new_version(records)
        logger.log(self._decision_level, "New version ID: %s", version.id)
        versions, evicted = VersionLedger.append(versions, version, settings.max_versions)
        for old in evicted:
            logger.log(
                self._decision_level,
                "Version count exceeds %d, evicting oldest version: %s",
                settings.max_versions,
                old.id,
                extra={"version_id": old.id},
            )
        self._transition(CycleState.VERSION_APPENDED)

        try:
            await asyncio.to_thread(self._ledger.save, versions)
        except LedgerWriteError as exc:
            warnings.append(str(exc))
        self._transition(CycleState.LEDGER_PERSISTED)

        guard = self._guard_factory()
        report = SweepReport()
        try:
            await asyncio.to_thread(guard.stage, version.files, settings.output_root)
            references = compute_reference_set(versions, settings.asset_prefix)
            report = await asyncio.to_thread(self._collector.sweep, references)
            self._transition(CycleState.SWEPT)
        finally:
            await asyncio.to_thread(guard.restore, version.files, settings.output_root)
            if not await asyncio.to_thread(guard.discard):
                warnings.append(f"Staging area {guard.staging_dir} was kept")
            self._transition(CycleState.RESTORED)

        if report.failures:
            warnings.append(f"{len(report.failures)} path(s) could not be removed")

        logger.info(
            "Current version count: %d/%d, cleaned files: %d, latest version: %s",
            len(versions),
            settings.max_versions,
            report.deleted_count,
            version.id,
            extra={
                "version_id": version.id,
                "total_versions": len(versions),
                "deleted_count": report.deleted_count,
            },
        )
        self._transition(CycleState.COMPLETE)
        return BuildResult(
            version_id=version.id,
            file_count=len(records),
            total_versions=len(versions),
            deleted_count=report.deleted_count,
            evicted_ids=[old.id for old in evicted],
            warnings=warnings,
        )

    def run_cycle_sync(self, records: Iterable[FileRecord]) -> BuildResult | None:
        """Execute :meth:`run_cycle` on a dedicated event loop."""

        return asyncio.run(self.run_cycle(records))

    def describe_versions(self) -> list[dict[str, Any]]:
        """Summarize the persisted versions, oldest first."""

        prefix = self._settings.asset_prefix
        return [
            {
                "index": index,
                "id": version.id,
                "created_at": version.created_at.isoformat(),
                "asset_files": len(version.asset_files(prefix)),
            }
            for index, version in enumerate(self._ledger.load(), start=1)
        ]

    def reset(self) -> bool:
        """Forget every recorded version by deleting the ledger file."""

        return self._ledger.clear()


__all__ = ["CycleState", "RetentionEngine", "generate_version_id"]
