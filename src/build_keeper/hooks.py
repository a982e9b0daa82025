"""Bundler lifecycle glue that feeds generated files into the retention engine."""

from __future__ import annotations

import asyncio
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any, Iterable

from .config import BuildKeeperSettings, get_settings
from .engine import RetentionEngine
from .hashing import Hasher, collect_file_records, hash_file
from .models import BuildResult, normalize_path

logger = logging.getLogger(__name__)


class BuildHook:
    """Collects generated asset names during a build and runs one retention cycle at the end."""

    name = "build-keeper"

    def __init__(
        self,
        settings: BuildKeeperSettings,
        *,
        engine: RetentionEngine | None = None,
        hasher: Hasher | None = None,
    ) -> None:
        self._settings = settings
        if engine is None and settings.enabled:
            engine = RetentionEngine(settings)
        self._engine = engine
        self._hasher = hasher or partial(hash_file, algorithm=settings.hash_algorithm)
        self._generated: dict[str, None] = {}
        self._complete = False

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    @property
    def generated_files(self) -> list[str]:
        return list(self._generated)

    def build_start(self) -> None:
        if not self.enabled:
            return
        if self._settings.verbose:
            logger.info("Build version management enabled")
        self._complete = False
        self._generated.clear()

    def generate_bundle(self, file_names: Iterable[str]) -> None:
        """Remember every emitted file that falls under the asset prefix."""

        if not self.enabled:
            return
        prefix = self._settings.asset_prefix
        for name in file_names:
            normalized = normalize_path(name).lstrip("/")
            if normalized.startswith(prefix):
                self._generated.setdefault(normalized, None)

    async def close_bundle(self) -> BuildResult | None:
        """Hash the recorded files and run the retention cycle once per build.

        Unexpected failures are logged and never fail the build.
        """

        if not self.enabled or self._engine is None or self._complete:
            return None
        self._complete = True

        logger.log(
            logging.INFO if self._settings.verbose else logging.DEBUG,
            "Build completed, generated files count: %d",
            len(self._generated),
        )
        try:
            records = await asyncio.to_thread(
                collect_file_records,
                self._settings.output_root,
                list(self._generated),
                hasher=self._hasher,
            )
            result = await self._engine.run_cycle(records)
        except Exception:
            logger.exception("Version management failed")
            return None

        if result is not None and self._settings.verbose:
            logger.info("Version management completed: %s", result.version_id)
        return result

    def close_bundle_sync(self) -> BuildResult | None:
        return asyncio.run(self.close_bundle())


def create_build_hook(settings: BuildKeeperSettings | None = None, **kwargs: Any) -> BuildHook:
    """Instantiate a hook; configuration errors surface here, before any build output is touched."""

    return BuildHook(settings or get_settings(), **kwargs)


def discover_asset_files(output_root: Path, asset_prefix: str) -> list[str]:
    """List every file currently under the asset directory, relative to ``output_root``."""

    output_root = Path(output_root)
    asset_root = output_root / asset_prefix.rstrip("/")
    if not asset_root.is_dir():
        return []
    return sorted(
        path.relative_to(output_root).as_posix() for path in asset_root.rglob("*") if path.is_file()
    )


def read_manifest(path: Path) -> list[str]:
    """Extract emitted file names from a bundler manifest (``file``, ``css`` and ``assets`` entries)."""

    document = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(document, dict):
        raise ValueError(f"Manifest {path} must be a JSON object")

    names: dict[str, None] = {}
    for entry in document.values():
        if not isinstance(entry, dict):
            continue
        file_name = entry.get("file")
        if isinstance(file_name, str):
            names.setdefault(file_name, None)
        for key in ("css", "assets"):
            for item in entry.get(key) or []:
                if isinstance(item, str):
                    names.setdefault(item, None)
    return list(names)


__all__ = ["BuildHook", "create_build_hook", "discover_asset_files", "read_manifest"]
