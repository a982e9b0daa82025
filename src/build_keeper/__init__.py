"""Bounded build-version retention and asset garbage collection."""

from .config import BuildKeeperSettings, ConfigurationError, get_settings, load_settings
from .engine import CycleState, RetentionEngine
from .hooks import BuildHook, create_build_hook
from .models import BuildResult, FileRecord, SweepReport, Version

__version__ = "0.1.0"

__all__ = [
    "BuildHook",
    "BuildKeeperSettings",
    "BuildResult",
    "ConfigurationError",
    "CycleState",
    "FileRecord",
    "RetentionEngine",
    "SweepReport",
    "Version",
    "__version__",
    "create_build_hook",
    "get_settings",
    "load_settings",
]
