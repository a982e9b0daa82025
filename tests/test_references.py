from __future__ import annotations

from datetime import datetime, timezone

from build_keeper.models import FileRecord, Version
from build_keeper.references import compute_reference_set

STAMP = datetime(2025, 1, 1, tzinfo=timezone.utc)


def version(version_id: str, *paths: str) -> Version:
    return Version(
        id=version_id,
        created_at=STAMP,
        files=tuple(FileRecord(path=path, content_hash="h", size=0, modified_at=STAMP) for path in paths),
    )


def test_union_across_versions() -> None:
    versions = [
        version("v1", "assets/a.js", "assets/shared.css"),
        version("v2", "assets/b.js", "assets/shared.css"),
    ]

    assert compute_reference_set(versions, "assets/") == {"assets/a.js", "assets/b.js", "assets/shared.css"}


def test_paths_outside_prefix_are_ignored() -> None:
    versions = [version("v1", "index.html", "assets/a.js", "assetsX/b.js")]

    assert compute_reference_set(versions, "assets/") == {"assets/a.js"}


def test_empty_ledger_references_nothing() -> None:
    assert compute_reference_set([], "assets/") == set()


def test_backslash_paths_are_normalized_on_records() -> None:
    versions = [version("v1", "assets\\img\\logo.png")]

    assert compute_reference_set(versions, "assets/") == {"assets/img/logo.png"}
