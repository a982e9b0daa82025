from __future__ import annotations

import logging
from pathlib import Path

import pytest

from build_keeper.collector import GarbageCollector


def write(root: Path, relative: str, content: str = "x") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_sweep_deletes_only_unreferenced(tmp_path: Path) -> None:
    write(tmp_path, "assets/a.js")
    write(tmp_path, "assets/b.css")
    write(tmp_path, "assets/chunks/c.js")

    report = GarbageCollector(tmp_path, "assets").sweep({"assets/a.js", "assets/b.css"})

    assert report.deleted == ["assets/chunks/c.js"]
    assert sorted(report.retained) == ["assets/a.js", "assets/b.css"]
    assert report.removed_directories == ["assets/chunks"]
    assert (tmp_path / "assets/a.js").exists()
    assert (tmp_path / "assets/b.css").exists()
    assert not (tmp_path / "assets/chunks").exists()


def test_second_sweep_is_a_no_op(tmp_path: Path) -> None:
    write(tmp_path, "assets/a.js")
    write(tmp_path, "assets/old.js")
    collector = GarbageCollector(tmp_path, "assets")

    assert collector.sweep({"assets/a.js"}).deleted_count == 1
    second = collector.sweep({"assets/a.js"})

    assert second.deleted_count == 0
    assert second.retained == ["assets/a.js"]


def test_missing_asset_directory_is_empty_sweep(tmp_path: Path) -> None:
    report = GarbageCollector(tmp_path, "assets").sweep({"assets/a.js"})

    assert report.deleted_count == 0
    assert report.failures == []


def test_nested_paths_match_with_forward_slashes(tmp_path: Path) -> None:
    write(tmp_path, "static/js/vendor/lib.js")
    write(tmp_path, "static/js/vendor/stale.js")

    report = GarbageCollector(tmp_path, "static/js").sweep({"static/js/vendor/lib.js"})

    assert report.deleted == ["static/js/vendor/stale.js"]
    assert (tmp_path / "static/js/vendor/lib.js").exists()


def test_empty_reference_set_clears_subtree_and_collapses_directories(tmp_path: Path) -> None:
    write(tmp_path, "assets/deep/er/still/x.js")
    write(tmp_path, "assets/y.js")
    write(tmp_path, "index.html")

    report = GarbageCollector(tmp_path, "assets").sweep(set())

    assert sorted(report.deleted) == ["assets/deep/er/still/x.js", "assets/y.js"]
    assert report.removed_directories == ["assets/deep/er/still", "assets/deep/er", "assets/deep"]
    assert (tmp_path / "assets").is_dir()
    assert list((tmp_path / "assets").iterdir()) == []
    assert (tmp_path / "index.html").exists()


def test_pre_existing_empty_directories_are_pruned(tmp_path: Path) -> None:
    (tmp_path / "assets" / "empty" / "nested").mkdir(parents=True)

    report = GarbageCollector(tmp_path, "assets").sweep(set())

    assert report.removed_directories == ["assets/empty/nested", "assets/empty"]


def test_delete_failure_is_logged_and_skipped(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    write(tmp_path, "assets/locked/c.js")
    write(tmp_path, "assets/d.js")
    original_unlink = Path.unlink

    def guarded_unlink(self: Path, missing_ok: bool = False) -> None:
        if self.name == "c.js":
            raise PermissionError("read-only")
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", guarded_unlink)

    with caplog.at_level(logging.WARNING, logger="build_keeper.collector"):
        report = GarbageCollector(tmp_path, "assets").sweep(set())

    assert report.deleted == ["assets/d.js"]
    assert report.failures == ["assets/locked/c.js"]
    assert (tmp_path / "assets/locked/c.js").exists()
    assert "Failed to delete file assets/locked/c.js" in caplog.text


def test_verbose_logs_each_decision(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    write(tmp_path, "assets/keep.js")
    write(tmp_path, "assets/drop.js")

    with caplog.at_level(logging.INFO, logger="build_keeper.collector"):
        GarbageCollector(tmp_path, "assets", verbose=True).sweep({"assets/keep.js"})

    assert "Retained file: assets/keep.js" in caplog.text
    assert "Deleted file: assets/drop.js" in caplog.text


def test_quiet_mode_hides_decisions(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    write(tmp_path, "assets/drop.js")

    with caplog.at_level(logging.INFO, logger="build_keeper.collector"):
        GarbageCollector(tmp_path, "assets", verbose=False).sweep(set())

    assert "Deleted file" not in caplog.text
