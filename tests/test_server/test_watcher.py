"""Tests for the polling filesystem watcher."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from conftest import write_files
from plugcraft.pipeline.tree import make_filter
from plugcraft.server.watcher import PollingWatcher, watch


class Recorder:
    """Collects callback batches and signals when one arrives."""

    def __init__(self) -> None:
        self.batches: list[list[str]] = []
        self.event = threading.Event()

    def __call__(self, paths: list[str]) -> None:
        self.batches.append(paths)
        self.event.set()

    def wait(self, timeout: float = 5.0) -> list[str]:
        assert self.event.wait(timeout), "watcher did not report a change"
        self.event.clear()
        return self.batches[-1]


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class TestSnapshot:
    def test_diff_reports_created_modified_deleted(self) -> None:
        before = {"a.js": (1, 10), "b.css": (1, 5), "gone.txt": (1, 1)}
        after = {"a.js": (2, 10), "b.css": (1, 5), "new.html": (3, 7)}
        assert PollingWatcher.diff(before, after) == ["a.js", "gone.txt", "new.html"]

    def test_diff_of_identical_snapshots_is_empty(self) -> None:
        snap = {"a.js": (1, 1)}
        assert PollingWatcher.diff(snap, dict(snap)) == []

    def test_snapshot_skips_excluded_directories(self, tmp_path: Path) -> None:
        write_files(
            tmp_path,
            {"main.js": "x", "dist/main.js": "x", "node_modules/m/i.js": "", ".git/HEAD": ""},
        )
        watcher = PollingWatcher(tree_filter=make_filter(tmp_path, "dist"))
        assert list(watcher.snapshot(tmp_path)) == ["main.js"]


# ---------------------------------------------------------------------------
# Background watching
# ---------------------------------------------------------------------------


class TestWatch:
    def test_reports_create_modify_delete(self, tmp_path: Path) -> None:
        (tmp_path / "main.js").write_text("one")
        recorder = Recorder()
        handle = watch(tmp_path, recorder, interval=0.05)
        try:
            assert handle.running
            (tmp_path / "new.css").write_text("body{}")
            assert "new.css" in recorder.wait()

            (tmp_path / "main.js").write_text("one two")
            assert "main.js" in recorder.wait()

            (tmp_path / "new.css").unlink()
            assert "new.css" in recorder.wait()
        finally:
            handle.stop()
        assert not handle.running

    def test_excluded_changes_are_ignored(self, tmp_path: Path) -> None:
        recorder = Recorder()
        handle = watch(tmp_path, recorder, exclude=make_filter(tmp_path, "dist"), interval=0.05)
        try:
            write_files(tmp_path, {"dist/out.js": "x", "node_modules/p/i.js": "x"})
            time.sleep(0.3)
            assert recorder.batches == []
            (tmp_path / "index.html").write_text("<p>")
            assert recorder.wait() == ["index.html"]
        finally:
            handle.stop()

    def test_non_directory_is_refused(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        target.write_text("")
        with pytest.raises(NotADirectoryError):
            watch(target, lambda paths: None)

    def test_stop_is_idempotent(self, tmp_path: Path) -> None:
        handle = watch(tmp_path, lambda paths: None, interval=0.05)
        handle.stop()
        handle.stop()
        assert not handle.running

    def test_failed_scan_is_reported_and_retried(
        self, tmp_path: Path, quiet_output, capfd: pytest.CaptureFixture[str]
    ) -> None:
        watcher = PollingWatcher(interval=0.05)
        real_snapshot = watcher.snapshot
        calls = {"n": 0}

        def _flaky(root: Path):
            calls["n"] += 1
            if calls["n"] in (2, 3):
                raise PermissionError(13, "Permission denied", str(root))
            return real_snapshot(root)

        watcher.snapshot = _flaky  # type: ignore[method-assign]
        recorder = Recorder()
        handle = watcher.start(tmp_path, recorder)
        try:
            deadline = time.monotonic() + 5
            while calls["n"] < 4 and time.monotonic() < deadline:
                time.sleep(0.02)
            assert handle.running
            (tmp_path / "main.js").write_text("x")
            assert recorder.wait() == ["main.js"]
        finally:
            handle.stop()
        err = capfd.readouterr().err
        assert err.count("Warning: Watching") == 1
        assert "Permission denied" in err
