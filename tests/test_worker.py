"""Tests for the background scan worker."""

import threading
from pathlib import Path

from vidtagger.scanner import ScanCancelled
from vidtagger.worker import ScanWorker


def test_scan_delivers_result(media_dir: Path) -> None:
    """A submitted scan finishes in the background and is returned by poll."""
    worker = ScanWorker(max_workers=2)
    token = worker.submit(str(media_dir))
    assert worker.wait(timeout=10)
    results = worker.poll()
    worker.shutdown()
    assert len(results) == 1
    assert results[0].token == token
    assert results[0].ok
    assert len(results[0].entries) == 3
    assert (media_dir / ".hashes.json").exists()


def test_scan_failure_is_reported_not_raised(tmp_path: Path) -> None:
    """An unreadable folder comes back as an error result."""
    worker = ScanWorker()
    worker.submit(str(tmp_path / "missing"))
    assert worker.wait(timeout=10)
    results = worker.poll()
    worker.shutdown()
    assert len(results) == 1
    assert not results[0].ok
    assert results[0].entries == {}


def test_new_submit_cancels_and_drops_previous(tmp_path: Path) -> None:
    """Results from a superseded scan are never delivered."""
    started = threading.Event()
    release = threading.Event()
    calls = []

    def build(folder, force_rebuild=False, sidecar_name=None, max_workers=None, cancel_event=None):
        calls.append(folder)
        if folder == "first":
            started.set()
            release.wait(timeout=10)
            if cancel_event.is_set():
                raise ScanCancelled(folder)
        return {folder: f"/x/{folder}.mp4"}

    worker = ScanWorker(build=build)
    worker.submit("first")
    assert started.wait(timeout=10)
    second = worker.submit("second")
    release.set()
    assert worker.wait(timeout=10)
    results = worker.poll()
    worker.shutdown()
    assert [r.token for r in results] == [second]
    assert results[0].entries == {"second": "/x/second.mp4"}
    assert calls == ["first", "second"]


def test_result_of_ignored_cancel_is_dropped() -> None:
    """Even if a build ignores cancellation, its result is discarded."""
    started = threading.Event()
    release = threading.Event()

    def build(folder, **kwargs):
        if folder == "slow":
            started.set()
            release.wait(timeout=10)
        return {folder: folder}

    worker = ScanWorker(build=build)
    worker.submit("slow")
    assert started.wait(timeout=10)
    worker.cancel()
    release.set()
    worker.shutdown()
    assert worker.poll() == []
