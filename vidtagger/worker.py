"""Background folder scanning.

One scan thread owns every sidecar write, so two scans never touch the same
cache at once. Submitting a new folder cancels the scan in progress; results
of cancelled or superseded scans are dropped instead of being delivered.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .scanner import DEFAULT_SIDECAR_NAME, ScanCancelled, build_folder_index

log = logging.getLogger(__name__)

BuildFn = Callable[..., Dict[str, str]]


@dataclass
class ScanResult:
    token: int
    folder: str
    force_rebuild: bool
    entries: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Job:
    token: int
    folder: str
    force_rebuild: bool
    cancel_event: threading.Event


class ScanWorker:
    def __init__(
        self,
        sidecar_name: str = DEFAULT_SIDECAR_NAME,
        max_workers: Optional[int] = None,
        build: BuildFn = build_folder_index,
    ) -> None:
        self.sidecar_name = sidecar_name
        self.max_workers = max_workers
        self._build = build
        self._jobs: "queue.Queue[Optional[_Job]]" = queue.Queue()
        self._results: "queue.Queue[ScanResult]" = queue.Queue()
        self._lock = threading.Lock()
        self._token = 0
        self._current: Optional[_Job] = None
        self._idle = threading.Event()
        self._idle.set()
        self._thread: Optional[threading.Thread] = None

    @property
    def current_token(self) -> int:
        return self._token

    @property
    def busy(self) -> bool:
        return not self._idle.is_set()

    def submit(self, folder: str, force_rebuild: bool = False) -> int:
        """Queue a scan of folder, cancelling any scan still running. Returns its token."""
        with self._lock:
            if self._current is not None:
                self._current.cancel_event.set()
            self._token += 1
            job = _Job(self._token, folder, force_rebuild, threading.Event())
            self._current = job
            self._idle.clear()
            self._ensure_thread()
        self._jobs.put(job)
        log.info("Scan %d queued for %s (force=%s)", job.token, folder, force_rebuild)
        return job.token

    def cancel(self) -> None:
        with self._lock:
            if self._current is not None:
                self._current.cancel_event.set()
                self._current = None
            self._idle.set()

    def poll(self) -> List[ScanResult]:
        """Drain finished scans; only the latest submitted one is returned."""
        out: List[ScanResult] = []
        while True:
            try:
                result = self._results.get_nowait()
            except queue.Empty:
                break
            if result.token != self._token:
                log.debug("Dropping stale scan result %d for %s", result.token, result.folder)
                continue
            out.append(result)
        return out

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._idle.wait(timeout)

    def shutdown(self) -> None:
        self.cancel()
        if self._thread is not None:
            self._jobs.put(None)
            self._thread.join(timeout=5)
            self._thread = None

    def _ensure_thread(self) -> None:
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self._run, name="vidtagger-scan", daemon=True)
            self._thread.start()

    def _run(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                return
            if job.cancel_event.is_set():
                continue
            result = self._scan(job)
            with self._lock:
                if result is not None and not job.cancel_event.is_set():
                    self._results.put(result)
                if self._current is job:
                    self._current = None
                    self._idle.set()

    def _scan(self, job: _Job) -> Optional[ScanResult]:
        try:
            entries = self._build(
                job.folder,
                force_rebuild=job.force_rebuild,
                sidecar_name=self.sidecar_name,
                max_workers=self.max_workers,
                cancel_event=job.cancel_event,
            )
        except ScanCancelled:
            log.info("Scan %d of %s cancelled", job.token, job.folder)
            return None
        except OSError as e:
            log.warning("Scan %d of %s failed: %s", job.token, job.folder, e)
            return ScanResult(job.token, job.folder, job.force_rebuild, error=str(e))
        except Exception as e:
            log.exception("Scan %d of %s crashed", job.token, job.folder)
            return ScanResult(job.token, job.folder, job.force_rebuild, error=str(e))
        log.info("Scan %d of %s finished with %d entries", job.token, job.folder, len(entries))
        return ScanResult(job.token, job.folder, job.force_rebuild, entries=entries)
