import hashlib
import logging
import os
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Optional

from .persist import SnapshotError, read_json_object, write_json_atomic

log = logging.getLogger(__name__)

SUPPORTED_VIDEO_EXTENSIONS = {
    ".mp4", ".gif", ".webm"
}

DEFAULT_SIDECAR_NAME = ".hashes.json"
DEFAULT_HASH_WORKERS = 4


class ScanCancelled(Exception):
    """Raised when a folder scan is abandoned before all files were hashed."""


def is_video_file(path: str) -> bool:
    _, ext = os.path.splitext(path)
    return ext.lower() in SUPPORTED_VIDEO_EXTENSIONS


def sha256_of_file(
    path: str,
    chunk_size: int = 1024 * 1024,
    cancel_event: Optional[threading.Event] = None,
) -> str:
    """Hex SHA-256 of the file's bytes. Raises ScanCancelled between chunks once cancel_event is set."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled(path)
            digest.update(chunk)
    return digest.hexdigest()


def list_media_files(directory: str) -> List[str]:
    """Absolute paths of the supported media files directly inside directory, sorted by name."""
    directory = os.path.abspath(directory)
    files: List[str] = []
    with os.scandir(directory) as it:
        for entry in it:
            if not is_video_file(entry.name):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError as e:
                log.debug("Skipping %s: %s", entry.name, e)
                continue
            files.append(os.path.join(directory, entry.name))
    files.sort()
    return files


def hash_files(
    paths: Iterable[str],
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, str]:
    """Hash every path in parallel and return path -> sha256.

    The first read failure aborts the whole call with its OSError. Setting
    cancel_event stops the scan with ScanCancelled.
    """
    paths = list(paths)
    if not paths:
        return {}
    workers = max(1, int(max_workers or DEFAULT_HASH_WORKERS))

    def _hash_one(path: str) -> str:
        if cancel_event is not None and cancel_event.is_set():
            raise ScanCancelled(path)
        return sha256_of_file(path, cancel_event=cancel_event)

    out: Dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(_hash_one, p): p for p in paths}
        pending = set(futures)
        while pending:
            done, pending = wait(pending, timeout=0.1, return_when=FIRST_EXCEPTION)
            if cancel_event is not None and cancel_event.is_set():
                for fut in pending:
                    fut.cancel()
                raise ScanCancelled()
            for fut in done:
                exc = fut.exception()
                if exc is not None:
                    for other in pending:
                        other.cancel()
                    raise exc
                out[futures[fut]] = fut.result()
    return out


def folder_cache_path(directory: str, sidecar_name: str = DEFAULT_SIDECAR_NAME) -> str:
    return os.path.join(os.path.abspath(directory), sidecar_name)


def _validate_folder_cache(data: Dict, path: str) -> Dict[str, str]:
    db = data.get("db")
    if not isinstance(db, dict):
        raise SnapshotError(f"{path}: missing 'db' object")
    cache: Dict[str, str] = {}
    for content_hash, filename in db.items():
        if not isinstance(filename, str) or not filename:
            raise SnapshotError(f"{path}: bad filename for {content_hash!r}")
        # Entries are base names; anything with a separator is not ours
        if os.path.basename(filename) != filename:
            raise SnapshotError(f"{path}: {filename!r} is not a base filename")
        cache[str(content_hash)] = filename
    return cache


def load_folder_cache(directory: str, sidecar_name: str = DEFAULT_SIDECAR_NAME) -> Optional[Dict[str, str]]:
    """Return the sidecar's hash -> filename map, or None if there is no sidecar.

    Raises SnapshotError when the sidecar is corrupt.
    """
    path = folder_cache_path(directory, sidecar_name)
    data = read_json_object(path)
    if data is None:
        return None
    return _validate_folder_cache(data, path)


def save_folder_cache(directory: str, cache: Dict[str, str], sidecar_name: str = DEFAULT_SIDECAR_NAME) -> None:
    path = folder_cache_path(directory, sidecar_name)
    write_json_atomic(path, {"db": dict(sorted(cache.items()))})


def resolve_folder_cache(directory: str, cache: Dict[str, str]) -> Dict[str, str]:
    """Join cached filenames with the directory's current location."""
    directory = os.path.abspath(directory)
    resolved: Dict[str, str] = {}
    for content_hash, filename in cache.items():
        fpath = os.path.join(directory, filename)
        if not os.path.isfile(fpath):
            log.info("Cached file %s no longer exists in %s; skipping", filename, directory)
            continue
        resolved[content_hash] = fpath
    return resolved


def build_folder_index(
    directory: str,
    force_rebuild: bool = False,
    sidecar_name: str = DEFAULT_SIDECAR_NAME,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, str]:
    """Return content hash -> absolute path for the media files in directory.

    Uses the folder's sidecar cache unless force_rebuild is set or the sidecar
    is missing or unreadable; otherwise hashes every file and rewrites it.
    """
    directory = os.path.abspath(directory)
    files = list_media_files(directory)

    if not force_rebuild:
        try:
            cache = load_folder_cache(directory, sidecar_name)
        except SnapshotError as e:
            log.warning("Ignoring corrupt hash cache, rebuilding: %s", e)
            cache = None
        if cache is not None:
            log.info("Loaded %d cached hashes for %s", len(cache), directory)
            return resolve_folder_cache(directory, cache)

    log.info("Hashing %d files in %s", len(files), directory)
    hashes = hash_files(files, max_workers=max_workers, cancel_event=cancel_event)
    fresh: Dict[str, str] = {}
    for fpath in files:
        content_hash = hashes[fpath]
        fname = os.path.basename(fpath)
        if content_hash in fresh:
            log.debug("%s has the same content as %s", fname, fresh[content_hash])
        fresh[content_hash] = fname
    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelled(directory)
    save_folder_cache(directory, fresh, sidecar_name)
    return resolve_folder_cache(directory, fresh)
