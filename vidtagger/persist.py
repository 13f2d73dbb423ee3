import json
import logging
import os
import tempfile
from typing import Dict, Optional

log = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """A snapshot or cache file exists but does not hold the expected JSON object."""


def read_json_object(path: str) -> Optional[Dict]:
    """Read a JSON object from path.

    Returns None when the file does not exist. Raises SnapshotError when the
    content is not UTF-8 JSON or not an object, and OSError on read failure.
    """
    if not os.path.exists(path):
        return None
    with open(path, "rb") as f:
        raw = f.read()
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise SnapshotError(f"{path}: invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise SnapshotError(f"{path}: expected a JSON object, got {type(data).__name__}")
    return data


def write_json_atomic(path: str, data: Dict) -> None:
    """Write data as JSON to a temp file beside path, then rename it into place.

    A crash or error mid-write leaves any previous file at path untouched.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    log.debug("Wrote %s", path)
