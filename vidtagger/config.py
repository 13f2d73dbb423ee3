"""Settings kept in a small JSON file in the working directory (or VIDTAGGER_CONFIG)."""

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

from .library import COLLISION_OVERWRITE, COLLISION_POLICIES
from .scanner import DEFAULT_HASH_WORKERS, DEFAULT_SIDECAR_NAME
from .store import DEFAULT_TAGS_FILENAME

log = logging.getLogger(__name__)

CONFIG_FILENAME = "vidtagger_config.json"
DEFAULT_VOLUME = 0.5
MAX_SIZE_SCALE = 2.0


def get_config_path() -> str:
    return os.environ.get("VIDTAGGER_CONFIG") or os.path.join(".", CONFIG_FILENAME)


def load_config() -> Dict:
    try:
        with open(get_config_path(), "r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        log.warning("Ignoring unreadable config %s: %s", get_config_path(), e)
        return {}


def save_config(data: Dict) -> None:
    try:
        with open(get_config_path(), "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        log.warning("Could not write config %s: %s", get_config_path(), e)


def _set(key: str, value: object) -> None:
    cfg = load_config()
    cfg[key] = value
    save_config(cfg)


def get_tags_path() -> str:
    val = load_config().get("tags_path")
    return str(val) if isinstance(val, str) and val.strip() else DEFAULT_TAGS_FILENAME


def get_sidecar_name() -> str:
    val = load_config().get("sidecar_name")
    # Must stay a plain file name inside the scanned folder
    if isinstance(val, str) and val.strip() and os.path.basename(val) == val:
        return val
    return DEFAULT_SIDECAR_NAME


def get_collision_policy() -> str:
    val = load_config().get("collision_policy")
    return val if val in COLLISION_POLICIES else COLLISION_OVERWRITE


def set_collision_policy(policy: str) -> None:
    if policy not in COLLISION_POLICIES:
        raise ValueError(f"unknown collision policy {policy!r}")
    _set("collision_policy", policy)


def get_untagged_pass() -> bool:
    val = load_config().get("untagged_pass")
    return bool(val) if isinstance(val, (bool, int)) else True


def set_untagged_pass(enabled: bool) -> None:
    _set("untagged_pass", bool(enabled))


def get_hash_workers() -> int:
    val = load_config().get("hash_workers")
    try:
        return max(1, int(val))
    except (TypeError, ValueError):
        return DEFAULT_HASH_WORKERS


def get_last_root_dir() -> Optional[str]:
    val = load_config().get("last_root_dir")
    return str(val) if val else None


def set_last_root_dir(path: str) -> None:
    _set("last_root_dir", os.path.abspath(path))


def get_volume() -> float:
    try:
        return min(1.0, max(0.0, float(load_config().get("volume", DEFAULT_VOLUME))))
    except (TypeError, ValueError):
        return DEFAULT_VOLUME


def set_volume(volume: float) -> None:
    _set("volume", float(volume))


def get_size_scale() -> float:
    try:
        return min(MAX_SIZE_SCALE, max(0.0, float(load_config().get("size_scale", 1.0))))
    except (TypeError, ValueError):
        return 1.0


def set_size_scale(scale: float) -> None:
    _set("size_scale", float(scale))


@dataclass
class Settings:
    tags_path: str = DEFAULT_TAGS_FILENAME
    sidecar_name: str = DEFAULT_SIDECAR_NAME
    collision_policy: str = COLLISION_OVERWRITE
    untagged_pass: bool = True
    hash_workers: int = DEFAULT_HASH_WORKERS
    volume: float = DEFAULT_VOLUME


def load_settings() -> Settings:
    return Settings(
        tags_path=get_tags_path(),
        sidecar_name=get_sidecar_name(),
        collision_policy=get_collision_policy(),
        untagged_pass=get_untagged_pass(),
        hash_workers=get_hash_workers(),
        volume=get_volume(),
    )
