import logging
import os
from dataclasses import dataclass
from typing import Dict, ItemsView, List, Optional

log = logging.getLogger(__name__)

COLLISION_OVERWRITE = "overwrite"
COLLISION_KEEP_FIRST = "keep_first"
COLLISION_POLICIES = (COLLISION_OVERWRITE, COLLISION_KEEP_FIRST)


@dataclass
class Collision:
    content_hash: str
    kept_path: str
    dropped_path: str


class GlobalPathIndex:
    """Union of every loaded folder's hash cache, content hash -> absolute path.

    Each folder's contribution is tracked so that reloading a folder replaces
    what it added before. When two folders hold the same content, the policy
    decides which path is kept: "overwrite" lets the latest merge win,
    "keep_first" keeps the path that was indexed first.
    """

    def __init__(self, collision_policy: str = COLLISION_OVERWRITE) -> None:
        if collision_policy not in COLLISION_POLICIES:
            raise ValueError(f"unknown collision policy {collision_policy!r}")
        self.collision_policy = collision_policy
        self._paths: Dict[str, str] = {}
        self._hashes: Dict[str, str] = {}
        self._owner: Dict[str, str] = {}
        self._folders: Dict[str, Dict[str, str]] = {}

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._paths

    def items(self) -> ItemsView[str, str]:
        return self._paths.items()

    def as_dict(self) -> Dict[str, str]:
        return dict(self._paths)

    def folders(self) -> List[str]:
        return list(self._folders)

    def path_for(self, content_hash: str) -> Optional[str]:
        return self._paths.get(content_hash)

    def hash_for(self, path: str) -> Optional[str]:
        return self._hashes.get(os.path.abspath(path))

    def merge(self, folder: str, entries: Dict[str, str]) -> List[Collision]:
        """Add folder's entries, replacing whatever that folder contributed before."""
        folder = os.path.abspath(folder)
        self.remove_folder(folder)
        self._folders[folder] = dict(entries)
        collisions: List[Collision] = []
        for content_hash, path in entries.items():
            existing = self._paths.get(content_hash)
            if existing is not None and existing != path:
                if self.collision_policy == COLLISION_KEEP_FIRST:
                    collisions.append(Collision(content_hash, existing, path))
                    log.warning("Same content in %s and %s; keeping the first", existing, path)
                    continue
                collisions.append(Collision(content_hash, path, existing))
                log.warning("Same content in %s and %s; using the newer folder's copy", existing, path)
                self._hashes.pop(existing, None)
            self._paths[content_hash] = path
            self._hashes[path] = content_hash
            self._owner[content_hash] = folder
        log.info("Merged %d entries from %s (%d total)", len(entries), folder, len(self._paths))
        return collisions

    def remove_folder(self, folder: str) -> None:
        folder = os.path.abspath(folder)
        previous = self._folders.pop(folder, None)
        if not previous:
            return
        for content_hash in previous:
            if self._owner.get(content_hash) != folder:
                continue
            path = self._paths.pop(content_hash)
            self._hashes.pop(path, None)
            del self._owner[content_hash]
            # Fall back to another loaded folder holding the same content
            for other_folder, other_entries in self._folders.items():
                other_path = other_entries.get(content_hash)
                if other_path is not None:
                    self._paths[content_hash] = other_path
                    self._hashes[other_path] = content_hash
                    self._owner[content_hash] = other_folder
                    break

    def clear(self) -> None:
        self._paths.clear()
        self._hashes.clear()
        self._owner.clear()
        self._folders.clear()
