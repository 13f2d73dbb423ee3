import logging
import os
from typing import Dict, Iterable, Optional, Set

from .persist import SnapshotError, read_json_object, write_json_atomic

log = logging.getLogger(__name__)

DEFAULT_TAGS_FILENAME = "tags.json"


def normalize_tag(name: str) -> str:
    name_norm = (name or "").strip()
    if not name_norm:
        raise ValueError("tag name must not be empty")
    return name_norm


def _string_set(value: object, what: str) -> Set[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise SnapshotError(f"{what} must be a list of strings")
    return set(value)


class TagStore:
    """Tag vocabulary plus per-content-hash tag assignments.

    Assignment keys are content hashes; tag names in assignments do not have
    to be in the vocabulary. Mutations stay in memory until save() is called.
    """

    def __init__(self, options: Optional[Iterable[str]] = None, db: Optional[Dict[str, Iterable[str]]] = None) -> None:
        self.options: Set[str] = set(options or ())
        self.db: Dict[str, Set[str]] = {h: set(tags) for h, tags in (db or {}).items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagStore):
            return NotImplemented
        return self.options == other.options and self.db == other.db

    def __repr__(self) -> str:
        return f"TagStore(options={len(self.options)}, db={len(self.db)})"

    @classmethod
    def from_snapshot(cls, data: Dict) -> "TagStore":
        options = _string_set(data.get("options", []), "options")
        raw_db = data.get("db", {})
        if not isinstance(raw_db, dict):
            raise SnapshotError("db must be an object")
        db = {str(h): _string_set(tags, f"db[{h!r}]") for h, tags in raw_db.items()}
        return cls(options, db)

    def to_snapshot(self) -> Dict:
        return {
            "options": sorted(self.options),
            "db": {h: sorted(tags) for h, tags in sorted(self.db.items())},
        }

    @classmethod
    def load(cls, path: str = DEFAULT_TAGS_FILENAME) -> "TagStore":
        """Load the snapshot at path.

        A missing file yields an empty store and writes an empty snapshot in
        its place; if that write fails the store is still returned and the
        error comes back on the next save. A corrupt file yields an empty
        store and is left on disk until the next save.
        """
        try:
            data = read_json_object(path)
            if data is None:
                store = cls()
                log.info("No tag snapshot at %s; creating an empty one", path)
                try:
                    store.save(path)
                except OSError as e:
                    log.warning("Could not create tag snapshot at %s: %s", path, e)
                return store
            store = cls.from_snapshot(data)
        except SnapshotError as e:
            log.warning("Tag snapshot unreadable, starting empty: %s", e)
            return cls()
        log.info("Loaded %d tags and %d assignments from %s", len(store.options), len(store.db), path)
        return store

    def save(self, path: str = DEFAULT_TAGS_FILENAME) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        write_json_atomic(path, self.to_snapshot())
        log.info("Saved %d tags and %d assignments to %s", len(self.options), len(self.db), path)

    def get_tags(self, content_hash: str) -> Set[str]:
        return set(self.db.get(content_hash, ()))

    def has_entry(self, content_hash: str) -> bool:
        return content_hash in self.db

    def observe(self, content_hash: str) -> None:
        """Materialize an empty assignment the first time a hash is seen."""
        self.db.setdefault(content_hash, set())

    def set_tag(self, content_hash: str, tag_name: str, present: bool) -> None:
        tags = self.db.setdefault(content_hash, set())
        if present:
            tags.add(tag_name)
        else:
            tags.discard(tag_name)

    def toggle_tag(self, content_hash: str, tag_name: str) -> bool:
        """Flip tag_name on content_hash and return whether it is now present."""
        present = tag_name not in self.db.get(content_hash, ())
        self.set_tag(content_hash, tag_name, present)
        return present

    def add_option(self, tag_name: str) -> str:
        name = normalize_tag(tag_name)
        self.options.add(name)
        return name

    def remove_option(self, tag_name: str, purge: bool = False) -> int:
        """Remove a tag from the vocabulary.

        With purge, also strip it from every assignment. Returns the number of
        assignments that were changed.
        """
        name = normalize_tag(tag_name)
        self.options.discard(name)
        if not purge:
            return 0
        affected = 0
        for tags in self.db.values():
            if name in tags:
                tags.discard(name)
                affected += 1
        return affected

    def tag_counts(self) -> Dict[str, int]:
        counts = {name: 0 for name in self.options}
        for tags in self.db.values():
            for t in tags:
                counts[t] = counts.get(t, 0) + 1
        return counts
