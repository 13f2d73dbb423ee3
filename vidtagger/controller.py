"""Application state and the actions the front end reports back.

The controller owns the global path index, the tag store, the filter and the
selection cursor. Every failure coming out of scanning, media probing or
saving is caught here, logged and put in ``FrameState.error`` for display.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from . import filters
from .config import Settings
from .library import COLLISION_POLICIES, Collision, GlobalPathIndex
from .player import MAX_VOLUME, MediaHandle, MediaOpenError, open_media
from .store import TagStore
from .worker import ScanResult, ScanWorker

log = logging.getLogger(__name__)

MediaOpener = Callable[..., MediaHandle]


@dataclass
class FrameState:
    """Everything the front end needs to draw one frame."""

    folder: Optional[str]
    paths: List[str]
    index: Optional[int]
    selected_path: Optional[str]
    vocabulary: List[str]
    item_tags: Dict[str, bool]
    filter_tags: Set[str]
    scanning: bool
    status: str
    error: Optional[str]
    media_size: Optional[Tuple[int, int]] = None
    volume: Optional[float] = None
    collisions: List[Collision] = field(default_factory=list)
    tag_counts: Dict[str, int] = field(default_factory=dict)


class LibraryController:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[TagStore] = None,
        media_opener: MediaOpener = open_media,
        worker: Optional[ScanWorker] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.index = GlobalPathIndex(self.settings.collision_policy)
        self.store = store if store is not None else TagStore()
        self.filter_tags: Set[str] = set()
        self.selection = filters.Selection()
        self.folder: Optional[str] = None
        self.media: Optional[MediaHandle] = None
        self.volume = self.settings.volume
        self.status = ""
        self.error: Optional[str] = None
        self.collisions: List[Collision] = []
        self._open_media = media_opener
        self._worker = worker or ScanWorker(
            sidecar_name=self.settings.sidecar_name,
            max_workers=self.settings.hash_workers,
        )
        self._scan_token: Optional[int] = None
        self.dirty = False

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "LibraryController":
        """Build a controller with the tag store loaded from settings.tags_path.

        Raises OSError when the snapshot cannot be read or created.
        """
        return cls(settings, store=TagStore.load(settings.tags_path), **kwargs)

    # -- folder loading ---------------------------------------------------

    @property
    def scanning(self) -> bool:
        return self._scan_token is not None

    def pick_folder(self, folder: Optional[str], force_rebuild: bool = False) -> None:
        """Start a background scan of folder. None means the picker was cancelled."""
        if not folder:
            return
        if not os.path.isdir(folder):
            self._report(f"Not a folder: {folder}")
            return
        self.folder = os.path.abspath(folder)
        self.error = None
        self.status = f"Scanning {self.folder}..."
        self._scan_token = self._worker.submit(self.folder, force_rebuild)

    def request_rebuild(self) -> None:
        if self.folder is None:
            self._report("Pick a folder before rebuilding hashes")
            return
        self.pick_folder(self.folder, force_rebuild=True)

    def poll_scans(self) -> bool:
        """Apply finished scans. Returns True when the visible state changed."""
        changed = False
        for result in self._worker.poll():
            if result.token != self._scan_token:
                continue
            self._scan_token = None
            self._apply_scan(result)
            changed = True
        return changed

    def load_folder_now(self, folder: str, force_rebuild: bool = False) -> bool:
        """Scan folder on the scan thread and wait for it. Returns False if the scan failed."""
        folder = os.path.abspath(folder)
        self.folder = folder
        self._scan_token = None
        token = self._worker.submit(folder, force_rebuild)
        self._worker.wait()
        for result in self._worker.poll():
            if result.token == token:
                self._apply_scan(result)
                return result.ok
        self._report(f"Scan of {folder} was cancelled")
        return False

    def _apply_scan(self, result: ScanResult) -> None:
        if not result.ok:
            self._report(f"Could not load {result.folder}: {result.error}")
            return
        self.collisions = self.index.merge(result.folder, result.entries)
        self.error = None
        self.status = f"{len(result.entries)} video files in folder"
        if self.collisions:
            self.status += f" ({len(self.collisions)} also found in another folder)"
        self._refilter()

    # -- filtering and navigation -----------------------------------------

    def visible_paths(self) -> List[str]:
        return filters.resolve(
            self.index.as_dict(),
            self.store.db,
            self.filter_tags,
            untagged_pass=self.settings.untagged_pass,
        )

    def _refilter(self) -> None:
        before = self.selection.path
        self.selection.refresh(self.visible_paths())
        if self.selection.path != before or self.media is None:
            self._open_selected()

    def set_filter(self, tags: Iterable[str]) -> None:
        self.filter_tags = {t for t in tags if t}
        self._refilter()

    def toggle_filter_tag(self, tag: str) -> None:
        if tag in self.filter_tags:
            self.filter_tags.discard(tag)
        else:
            self.filter_tags.add(tag)
        self._refilter()

    def set_untagged_pass(self, enabled: bool) -> None:
        self.settings.untagged_pass = bool(enabled)
        self._refilter()

    def next(self) -> None:
        if self.selection.next() is not None:
            self._open_selected()

    def prev(self) -> None:
        if self.selection.prev() is not None:
            self._open_selected()

    def _open_selected(self) -> None:
        if self.media is not None:
            self.media.close()
            self.media = None
        path = self.selection.path
        if path is None:
            return
        content_hash = self.index.hash_for(path)
        if content_hash is not None and not self.store.has_entry(content_hash):
            self.store.observe(content_hash)
        try:
            self.media = self._open_media(path, volume=self.volume)
        except MediaOpenError as e:
            self._report(f"Failed to open {os.path.basename(path)}: {e}")

    # -- tagging ----------------------------------------------------------

    def selected_hash(self) -> Optional[str]:
        path = self.selection.path
        return self.index.hash_for(path) if path else None

    def toggle_tag(self, tag: str) -> Optional[bool]:
        """Flip tag on the selected item; the filtered list is left as is until the filter changes."""
        content_hash = self.selected_hash()
        if content_hash is None:
            return None
        present = self.store.toggle_tag(content_hash, tag)
        self.dirty = True
        return present

    def set_tag(self, tag: str, present: bool) -> None:
        content_hash = self.selected_hash()
        if content_hash is None:
            return
        self.store.set_tag(content_hash, tag, present)
        self.dirty = True

    def add_option(self, name: str) -> Optional[str]:
        try:
            added = self.store.add_option(name)
        except ValueError as e:
            self._report(str(e))
            return None
        self.dirty = True
        return added

    def remove_option(self, name: str, purge: bool = False) -> int:
        try:
            affected = self.store.remove_option(name, purge=purge)
        except ValueError as e:
            self._report(str(e))
            return 0
        self.filter_tags.discard(name.strip())
        self.dirty = True
        self._refilter()
        return affected

    def save(self) -> bool:
        try:
            self.store.save(self.settings.tags_path)
        except OSError as e:
            self._report(f"Could not save tags: {e}")
            return False
        self.dirty = False
        self.error = None
        self.status = "Tags saved"
        return True

    # -- settings -----------------------------------------------------------

    def set_volume(self, volume: float) -> None:
        if self.media is not None:
            self.media.volume = volume
            self.volume = self.media.volume
        else:
            self.volume = min(MAX_VOLUME, max(0.0, float(volume)))

    def set_collision_policy(self, policy: str) -> None:
        """Change which path wins for content found in several folders; applies to later loads."""
        if policy not in COLLISION_POLICIES:
            self._report(f"Unknown collision policy: {policy}")
            return
        self.settings.collision_policy = policy
        self.index.collision_policy = policy

    # -- view model ---------------------------------------------------------

    def frame(self, size_scale: float = 1.0) -> FrameState:
        content_hash = self.selected_hash()
        item_tags = self.store.get_tags(content_hash) if content_hash else set()
        return FrameState(
            folder=self.folder,
            paths=self.selection.paths,
            index=self.selection.index,
            selected_path=self.selection.path,
            vocabulary=sorted(self.store.options),
            item_tags=filters.vocabulary_membership(self.store.options, item_tags) if content_hash else {},
            filter_tags=set(self.filter_tags),
            scanning=self.scanning,
            status=self.status,
            error=self.error,
            media_size=self.media.display_size(size_scale) if self.media is not None else None,
            volume=self.media.volume if self.media is not None else None,
            collisions=list(self.collisions),
            tag_counts=self.store.tag_counts(),
        )

    def _report(self, message: str) -> None:
        log.warning(message)
        self.error = message

    def close(self) -> None:
        self._worker.shutdown()
        if self.media is not None:
            self.media.close()
            self.media = None
