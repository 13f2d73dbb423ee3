"""Tag filter resolution and the selection cursor over the filtered list.

A filter is a set of tag names combined with AND. Content that has never been
tagged (no assignment entry at all, or an assignment table that is entirely
empty) passes every filter while ``untagged_pass`` is on, so newly found files
stay visible until someone tags them.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Set


def passes(
    content_hash: str,
    assignments: Mapping[str, Set[str]],
    query: Iterable[str],
    untagged_pass: bool = True,
) -> bool:
    required = set(query)
    if not required:
        return True
    tags = assignments.get(content_hash)
    if tags is None or not assignments:
        return untagged_pass
    return required.issubset(tags)


def resolve(
    index: Mapping[str, str],
    assignments: Mapping[str, Set[str]],
    query: Iterable[str],
    untagged_pass: bool = True,
) -> List[str]:
    """Paths in index (content hash -> path) whose content matches query, sorted by path."""
    required = set(query)
    return sorted(
        path
        for content_hash, path in index.items()
        if passes(content_hash, assignments, required, untagged_pass)
    )


class Selection:
    """Cursor over the filtered path list: either nothing selected or an index into it."""

    def __init__(self) -> None:
        self._paths: List[str] = []
        self._index: Optional[int] = None

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    @property
    def index(self) -> Optional[int]:
        return self._index

    @property
    def is_selected(self) -> bool:
        return self._index is not None

    @property
    def path(self) -> Optional[str]:
        if self._index is None:
            return None
        return self._paths[self._index]

    def refresh(self, paths: List[str]) -> Optional[int]:
        """Replace the list after a folder load or filter change.

        The selected path keeps its selection if it is still listed; otherwise
        the cursor moves to the first item, or to nothing if the list is empty.
        """
        previous = self.path
        self._paths = list(paths)
        if not self._paths:
            self._index = None
        elif previous is not None and previous in self._paths:
            self._index = self._paths.index(previous)
        else:
            self._index = 0
        return self._index

    def next(self) -> Optional[int]:
        n = len(self._paths)
        if self._index is not None and n > 0:
            self._index = (self._index + 1) % n
        return self._index

    def prev(self) -> Optional[int]:
        n = len(self._paths)
        if self._index is not None and n > 0:
            self._index = (self._index + n - 1) % n
        return self._index

    def clear(self) -> None:
        self._paths = []
        self._index = None


def vocabulary_membership(options: Iterable[str], tags: Set[str]) -> Dict[str, bool]:
    """Checkbox state for each vocabulary tag against one item's tags."""
    return {name: name in tags for name in sorted(options)}
