"""Tests for tag filter resolution and the selection cursor."""

import pytest

from vidtagger.filters import Selection, passes, resolve, vocabulary_membership

INDEX = {
    "abc": "/media/b/abc.mp4",
    "def": "/media/a/def.webm",
    "xyz": "/media/c/xyz.gif",
}
ASSIGNMENTS = {"abc": {"funny"}, "def": {"funny", "loud"}}


def test_empty_filter_shows_everything_sorted() -> None:
    """No required tags: every path, ascending by path."""
    assert resolve(INDEX, ASSIGNMENTS, set()) == sorted(INDEX.values())


def test_conjunctive_filter_with_vacuous_pass() -> None:
    """Tags combine with AND; a hash with no assignment entry passes every filter."""
    assert resolve(INDEX, ASSIGNMENTS, {"funny"}) == ["/media/a/def.webm", "/media/b/abc.mp4", "/media/c/xyz.gif"]
    assert resolve(INDEX, ASSIGNMENTS, {"loud"}) == ["/media/a/def.webm", "/media/c/xyz.gif"]
    assert resolve(INDEX, ASSIGNMENTS, {"funny", "loud"}) == ["/media/a/def.webm", "/media/c/xyz.gif"]
    assert resolve(INDEX, ASSIGNMENTS, {"nobody"}) == ["/media/c/xyz.gif"]


def test_empty_entry_is_not_vacuous() -> None:
    """A hash that was seen (empty entry) is filtered like any tagged hash."""
    assignments = dict(ASSIGNMENTS, xyz=set())
    assert resolve(INDEX, assignments, {"loud"}) == ["/media/a/def.webm"]


def test_empty_table_passes_everything() -> None:
    """With no assignments at all, every path passes any filter."""
    assert resolve(INDEX, {}, {"funny"}) == sorted(INDEX.values())


def test_untagged_pass_off() -> None:
    """Disabling the vacuous pass hides unassigned content once a filter is set."""
    assert resolve(INDEX, ASSIGNMENTS, {"loud"}, untagged_pass=False) == ["/media/a/def.webm"]
    assert resolve(INDEX, {}, {"funny"}, untagged_pass=False) == []
    assert resolve(INDEX, ASSIGNMENTS, set(), untagged_pass=False) == sorted(INDEX.values())


def test_passes_single_hash() -> None:
    """passes mirrors resolve for a single hash."""
    assert passes("abc", ASSIGNMENTS, ["funny"])
    assert not passes("abc", ASSIGNMENTS, ["loud"])
    assert passes("xyz", ASSIGNMENTS, ["loud"])


def test_vocabulary_membership() -> None:
    """Checkbox state for each vocabulary tag, sorted by name."""
    assert vocabulary_membership({"loud", "funny"}, {"funny"}) == {"funny": True, "loud": False}


def test_selection_starts_at_zero_and_empties() -> None:
    """Loading a non-empty list selects index 0; an empty list selects nothing."""
    sel = Selection()
    assert sel.index is None
    assert sel.refresh(["a", "b"]) == 0
    assert sel.path == "a"
    assert sel.refresh([]) is None
    assert not sel.is_selected
    assert sel.path is None


@pytest.mark.parametrize("start", [0, 1, 4])
def test_next_wraps_after_n_steps(start: int) -> None:
    """n Next steps from i visit every index and come back to i; Prev mirrors it."""
    items = [f"p{i}" for i in range(5)]
    sel = Selection()
    sel.refresh(items)
    for _ in range(start):
        sel.next()
    assert sel.index == start
    seen = []
    for _ in range(len(items)):
        seen.append(sel.next())
    assert sorted(seen) == list(range(5))
    assert sel.index == start
    seen = []
    for _ in range(len(items)):
        seen.append(sel.prev())
    assert sorted(seen) == list(range(5))
    assert sel.index == start


def test_prev_from_zero_goes_to_last() -> None:
    """Prev from the first item wraps to the last."""
    sel = Selection()
    sel.refresh(["a", "b", "c"])
    assert sel.prev() == 2


def test_navigation_without_selection_is_noop() -> None:
    """Next/Prev with nothing selected do nothing and do not raise."""
    sel = Selection()
    assert sel.next() is None
    assert sel.prev() is None


def test_refresh_keeps_selected_path_if_still_listed() -> None:
    """The selected path stays selected at its new position."""
    sel = Selection()
    sel.refresh(["a", "b", "c"])
    sel.next()
    sel.next()
    assert sel.refresh(["c", "d"]) == 0
    assert sel.refresh(["a", "b", "c"]) == 2
    assert sel.path == "c"


def test_refresh_resets_when_selected_path_filtered_out() -> None:
    """A filtered-out selection moves to index 0, or to nothing if the list is empty."""
    sel = Selection()
    sel.refresh(["a", "b", "c"])
    sel.next()
    assert sel.refresh(["a", "c"]) == 0
    assert sel.path == "a"
    sel.next()
    assert sel.refresh([]) is None
