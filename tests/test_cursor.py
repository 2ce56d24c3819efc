"""Tests for the clamped selection cursor."""

from __future__ import annotations

from lumina.search.cursor import NO_SELECTION, SelectionCursor


def test_default_cursor_has_no_selection() -> None:
    cursor = SelectionCursor()
    assert cursor.index == NO_SELECTION
    assert not cursor.has_selection(3)
    assert cursor.pick(["a", "b"]) is None


def test_next_clamps_at_last_row() -> None:
    cursor = SelectionCursor()
    for _ in range(5):
        cursor = cursor.next(3)
    assert cursor.index == 2


def test_previous_clamps_at_no_selection() -> None:
    cursor = SelectionCursor(1)
    for _ in range(5):
        cursor = cursor.previous()
    assert cursor.index == NO_SELECTION


def test_next_on_empty_results_stays_unselected() -> None:
    assert SelectionCursor().next(0).index == NO_SELECTION


def test_pick_and_reset() -> None:
    cursor = SelectionCursor().next(3).next(3)
    assert cursor.pick(["a", "b", "c"]) == "b"
    assert cursor.reset() == SelectionCursor()


def test_pick_ignores_stale_index() -> None:
    assert SelectionCursor(4).pick(["a"]) is None
