"""Keyboard selection cursor over the current result list."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, TypeVar

T = TypeVar("T")

NO_SELECTION = -1


@dataclass(frozen=True, slots=True)
class SelectionCursor:
    """Highlighted row index; ``-1`` means nothing is highlighted.

    Moves clamp at both ends and never wrap around.
    """

    index: int = NO_SELECTION

    def next(self, size: int) -> SelectionCursor:
        # size 0 keeps the cursor at -1
        return SelectionCursor(max(NO_SELECTION, min(self.index + 1, size - 1)))

    def previous(self) -> SelectionCursor:
        return SelectionCursor(max(self.index - 1, NO_SELECTION))

    def reset(self) -> SelectionCursor:
        return SelectionCursor()

    def has_selection(self, size: int) -> bool:
        return 0 <= self.index < size

    def pick(self, results: Sequence[T]) -> T | None:
        """Return the highlighted item, or ``None`` when the index is out of range."""

        if self.has_selection(len(results)):
            return results[self.index]
        return None


__all__ = ["NO_SELECTION", "SelectionCursor"]
