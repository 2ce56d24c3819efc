"""Incremental tool search.

Layers, leaves first:
    - filtering: pure substring filter over the cached tools
    - cursor: clamped keyboard highlight
    - debounce: cancellable one-shot timers and the typing debounce
    - store: per-activation cache of the provider's tools
    - state: immutable snapshot and the pure transition function
    - controller: applies transitions, owns timers and the async load
    - widget: PySide6 view binding (headless without Qt)
"""

from __future__ import annotations

from .controller import SearchController
from .cursor import NO_SELECTION, SelectionCursor
from .debounce import DebounceScheduler, LoopTimerFactory, OneShotTimer
from .filtering import filter_items
from .state import DropdownBody, SearchState, Visibility, reduce
from .store import ItemStore
from .widget import ToolRow, ToolSearchWidget

__all__: list[str] = [
    "DebounceScheduler",
    "DropdownBody",
    "ItemStore",
    "LoopTimerFactory",
    "NO_SELECTION",
    "OneShotTimer",
    "SearchController",
    "SearchState",
    "SelectionCursor",
    "ToolRow",
    "ToolSearchWidget",
    "Visibility",
    "filter_items",
    "reduce",
]
