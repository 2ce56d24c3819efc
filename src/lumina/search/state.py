"""Search widget state and its transitions.

The widget's state is an immutable :class:`SearchState` snapshot. Every input
(a keystroke, a timer firing, a load completing) is a message, and
:func:`reduce` maps ``(state, message)`` to a :class:`Transition` holding the
next snapshot plus the tool selected by that step, if any. Nothing in this
module touches timers, the event loop, or Qt.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable

from ..tools.model import Tool
from .cursor import SelectionCursor
from .filtering import filter_items


class Visibility(Enum):
    CLOSED = "closed"
    OPEN = "open"


class DropdownBody(Enum):
    """What the open dropdown shows, in priority order: loading, empty, rows."""

    HIDDEN = "hidden"
    LOADING = "loading"
    EMPTY = "empty"
    RESULTS = "results"


@dataclass(frozen=True, slots=True)
class SearchState:
    """Snapshot of everything the search widget renders.

    Attributes:
        items: Cached tools from the provider, in provider order.
        query: Raw text of the search input.
        results: Tools matching the query as of the last filter pass.
        cursor: Keyboard highlight over ``results``.
        visibility: Whether the dropdown is shown.
        loads_in_flight: Provider loads started but not finished yet.
        filter_pending: A debounced filter pass has not run yet.
        focused: The search input has keyboard focus.
        close_pending: Focus was lost while open; the grace timer will close
            the dropdown unless focus returns or a selection lands first.
    """

    items: tuple[Tool, ...] = ()
    query: str = ""
    results: tuple[Tool, ...] = ()
    cursor: SelectionCursor = SelectionCursor()
    visibility: Visibility = Visibility.CLOSED
    loads_in_flight: int = 0
    filter_pending: bool = False
    focused: bool = False
    close_pending: bool = False

    @property
    def is_open(self) -> bool:
        return self.visibility is Visibility.OPEN

    @property
    def fetching(self) -> bool:
        return self.loads_in_flight > 0

    @property
    def loading(self) -> bool:
        return self.fetching or self.filter_pending

    @property
    def selected_index(self) -> int:
        return self.cursor.index

    @property
    def highlighted(self) -> Tool | None:
        return self.cursor.pick(self.results)

    @property
    def body(self) -> DropdownBody:
        if not self.is_open:
            return DropdownBody.HIDDEN
        if self.loading:
            return DropdownBody.LOADING
        if not self.results:
            return DropdownBody.EMPTY
        return DropdownBody.RESULTS


# ----------------------------------------------------------------------
# Messages
# ----------------------------------------------------------------------


class Message:
    """Base class for inputs accepted by :func:`reduce`."""

    __slots__ = ()


@dataclass(frozen=True, slots=True)
class LoadStarted(Message):
    pass


@dataclass(frozen=True, slots=True)
class ItemsLoaded(Message):
    items: tuple[Tool, ...]


@dataclass(frozen=True, slots=True)
class QueryChanged(Message):
    text: str


@dataclass(frozen=True, slots=True)
class FilterRequested(Message):
    """The debounce timer fired for ``query``."""

    query: str


@dataclass(frozen=True, slots=True)
class MoveNext(Message):
    pass


@dataclass(frozen=True, slots=True)
class MovePrevious(Message):
    pass


@dataclass(frozen=True, slots=True)
class Activate(Message):
    """Enter on the highlighted row."""


@dataclass(frozen=True, slots=True)
class ActivateItem(Message):
    """Pointer click on a row, independent of the keyboard highlight."""

    tool: Tool


@dataclass(frozen=True, slots=True)
class Dismiss(Message):
    """Escape key."""


@dataclass(frozen=True, slots=True)
class FocusGained(Message):
    pass


@dataclass(frozen=True, slots=True)
class FocusLost(Message):
    pass


@dataclass(frozen=True, slots=True)
class GraceExpired(Message):
    pass


@dataclass(frozen=True, slots=True)
class OpenRequested(Message):
    pass


@dataclass(frozen=True, slots=True)
class CloseRequested(Message):
    pass


@dataclass(frozen=True, slots=True)
class Transition:
    state: SearchState
    selected: Tool | None = None
    source: str | None = None


# ----------------------------------------------------------------------
# Reducer
# ----------------------------------------------------------------------


def _closed(state: SearchState) -> SearchState:
    return replace(
        state,
        visibility=Visibility.CLOSED,
        cursor=state.cursor.reset(),
        close_pending=False,
    )


def _rows_shown(state: SearchState) -> bool:
    # keys and clicks only act on rows the dropdown is showing
    return state.body is DropdownBody.RESULTS


def _select(state: SearchState, tool: Tool, source: str) -> Transition:
    chosen = replace(_closed(state), query=tool.name, filter_pending=False)
    return Transition(chosen, selected=tool, source=source)


def _on_load_started(state: SearchState, message: LoadStarted) -> Transition:
    return Transition(replace(state, loads_in_flight=state.loads_in_flight + 1))


def _on_items_loaded(state: SearchState, message: ItemsLoaded) -> Transition:
    items = tuple(message.items)
    return Transition(
        replace(
            state,
            items=items,
            results=tuple(filter_items(state.query, items)),
            cursor=state.cursor.reset(),
            loads_in_flight=max(0, state.loads_in_flight - 1),
        )
    )


def _on_query_changed(state: SearchState, message: QueryChanged) -> Transition:
    # typing implies the input has focus
    return Transition(
        replace(
            state,
            query=message.text,
            cursor=state.cursor.reset(),
            visibility=Visibility.OPEN,
            filter_pending=True,
            focused=True,
            close_pending=False,
        )
    )


def _on_filter_requested(state: SearchState, message: FilterRequested) -> Transition:
    visibility = Visibility.OPEN if state.focused else state.visibility
    return Transition(
        replace(
            state,
            results=tuple(filter_items(message.query, state.items)),
            cursor=state.cursor.reset(),
            filter_pending=False,
            visibility=visibility,
        )
    )


def _on_move_next(state: SearchState, message: MoveNext) -> Transition:
    if not _rows_shown(state):
        return Transition(state)
    return Transition(replace(state, cursor=state.cursor.next(len(state.results))))


def _on_move_previous(state: SearchState, message: MovePrevious) -> Transition:
    if not _rows_shown(state):
        return Transition(state)
    return Transition(replace(state, cursor=state.cursor.previous()))


def _on_activate(state: SearchState, message: Activate) -> Transition:
    if not _rows_shown(state):
        return Transition(state)
    tool = state.highlighted
    if tool is None:
        return Transition(state)
    return _select(state, tool, "keyboard")


def _on_activate_item(state: SearchState, message: ActivateItem) -> Transition:
    if not _rows_shown(state) or message.tool not in state.results:
        return Transition(state)
    return _select(state, message.tool, "pointer")


def _on_dismiss(state: SearchState, message: Dismiss) -> Transition:
    if not state.is_open:
        return Transition(state)
    return Transition(_closed(state))


def _on_focus_gained(state: SearchState, message: FocusGained) -> Transition:
    return Transition(
        replace(state, focused=True, close_pending=False, visibility=Visibility.OPEN)
    )


def _on_focus_lost(state: SearchState, message: FocusLost) -> Transition:
    return Transition(replace(state, focused=False, close_pending=state.is_open))


def _on_grace_expired(state: SearchState, message: GraceExpired) -> Transition:
    # focus came back or a selection already closed the dropdown
    if not state.close_pending:
        return Transition(state)
    return Transition(_closed(state))


def _on_open_requested(state: SearchState, message: OpenRequested) -> Transition:
    return Transition(replace(state, visibility=Visibility.OPEN, close_pending=False))


def _on_close_requested(state: SearchState, message: CloseRequested) -> Transition:
    return Transition(_closed(state))


_REDUCERS: dict[type[Message], Callable[[SearchState, Any], Transition]] = {
    LoadStarted: _on_load_started,
    ItemsLoaded: _on_items_loaded,
    QueryChanged: _on_query_changed,
    FilterRequested: _on_filter_requested,
    MoveNext: _on_move_next,
    MovePrevious: _on_move_previous,
    Activate: _on_activate,
    ActivateItem: _on_activate_item,
    Dismiss: _on_dismiss,
    FocusGained: _on_focus_gained,
    FocusLost: _on_focus_lost,
    GraceExpired: _on_grace_expired,
    OpenRequested: _on_open_requested,
    CloseRequested: _on_close_requested,
}


def reduce(state: SearchState, message: Message) -> Transition:
    """Apply ``message`` to ``state`` and return the resulting transition."""

    try:
        reducer = _REDUCERS[type(message)]
    except KeyError:
        raise TypeError(f"Unsupported search message: {type(message).__name__}") from None
    return reducer(state, message)


__all__ = [
    "Activate",
    "ActivateItem",
    "CloseRequested",
    "Dismiss",
    "DropdownBody",
    "FilterRequested",
    "FocusGained",
    "FocusLost",
    "GraceExpired",
    "ItemsLoaded",
    "LoadStarted",
    "Message",
    "MoveNext",
    "MovePrevious",
    "OpenRequested",
    "QueryChanged",
    "SearchState",
    "Transition",
    "Visibility",
    "reduce",
]
