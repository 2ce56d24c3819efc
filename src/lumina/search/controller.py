"""Search controller: owns the state snapshot, the timers, and the item load.

The controller is the only place where :func:`~lumina.search.state.reduce` is
applied. It turns raw view inputs into messages, arms/cancels the debounce and
blur-grace timers based on how the snapshot changed, and publishes
:class:`~lumina.events.ToolSelected` when a transition carries a selection.

Everything runs on the event loop thread; there is no locking.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Iterator

from ..events import EventBus, ToolSelected, ToolsLoaded
from ..services.settings import DEFAULT_BLUR_GRACE_MS, DEFAULT_DEBOUNCE_MS
from ..tools.model import Tool
from ..tools.service import ToolService
from .debounce import DebounceScheduler, OneShotTimer, TimerFactory
from .state import (
    Activate,
    ActivateItem,
    CloseRequested,
    Dismiss,
    FilterRequested,
    FocusGained,
    FocusLost,
    GraceExpired,
    ItemsLoaded,
    LoadStarted,
    Message,
    MoveNext,
    MovePrevious,
    OpenRequested,
    QueryChanged,
    SearchState,
    Transition,
    reduce,
)
from .store import ItemStore

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[SearchState], None]
SelectionCallback = Callable[[Tool], None]

KEY_DOWN = "ArrowDown"
KEY_UP = "ArrowUp"
KEY_ENTER = "Enter"
KEY_ESCAPE = "Escape"


class SearchController:
    """Drives one tool search widget.

    Lifecycle: :meth:`activate` opens a session (fresh state, one async load),
    :meth:`deactivate` cancels every pending timer and the in-flight load. Inputs
    received while inactive are ignored. ``with controller.activated():`` binds
    both calls to a block.
    """

    def __init__(
        self,
        service: ToolService | None,
        *,
        event_bus: EventBus | None = None,
        on_tool_selected: SelectionCallback | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        blur_grace_ms: int = DEFAULT_BLUR_GRACE_MS,
        timer_factory: TimerFactory | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._store = ItemStore(service)
        self._bus = event_bus
        self._on_tool_selected = on_tool_selected
        self._debounce = DebounceScheduler(
            self._on_debounce_fired,
            delay_ms=debounce_ms,
            timer_factory=timer_factory,
        )
        self._grace = OneShotTimer(blur_grace_ms, timer_factory)
        self._loop = loop
        self._state = SearchState()
        self._listeners: list[StateListener] = []
        self._load_tasks: set[asyncio.Task[Any]] = set()
        self._active = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def store(self) -> ItemStore:
        return self._store

    @property
    def debounce_pending(self) -> bool:
        return self._debounce.pending

    @property
    def close_scheduled(self) -> bool:
        return self._grace.active

    def set_selection_callback(self, callback: SelectionCallback | None) -> None:
        self._on_tool_selected = callback

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def activate(self) -> asyncio.Task[Any] | None:
        """Start a session: reset state and load the tools once.

        Returns the load task. Calling this on an active controller is a no-op
        that returns ``None``.
        """

        if self._active:
            return None
        self._active = True
        session = self._store.begin_session()
        LOGGER.debug("Tool search activated (session=%s)", session)
        self._state = SearchState()
        self._notify_listeners()
        return self._start_load(session)

    def deactivate(self) -> None:
        """End the session; pending timers and loads are cancelled and later results dropped."""

        if not self._active:
            return
        self._active = False
        self._debounce.cancel()
        self._grace.cancel()
        self._store.end_session()
        for task in list(self._load_tasks):
            task.cancel()
        LOGGER.debug("Tool search deactivated (session=%s)", self._store.session)

    @contextlib.contextmanager
    def activated(self) -> Iterator[SearchController]:
        self.activate()
        try:
            yield self
        finally:
            self.deactivate()

    def reload(self) -> asyncio.Task[Any] | None:
        """Fetch the tools again within the current session.

        Overlapping loads are last-write-wins: the load that resolves last
        replaces the cache.
        """

        if not self._active:
            return None
        return self._start_load(self._store.session)

    # ------------------------------------------------------------------
    # View inputs
    # ------------------------------------------------------------------
    def set_query(self, text: str) -> None:
        """The user edited the input text."""

        if self._dispatch(QueryChanged(text)) is not None:
            self._debounce.notify(text)

    def move_next(self) -> None:
        self._dispatch(MoveNext())

    def move_previous(self) -> None:
        self._dispatch(MovePrevious())

    def activate_selection(self) -> Tool | None:
        """Select the highlighted row; returns the tool or ``None`` for a no-op."""

        return self._dispatch_selection(Activate())

    def select(self, tool: Tool) -> Tool | None:
        """Select ``tool`` directly, as a click on its row does."""

        return self._dispatch_selection(ActivateItem(tool))

    def dismiss(self) -> None:
        self._dispatch(Dismiss())

    def focus_in(self) -> None:
        self._dispatch(FocusGained())

    def focus_out(self) -> None:
        self._dispatch(FocusLost())

    def open(self) -> None:
        self._dispatch(OpenRequested())

    def close(self) -> None:
        self._dispatch(CloseRequested())

    def handle_key(self, key: str) -> bool:
        """Route a navigation key; returns ``True`` when the key was consumed.

        Keys are ignored (and not consumed) while the dropdown is closed.
        """

        if not self._active or not self._state.is_open:
            return False
        if key == KEY_DOWN:
            self.move_next()
        elif key == KEY_UP:
            self.move_previous()
        elif key == KEY_ENTER:
            self.activate_selection()
        elif key == KEY_ESCAPE:
            self.dismiss()
        else:
            return False
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _dispatch(self, message: Message) -> Transition | None:
        if not self._active:
            LOGGER.debug("Ignoring %s on inactive tool search", type(message).__name__)
            return None
        previous = self._state
        transition = reduce(previous, message)
        current = transition.state
        self._state = current

        if current.close_pending and not previous.close_pending:
            self._grace.start(self._on_grace_expired)
        elif previous.close_pending and not current.close_pending:
            self._grace.cancel()

        if transition.selected is not None:
            self._debounce.cancel()

        if current != previous:
            self._notify_listeners()
        if transition.selected is not None:
            self._emit_selection(transition.selected, transition.source or "keyboard")
        return transition

    def _dispatch_selection(self, message: Message) -> Tool | None:
        transition = self._dispatch(message)
        return transition.selected if transition is not None else None

    def _emit_selection(self, tool: Tool, source: str) -> None:
        LOGGER.debug("Tool selected: %r via %s", tool.name, source)
        if self._bus is not None:
            self._bus.publish(ToolSelected(tool=tool, source=source))
        if self._on_tool_selected is not None:
            self._on_tool_selected(tool)

    def _notify_listeners(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Tool search state listener failed")

    def _on_debounce_fired(self, query: str) -> None:
        LOGGER.debug("Filtering tools for %r", query)
        self._dispatch(FilterRequested(query))

    def _on_grace_expired(self) -> None:
        self._dispatch(GraceExpired())

    def _start_load(self, session: int) -> asyncio.Task[Any]:
        self._dispatch(LoadStarted())
        loop = self._resolve_loop()
        task = loop.create_task(self._load_items(session))
        self._load_tasks.add(task)
        task.add_done_callback(self._load_tasks.discard)
        return task

    async def _load_items(self, session: int) -> None:
        items = await self._store.load(session)
        if items is None or not self._active:
            return
        self._dispatch(ItemsLoaded(items))
        if self._bus is not None:
            self._bus.publish(ToolsLoaded(count=len(items)))

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.get_event_loop()


__all__ = [
    "KEY_DOWN",
    "KEY_ENTER",
    "KEY_ESCAPE",
    "KEY_UP",
    "SearchController",
    "SelectionCallback",
    "StateListener",
]
