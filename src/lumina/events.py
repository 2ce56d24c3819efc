"""Event bus used by the search, saver, and window components.

Views and domain objects never call each other directly for outward
notifications. A selection made in the tool search is published as a
:class:`ToolSelected` event and whoever cares (the code area, the status bar)
subscribes to it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

    from .tools.model import Tool

LOGGER = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for every event published on the :class:`EventBus`."""


@dataclass(slots=True)
class ToolSelected(Event):
    """Emitted once per completed activation in the tool search.

    Attributes:
        tool: The tool the user picked.
        source: ``"keyboard"`` for Enter on the highlighted row, ``"pointer"``
            for a click on a row.
    """

    tool: Tool
    source: str = "keyboard"


@dataclass(slots=True)
class ToolSaved(Event):
    """Emitted after the saver panel persisted a tool."""

    tool: Tool


@dataclass(slots=True)
class ToolsLoaded(Event):
    """Emitted when the search widget finished populating its item store.

    Attributes:
        count: Number of tools now cached by the widget (zero after a failed load).
    """

    count: int


@dataclass(slots=True)
class StatusMessage(Event):
    """Emitted to display a transient message in the window status bar."""

    message: str
    timeout_ms: int = 0


class EventBus(Generic[E]):
    """Typed publish/subscribe bus.

    Bound methods are held weakly so a discarded widget does not stay alive
    only because it subscribed. Plain functions and lambdas are held strongly.

    Not thread-safe: publish and subscribe from the event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""

        self._handlers[event_type].append(_HandlerRef.create(handler))
        LOGGER.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                LOGGER.debug("Unsubscribed %s from %s", _handler_name(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        """Invoke every live handler for ``type(event)`` in registration order.

        A handler that raises is logged and does not stop the remaining
        handlers from running.
        """

        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            LOGGER.debug("No handlers for %s", event_type.__name__)
            return

        LOGGER.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))
        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                LOGGER.exception(
                    "Handler %s raised while handling %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        if dead:
            # handlers may unsubscribe themselves during delivery
            handlers[:] = [ref for ref in handlers if not any(ref is gone for gone in dead)]

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, target: Any, is_weak: bool) -> None:
        self._ref = target
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref
        return self._ref()

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "StatusMessage",
    "ToolSaved",
    "ToolSelected",
    "ToolsLoaded",
]
