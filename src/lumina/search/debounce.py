"""Cancellable timers for the search widget.

Every delay the widget uses (the typing debounce and the blur grace period)
is an explicit handle owned by one :class:`OneShotTimer`. Timers are created
through a :class:`TimerFactory` so tests can swap the event loop clock for a
manual one.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Callable, Protocol

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DebounceScheduler",
    "LoopTimerFactory",
    "OneShotTimer",
    "TimerFactory",
    "TimerHandle",
]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class TimerFactory(Protocol):
    """Schedules ``callback`` after ``delay`` seconds and returns a cancellable handle."""

    def __call__(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class LoopTimerFactory:
    """Timer factory backed by ``loop.call_later``.

    Under ``qasync`` the asyncio loop is the Qt event loop, so these timers
    fire on the GUI thread like a ``QTimer`` would.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def __call__(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._resolve_loop().call_later(delay, callback)

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = asyncio.get_event_loop()
        self._loop = loop
        return loop


class OneShotTimer:
    """Holds at most one pending callback; starting again replaces the previous one."""

    def __init__(self, delay_ms: int, timer_factory: TimerFactory | None = None) -> None:
        self._delay_ms = max(0, int(delay_ms))
        self._factory: TimerFactory = timer_factory or LoopTimerFactory()
        self._handle: TimerHandle | None = None

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, callback: Callable[[], None]) -> None:
        self.cancel()
        self._handle = self._factory(self._delay_ms / 1000.0, partial(self._fire, callback))

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()


class DebounceScheduler:
    """Coalesces rapid ``notify`` calls into one callback after a quiet period.

    Only the query passed to the last ``notify`` inside the quiet window reaches
    the callback; earlier pending calls are cancelled, never queued.
    """

    def __init__(
        self,
        callback: Callable[[str], None],
        *,
        delay_ms: int,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self._callback = callback
        self._timer = OneShotTimer(delay_ms, timer_factory)

    @property
    def pending(self) -> bool:
        return self._timer.active

    @property
    def delay_ms(self) -> int:
        return self._timer.delay_ms

    def notify(self, query: str) -> None:
        self._timer.start(partial(self._callback, query))

    def cancel(self) -> None:
        if self._timer.active:
            LOGGER.debug("Cancelling pending debounce")
        self._timer.cancel()
