"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from lumina.tools.model import Tool, validate_tool

_BASE_TIME = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def make_tool(name: str, code: str | None = None, *, minutes: int = 0, tool_id: str | None = None) -> Tool:
    created = _BASE_TIME + timedelta(minutes=minutes)
    return Tool(
        id=tool_id or f"id-{name.lower().replace(' ', '-')}",
        name=name,
        code=code if code is not None else f"# {name}\nprint({name!r})",
        created_at=created,
        updated_at=created,
    )


def sample_tools() -> list[Tool]:
    """File Reader, Data Processor, HTTP Client, in provider order."""

    return [
        make_tool("File Reader", "open('data.txt').read()", minutes=2),
        make_tool("Data Processor", "rows = [r.strip() for r in rows]", minutes=1),
        make_tool("HTTP Client", "urllib.request.urlopen(url)", minutes=0),
    ]


class FakeTimer:
    def __init__(self, due_ms: float, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired


class FakeTimerFactory:
    """Manual clock for :class:`~lumina.search.debounce.TimerFactory`.

    Nothing fires until :meth:`advance` moves the clock past a timer's due time.
    """

    def __init__(self) -> None:
        self.now_ms = 0.0
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now_ms + round(delay * 1000, 6), callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if timer.active]

    def advance(self, ms: float) -> None:
        target = self.now_ms + ms
        while True:
            due = [timer for timer in self.pending if timer.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda item: item.due_ms)
            self.now_ms = timer.due_ms
            timer.fired = True
            timer.callback()
        self.now_ms = target


class GatedToolService:
    """Tool service whose ``list_tools`` waits until :attr:`gate` is set."""

    def __init__(self, tools: Iterable[Tool] = (), *, error: Exception | None = None) -> None:
        self.tools = list(tools)
        self.error = error
        self.gate = asyncio.Event()
        self.list_calls = 0
        self.saved: list[Tool] = []

    async def list_tools(self) -> list[Tool]:
        self.list_calls += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.tools)

    async def save_tool(self, name: str, code: str) -> Tool:
        if self.error is not None:
            raise self.error
        tool = validate_tool(name, code)
        self.saved.append(tool)
        return tool


class SequencedToolService:
    """Each ``list_tools`` call waits on its own gate and returns its own payload."""

    def __init__(self, *payloads: list[Tool]) -> None:
        self._payloads = list(payloads)
        self.gates = [asyncio.Event() for _ in payloads]
        self.list_calls = 0

    async def list_tools(self) -> list[Tool]:
        index = self.list_calls
        self.list_calls += 1
        await self.gates[index].wait()
        return list(self._payloads[index])

    async def save_tool(self, name: str, code: str) -> Tool:  # pragma: no cover - unused
        raise NotImplementedError


class FailingToolService:
    """Every call raises ``error``."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("database is locked")

    async def list_tools(self) -> list[Tool]:
        raise self.error

    async def save_tool(self, name: str, code: str) -> Tool:
        raise self.error
