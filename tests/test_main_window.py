"""Main window behavior tests (headless)."""

from __future__ import annotations

import asyncio

import pytest

from lumina.events import StatusMessage, ToolSelected
from lumina.main_window import MainWindow, WindowContext
from lumina.search.controller import KEY_DOWN, KEY_ENTER
from lumina.services.settings import Settings
from lumina.tools.model import Tool
from lumina.tools.service import InMemoryToolService

from tests.helpers import FakeTimerFactory


def _make_window(service, timers: FakeTimerFactory, settings: Settings | None = None) -> MainWindow:
    context = WindowContext(settings=settings or Settings(), tool_service=service)
    return MainWindow(context, enable_qt=False, timer_factory=timers)


def test_headless_window_composes_components(tools: list[Tool], timers: FakeTimerFactory) -> None:
    window = _make_window(InMemoryToolService(tools), timers, Settings(search_placeholder="Find..."))

    assert window.window is None
    assert window.search_widget.placeholder == "Find..."
    assert window.search_widget.controller is window.search_controller
    assert window.saver.widget is None
    assert window.code == ""
    assert not window.is_shown


@pytest.mark.asyncio
async def test_show_loads_tools_and_reports_count(tools: list[Tool], timers: FakeTimerFactory) -> None:
    window = _make_window(InMemoryToolService(tools), timers)

    await window.show()

    assert window.is_shown
    assert window.search_controller.state.items == tuple(tools)
    assert window.status_message == "3 tools available"
    window.shutdown()


@pytest.mark.asyncio
async def test_selecting_tool_fills_code_area(tools: list[Tool], timers: FakeTimerFactory) -> None:
    window = _make_window(InMemoryToolService(tools), timers)
    await window.show()
    search = window.search_widget

    search.handle_text_edited("http")
    timers.advance(300)
    search.handle_key(KEY_DOWN)
    search.handle_key(KEY_ENTER)

    assert window.code == tools[2].code
    assert window.saver.code == tools[2].code
    assert window.status_message == "Loaded tool HTTP Client"
    window.shutdown()


@pytest.mark.asyncio
async def test_saving_reloads_search(timers: FakeTimerFactory) -> None:
    service = InMemoryToolService()
    window = _make_window(service, timers)
    await window.show()
    assert window.status_message == "0 tools available"

    window.set_code("print('saved')")
    window.saver.set_name("Printer")
    saved = await window.saver.save()
    assert saved is not None

    # let the reload scheduled by the ToolSaved handler finish
    for _ in range(3):
        await asyncio.sleep(0)

    assert [tool.name for tool in window.search_controller.state.items] == ["Printer"]
    window.shutdown()


@pytest.mark.asyncio
async def test_shutdown_stops_search_and_unsubscribes(tools: list[Tool], timers: FakeTimerFactory) -> None:
    window = _make_window(InMemoryToolService(tools), timers)
    await window.show()

    window.shutdown()

    assert not window.search_controller.is_active
    assert window.event_bus.handler_count(ToolSelected) == 0
    window.event_bus.publish(StatusMessage(message="ignored"))
    assert window.status_message != "ignored"


def test_status_message_event_updates_window(timers: FakeTimerFactory) -> None:
    window = _make_window(None, timers)

    window.event_bus.publish(StatusMessage(message="Ready", timeout_ms=100))

    assert window.status_message == "Ready"
