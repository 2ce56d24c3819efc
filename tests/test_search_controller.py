"""Behavior tests for :class:`lumina.search.controller.SearchController`."""

from __future__ import annotations

import asyncio

import pytest

from lumina.events import EventBus, ToolSelected, ToolsLoaded
from lumina.search import controller as controller_module
from lumina.search.controller import KEY_DOWN, KEY_ENTER, KEY_ESCAPE, KEY_UP, SearchController
from lumina.search.cursor import NO_SELECTION
from lumina.search.state import DropdownBody, FilterRequested
from lumina.tools.model import Tool
from lumina.tools.service import InMemoryToolService

from tests.helpers import FailingToolService, FakeTimerFactory, GatedToolService, SequencedToolService


def _controller(service, timers: FakeTimerFactory, **kwargs) -> SearchController:
    return SearchController(service, debounce_ms=300, blur_grace_ms=150, timer_factory=timers, **kwargs)


async def _activated(service, timers: FakeTimerFactory, **kwargs) -> SearchController:
    controller = _controller(service, timers, **kwargs)
    task = controller.activate()
    assert task is not None
    await task
    return controller


@pytest.mark.asyncio
async def test_activate_loads_tools_once(tools: list[Tool], timers: FakeTimerFactory) -> None:
    service = GatedToolService(tools)
    controller = _controller(service, timers)

    task = controller.activate()
    assert controller.state.fetching
    assert controller.activate() is None

    service.gate.set()
    await task

    assert service.list_calls == 1
    assert controller.state.items == tuple(tools)
    assert not controller.state.fetching


@pytest.mark.asyncio
async def test_loading_body_shown_until_items_arrive(tools: list[Tool], timers: FakeTimerFactory) -> None:
    service = GatedToolService(tools)
    controller = _controller(service, timers)
    task = controller.activate()
    controller.focus_in()

    assert controller.state.body is DropdownBody.LOADING

    service.gate.set()
    await task
    assert controller.state.body is DropdownBody.RESULTS


@pytest.mark.asyncio
async def test_typing_is_debounced_to_last_query(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = await _activated(InMemoryToolService(tools), timers)

    controller.set_query("F")
    timers.advance(100)
    controller.set_query("Fi")
    timers.advance(100)
    controller.set_query("Fil")
    timers.advance(299)

    assert controller.state.body is DropdownBody.LOADING
    assert controller.debounce_pending

    timers.advance(1)

    assert not controller.debounce_pending
    assert [tool.name for tool in controller.state.results] == ["File Reader"]
    assert controller.state.body is DropdownBody.RESULTS


@pytest.mark.asyncio
async def test_no_match_shows_empty_body(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = await _activated(InMemoryToolService(tools), timers)

    controller.set_query("nothing like this")
    timers.advance(300)

    assert controller.state.body is DropdownBody.EMPTY


@pytest.mark.asyncio
async def test_keyboard_navigation_clamps(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = await _activated(InMemoryToolService(tools), timers)
    controller.focus_in()

    for _ in range(5):
        assert controller.handle_key(KEY_DOWN)
    assert controller.state.selected_index == 2

    for _ in range(5):
        assert controller.handle_key(KEY_UP)
    assert controller.state.selected_index == NO_SELECTION


@pytest.mark.asyncio
async def test_keys_not_consumed_while_closed(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = await _activated(InMemoryToolService(tools), timers)

    assert not controller.handle_key(KEY_DOWN)
    assert not controller.handle_key(KEY_ENTER)
    controller.focus_in()
    assert not controller.handle_key("Tab")


@pytest.mark.asyncio
async def test_enter_selects_highlighted_tool(
    tools: list[Tool], timers: FakeTimerFactory, event_bus: EventBus
) -> None:
    selected: list[Tool] = []
    events: list[ToolSelected] = []
    event_bus.subscribe(ToolSelected, events.append)
    controller = await _activated(
        InMemoryToolService(tools), timers, event_bus=event_bus, on_tool_selected=selected.append
    )
    controller.focus_in()

    controller.handle_key(KEY_DOWN)
    controller.handle_key(KEY_DOWN)
    controller.handle_key(KEY_ENTER)

    assert selected == [tools[1]]
    assert [(event.tool, event.source) for event in events] == [(tools[1], "keyboard")]
    assert controller.state.query == "Data Processor"
    assert not controller.state.is_open


@pytest.mark.asyncio
async def test_enter_without_highlight_selects_nothing(tools: list[Tool], timers: FakeTimerFactory) -> None:
    selected: list[Tool] = []
    controller = await _activated(InMemoryToolService(tools), timers, on_tool_selected=selected.append)
    controller.focus_in()

    assert controller.activate_selection() is None
    assert selected == []
    assert controller.state.is_open


@pytest.mark.asyncio
async def test_escape_closes_without_selecting(tools: list[Tool], timers: FakeTimerFactory) -> None:
    selected: list[Tool] = []
    controller = await _activated(InMemoryToolService(tools), timers, on_tool_selected=selected.append)
    controller.set_query("da")
    timers.advance(300)

    controller.handle_key(KEY_ESCAPE)

    assert not controller.state.is_open
    assert controller.state.query == "da"
    assert selected == []


@pytest.mark.asyncio
async def test_click_within_blur_grace_selects(
    tools: list[Tool], timers: FakeTimerFactory, event_bus: EventBus
) -> None:
    events: list[ToolSelected] = []
    event_bus.subscribe(ToolSelected, events.append)
    controller = await _activated(InMemoryToolService(tools), timers, event_bus=event_bus)
    controller.focus_in()

    controller.focus_out()
    assert controller.close_scheduled
    timers.advance(100)
    assert controller.state.is_open

    chosen = controller.select(tools[2])

    assert chosen == tools[2]
    assert [(event.tool, event.source) for event in events] == [(tools[2], "pointer")]
    assert not controller.close_scheduled
    timers.advance(500)
    assert len(events) == 1
    assert controller.state.query == "HTTP Client"


@pytest.mark.asyncio
async def test_blur_closes_after_grace(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = await _activated(InMemoryToolService(tools), timers)
    controller.focus_in()

    controller.focus_out()
    timers.advance(149)
    assert controller.state.is_open
    timers.advance(1)

    assert not controller.state.is_open
    assert controller.select(tools[0]) is None


@pytest.mark.asyncio
async def test_focus_return_keeps_dropdown_open(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = await _activated(InMemoryToolService(tools), timers)
    controller.focus_in()

    controller.focus_out()
    timers.advance(50)
    controller.focus_in()
    timers.advance(500)

    assert controller.state.is_open
    assert not controller.close_scheduled


@pytest.mark.asyncio
async def test_selection_ignored_while_filter_pending(tools: list[Tool], timers: FakeTimerFactory) -> None:
    selected: list[Tool] = []
    controller = await _activated(InMemoryToolService(tools), timers, on_tool_selected=selected.append)
    controller.set_query("Da")
    assert controller.debounce_pending

    assert controller.select(tools[0]) is None

    assert controller.debounce_pending
    assert selected == []
    timers.advance(300)
    assert controller.state.query == "Da"
    assert [tool.name for tool in controller.state.results] == ["Data Processor"]


@pytest.mark.asyncio
async def test_stale_rows_not_selectable_by_keyboard(
    tools: list[Tool], timers: FakeTimerFactory, event_bus: EventBus
) -> None:
    events: list[ToolSelected] = []
    event_bus.subscribe(ToolSelected, events.append)
    controller = await _activated(InMemoryToolService(tools), timers, event_bus=event_bus)
    controller.focus_in()

    controller.set_query("zzz")
    assert controller.handle_key(KEY_DOWN)
    assert controller.state.selected_index == NO_SELECTION
    assert controller.activate_selection() is None

    assert events == []
    timers.advance(300)
    assert controller.state.body is DropdownBody.EMPTY


@pytest.mark.asyncio
async def test_debounced_burst_runs_one_filter_pass(
    tools: list[Tool], timers: FakeTimerFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    filter_queries: list[str] = []
    real_reduce = controller_module.reduce

    def counting_reduce(state, message):  # type: ignore[no-untyped-def]
        if isinstance(message, FilterRequested):
            filter_queries.append(message.query)
        return real_reduce(state, message)

    monkeypatch.setattr(controller_module, "reduce", counting_reduce)
    controller = await _activated(InMemoryToolService(tools), timers)

    for query in ("F", "Fi", "Fil"):
        controller.set_query(query)
        timers.advance(100)
    timers.advance(300)

    assert filter_queries == ["Fil"]


@pytest.mark.asyncio
async def test_overlapping_loads_keep_loading_until_last_finishes(
    tools: list[Tool], timers: FakeTimerFactory
) -> None:
    service = SequencedToolService(tools[:1], tools)
    controller = _controller(service, timers)
    first = controller.activate()
    controller.focus_in()
    second = controller.reload()
    assert first is not None and second is not None

    service.gates[0].set()
    await first

    assert controller.state.fetching
    assert controller.state.body is DropdownBody.LOADING

    service.gates[1].set()
    await second

    assert not controller.state.fetching
    assert controller.state.body is DropdownBody.RESULTS
    assert controller.state.items == tuple(tools)


@pytest.mark.asyncio
async def test_deactivate_while_load_pending_drops_result(tools: list[Tool], timers: FakeTimerFactory) -> None:
    service = GatedToolService(tools)
    controller = _controller(service, timers)
    task = controller.activate()
    await asyncio.sleep(0)

    controller.deactivate()
    service.gate.set()
    await asyncio.gather(task, return_exceptions=True)

    assert task.done()
    assert controller.state.items == ()
    assert controller.store.items == ()
    assert not controller.is_active


@pytest.mark.asyncio
async def test_deactivate_cancels_timers_and_ignores_input(tools: list[Tool], timers: FakeTimerFactory) -> None:
    states: list[object] = []
    controller = await _activated(InMemoryToolService(tools), timers)
    controller.add_state_listener(states.append)
    controller.set_query("fi")
    controller.focus_out()
    assert controller.debounce_pending
    assert controller.close_scheduled
    states.clear()

    controller.deactivate()
    timers.advance(1000)
    controller.set_query("http")
    controller.focus_in()

    assert not controller.debounce_pending
    assert not controller.close_scheduled
    assert states == []
    assert controller.state.query == "fi"


@pytest.mark.asyncio
async def test_reactivation_starts_fresh(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = await _activated(InMemoryToolService(tools), timers)
    controller.set_query("data")
    controller.deactivate()

    task = controller.activate()
    assert task is not None
    await task

    assert controller.state.query == ""
    assert controller.state.items == tuple(tools)


@pytest.mark.asyncio
async def test_load_failure_degrades_to_empty(timers: FakeTimerFactory, event_bus: EventBus) -> None:
    loaded: list[ToolsLoaded] = []
    event_bus.subscribe(ToolsLoaded, loaded.append)
    controller = await _activated(FailingToolService(), timers, event_bus=event_bus)

    controller.set_query("anything")
    timers.advance(300)

    assert controller.state.body is DropdownBody.EMPTY
    assert [event.count for event in loaded] == [0]


@pytest.mark.asyncio
async def test_reload_replaces_cache(tools: list[Tool], timers: FakeTimerFactory) -> None:
    service = InMemoryToolService(tools[:1])
    controller = await _activated(service, timers)
    await service.save_tool("Zip Helper", "import zipfile")

    task = controller.reload()
    assert task is not None
    await task

    assert [tool.name for tool in controller.state.items] == ["File Reader", "Zip Helper"]


@pytest.mark.asyncio
async def test_listener_failure_is_isolated(tools: list[Tool], timers: FakeTimerFactory) -> None:
    seen: list[str] = []

    def broken(state) -> None:
        raise RuntimeError("boom")

    controller = await _activated(InMemoryToolService(tools), timers)
    controller.add_state_listener(broken)
    controller.add_state_listener(lambda state: seen.append(state.query))

    controller.set_query("x")

    assert seen == ["x"]
    controller.remove_state_listener(broken)
    controller.remove_state_listener(broken)


@pytest.mark.asyncio
async def test_activated_context_manager(tools: list[Tool], timers: FakeTimerFactory) -> None:
    controller = _controller(InMemoryToolService(tools), timers)

    with controller.activated():
        assert controller.is_active
        await asyncio.sleep(0)

    assert not controller.is_active
