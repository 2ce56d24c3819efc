"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from lumina.events import EventBus
from lumina.tools.model import Tool
from lumina.tools.service import InMemoryToolService

from tests.helpers import FakeTimerFactory, sample_tools


@pytest.fixture
def tools() -> list[Tool]:
    return sample_tools()


@pytest.fixture
def timers() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def tool_service(tools: list[Tool]) -> InMemoryToolService:
    return InMemoryToolService(tools)


@pytest.fixture(autouse=True)
def _isolate_lumina_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in (
        "LUMINA_DATABASE_PATH",
        "LUMINA_THEME",
        "LUMINA_DEBUG_LOGGING",
        "LUMINA_SEARCH_DEBOUNCE_MS",
        "LUMINA_BLUR_GRACE_MS",
        "LUMINA_SETTINGS_PATH",
        "LUMINA_DEBUG",
        "LUMINA_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LUMINA_LOG_DIR", str(tmp_path / "logs"))
