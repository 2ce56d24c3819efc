"""Tool service: the async provider the search widget and saver panel talk to."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Protocol, Sequence, runtime_checkable

from .model import Tool, ToolValidationError, validate_tool
from .repository import SQLiteToolRepository

LOGGER = logging.getLogger(__name__)

__all__ = [
    "InMemoryToolService",
    "RepositoryToolService",
    "ToolService",
    "ToolServiceError",
]


class ToolServiceError(RuntimeError):
    """Raised when the backing store is missing or rejected an operation."""


@runtime_checkable
class ToolService(Protocol):
    """Provider of saved tools.

    Both calls may fail. Callers decide whether a failure degrades (the search
    widget) or is shown to the user (the saver panel).
    """

    async def list_tools(self) -> Sequence[Tool]:
        ...

    async def save_tool(self, name: str, code: str) -> Tool:
        ...


class RepositoryToolService:
    """Runs :class:`SQLiteToolRepository` calls on a worker thread."""

    def __init__(self, repository: SQLiteToolRepository | None) -> None:
        self._repository = repository

    async def list_tools(self) -> list[Tool]:
        repository = self._require_repository()
        try:
            return await asyncio.to_thread(repository.list)
        except Exception as exc:
            raise ToolServiceError(f"failed to list tools: {exc}") from exc

    async def save_tool(self, name: str, code: str) -> Tool:
        repository = self._require_repository()
        try:
            tool = validate_tool(name, code)
        except ToolValidationError as exc:
            raise ToolServiceError(f"validation failed: {exc}") from exc
        try:
            await asyncio.to_thread(repository.save, tool)
        except Exception as exc:
            raise ToolServiceError(f"failed to save tool: {exc}") from exc
        LOGGER.info("Saved tool %r (%s)", tool.name, tool.id)
        return tool

    async def get_tool(self, tool_id: str) -> Tool:
        repository = self._require_repository()
        return await asyncio.to_thread(repository.get_by_id, tool_id)

    async def get_tool_by_name(self, name: str) -> Tool:
        repository = self._require_repository()
        return await asyncio.to_thread(repository.get_by_name, name)

    def _require_repository(self) -> SQLiteToolRepository:
        if self._repository is None:
            raise ToolServiceError("tool repository not available")
        return self._repository


class InMemoryToolService:
    """List-backed service for demos and tests.

    ``latency`` (seconds) is awaited before every call so loading states can be
    observed by hand.
    """

    def __init__(self, tools: Iterable[Tool] = (), *, latency: float = 0.0) -> None:
        self._tools: list[Tool] = list(tools)
        self._latency = max(0.0, latency)

    async def list_tools(self) -> list[Tool]:
        if self._latency:
            await asyncio.sleep(self._latency)
        return list(self._tools)

    async def save_tool(self, name: str, code: str) -> Tool:
        if self._latency:
            await asyncio.sleep(self._latency)
        tool = validate_tool(name, code)
        self._tools = [existing for existing in self._tools if existing.name != tool.name]
        self._tools.append(tool)
        return tool
