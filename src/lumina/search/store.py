"""Cached copy of the provider's tools for one widget activation."""

from __future__ import annotations

import asyncio
import logging

from ..tools.model import Tool
from ..tools.service import ToolService

LOGGER = logging.getLogger(__name__)


class ItemStore:
    """Read-only cache filled from a :class:`ToolService`.

    Each widget activation opens a session. A load that resolves after its
    session was closed is discarded. Within one live session, loads are
    last-write-wins: whichever resolves last replaces the cache.

    A failed load is logged and leaves the cache empty; there is no retry.
    """

    def __init__(self, provider: ToolService | None) -> None:
        self._provider = provider
        self._items: tuple[Tool, ...] = ()
        self._session = 0
        self._open = False

    @property
    def items(self) -> tuple[Tool, ...]:
        return self._items

    @property
    def session(self) -> int:
        return self._session

    @property
    def is_open(self) -> bool:
        return self._open

    def begin_session(self) -> int:
        self._session += 1
        self._open = True
        self._items = ()
        return self._session

    def end_session(self) -> None:
        self._open = False

    def accepts(self, session: int) -> bool:
        return self._open and session == self._session

    async def load(self, session: int) -> tuple[Tool, ...] | None:
        """Fetch tools for ``session``.

        Returns the cached tuple, or ``None`` when the session ended while the
        provider call was in flight (nothing was written in that case).
        """

        if self._provider is None:
            LOGGER.warning("No tool service configured; tool search stays empty")
            items: tuple[Tool, ...] = ()
        else:
            try:
                items = tuple(await self._provider.list_tools())
            except asyncio.CancelledError:
                raise
            except Exception:
                LOGGER.warning("Failed to load tools", exc_info=True)
                items = ()

        if not self.accepts(session):
            LOGGER.debug("Discarding tool load for closed session %s", session)
            return None
        self._items = items
        LOGGER.debug("Item store holds %d tool(s)", len(items))
        return items


__all__ = ["ItemStore"]
