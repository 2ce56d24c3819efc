"""SQLite-backed persistence for saved tools."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from threading import RLock
from types import TracebackType

from .model import Tool, ToolNotFoundError

LOGGER = logging.getLogger(__name__)

_COLUMNS = "id, name, code, created_at, updated_at"


class SQLiteToolRepository:
    """Stores tools in a single ``tools`` table keyed by id, unique by name.

    The connection is shared across threads (``RepositoryToolService`` calls in
    from worker threads), so every statement runs under one lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._path = Path(db_path)
        if str(db_path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = RLock()
        self._closed = False
        self._create_schema()
        LOGGER.debug("Tool repository opened at %s", db_path)

    @property
    def path(self) -> Path:
        return self._path

    def _create_schema(self) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS tools (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL UNIQUE,
                        code TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                self._conn.execute("CREATE INDEX IF NOT EXISTS idx_tools_name ON tools(name)")

    def save(self, tool: Tool) -> None:
        """Insert ``tool`` or replace the row sharing its id or name."""

        with self._lock:
            with self._conn:
                self._conn.execute(
                    f"INSERT OR REPLACE INTO tools ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                    (
                        tool.id,
                        tool.name,
                        tool.code,
                        tool.created_at.isoformat(),
                        tool.updated_at.isoformat(),
                    ),
                )

    def get_by_id(self, tool_id: str) -> Tool:
        row = self._fetch_one(f"SELECT {_COLUMNS} FROM tools WHERE id = ?", (tool_id,))
        if row is None:
            raise ToolNotFoundError(f"tool not found: id={tool_id}")
        return Tool.from_payload(row)

    def get_by_name(self, name: str) -> Tool:
        row = self._fetch_one(f"SELECT {_COLUMNS} FROM tools WHERE name = ?", (name,))
        if row is None:
            raise ToolNotFoundError(f"tool not found: name={name}")
        return Tool.from_payload(row)

    def list(self) -> list[Tool]:
        """Return every tool, newest first."""

        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM tools ORDER BY created_at DESC"
            ).fetchall()
        return [Tool.from_payload(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def __enter__(self) -> SQLiteToolRepository:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _fetch_one(self, sql: str, params: tuple[str, ...]) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()
