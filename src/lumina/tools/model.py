"""Tool records shared by the search widget, the saver panel, and the repository."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Mapping

__all__ = [
    "Tool",
    "ToolCodeEmptyError",
    "ToolNameEmptyError",
    "ToolNotFoundError",
    "ToolValidationError",
    "new_tool",
    "validate_tool",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ToolValidationError(ValueError):
    """Raised when a tool cannot be built from the given name/code."""


class ToolNameEmptyError(ToolValidationError):
    def __init__(self) -> None:
        super().__init__("tool name cannot be empty")


class ToolCodeEmptyError(ToolValidationError):
    def __init__(self) -> None:
        super().__init__("tool code cannot be empty")


class ToolNotFoundError(KeyError):
    """Raised by lookups that found no matching tool."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "tool not found"


@dataclass(frozen=True, slots=True)
class Tool:
    """Saved snippet of code with a unique name.

    Attributes:
        id: Opaque identifier (a UUID4 string for tools created locally).
        name: Display name; this is what the search widget matches against.
        code: The snippet body.
        created_at: Creation time, timezone-aware UTC.
        updated_at: Last modification time, timezone-aware UTC.
    """

    id: str
    name: str
    code: str
    created_at: datetime
    updated_at: datetime

    def with_updated_code(self, code: str) -> Tool:
        """Return a copy carrying ``code`` (trimmed) and a refreshed ``updated_at``."""

        return replace(self, code=code.strip(), updated_at=_utcnow())

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Tool:
        """Build a tool from :meth:`to_payload` output or a database row mapping."""

        try:
            return cls(
                id=str(payload["id"]),
                name=str(payload["name"]),
                code=str(payload["code"]),
                created_at=_parse_timestamp(payload["created_at"]),
                updated_at=_parse_timestamp(payload["updated_at"]),
            )
        except KeyError as exc:
            raise ValueError(f"Tool payload is missing {exc.args[0]!r}") from exc


def new_tool(name: str, code: str) -> Tool:
    """Create a tool with a fresh id and both timestamps set to now.

    No validation happens here; use :func:`validate_tool` for user input.
    """

    now = _utcnow()
    return Tool(
        id=str(uuid.uuid4()),
        name=name.strip(),
        code=code.strip(),
        created_at=now,
        updated_at=now,
    )


def validate_tool(name: str, code: str) -> Tool:
    """Create a tool from user input, rejecting blank names or code."""

    if not name.strip():
        raise ToolNameEmptyError()
    if not code.strip():
        raise ToolCodeEmptyError()
    return new_tool(name, code)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
