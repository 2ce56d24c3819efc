"""Saved tools: the model, its SQLite repository, the async service, and the saver panel."""

from .model import (
    Tool,
    ToolCodeEmptyError,
    ToolNameEmptyError,
    ToolNotFoundError,
    ToolValidationError,
    new_tool,
    validate_tool,
)
from .repository import SQLiteToolRepository
from .service import InMemoryToolService, RepositoryToolService, ToolService, ToolServiceError

__all__ = [
    "InMemoryToolService",
    "RepositoryToolService",
    "SQLiteToolRepository",
    "Tool",
    "ToolCodeEmptyError",
    "ToolNameEmptyError",
    "ToolNotFoundError",
    "ToolService",
    "ToolServiceError",
    "ToolValidationError",
    "new_tool",
    "validate_tool",
]
