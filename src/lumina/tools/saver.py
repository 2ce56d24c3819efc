"""Tool saver panel: names the current code and persists it through the tool service."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

from ..events import EventBus, StatusMessage, ToolSaved
from .model import Tool
from .service import ToolService

try:  # pragma: no cover - optional Qt dependency
    from PySide6.QtWidgets import QHBoxLayout, QLabel, QLineEdit, QPushButton, QVBoxLayout, QWidget

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - headless fallback
    QHBoxLayout = None  # type: ignore[assignment,misc]
    QLabel = None  # type: ignore[assignment,misc]
    QLineEdit = None  # type: ignore[assignment,misc]
    QPushButton = None  # type: ignore[assignment,misc]
    QVBoxLayout = None  # type: ignore[assignment,misc]
    QWidget = None  # type: ignore[assignment,misc]
    _QT_AVAILABLE = False

LOGGER = logging.getLogger(__name__)

MISSING_NAME_MESSAGE = "Please enter a tool name"
EMPTY_CODE_MESSAGE = "Cannot save an empty tool"
NO_SERVICE_MESSAGE = "Error: Tool service not available"


class ToolSaverPanel:
    """Name input plus a Save button bound to the editor's code.

    The panel keeps its state (name, message, saving flag) outside the Qt
    widgets so it can run headless. ``code_provider`` is called at save time to
    read the code to persist.
    """

    def __init__(
        self,
        service: ToolService | None,
        *,
        code_provider: Callable[[], str] | None = None,
        event_bus: EventBus | None = None,
        parent: Any | None = None,
        enable_qt: bool | None = None,
    ) -> None:
        self._service = service
        self._code_provider = code_provider
        self._bus = event_bus
        self._parent = parent
        if enable_qt is None:
            self._qt_enabled = bool(_QT_AVAILABLE)
        else:
            self._qt_enabled = bool(enable_qt and _QT_AVAILABLE)
        self._code = ""
        self._name = ""
        self._message = ""
        self._message_is_error = False
        self._saving = False
        self._task: asyncio.Task[Any] | None = None
        self._widget: Any | None = None
        self._name_input: Any | None = None
        self._save_button: Any | None = None
        self._message_label: Any | None = None
        if self._qt_enabled:
            self._build_widget()
        self._refresh()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def widget(self) -> Any | None:
        return self._widget

    @property
    def name(self) -> str:
        return self._name

    @property
    def code(self) -> str:
        if self._code_provider is not None:
            return self._code_provider()
        return self._code

    @property
    def message(self) -> str:
        return self._message

    @property
    def message_is_error(self) -> bool:
        return self._message_is_error

    @property
    def saving(self) -> bool:
        return self._saving

    @property
    def can_save(self) -> bool:
        return not self._saving and bool(self._name.strip()) and bool(self.code.strip())

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def set_name(self, text: str) -> None:
        """Record an edit of the name field; any previous message is cleared."""

        self._name = text
        self._set_message("")

    def set_code(self, code: str) -> None:
        self._code = code
        self._refresh()

    async def save(self) -> Tool | None:
        """Validate and persist the current name/code.

        Returns the saved tool, or ``None`` when validation failed or the
        service raised. The outcome is reported through :attr:`message`.
        """

        name = self._name.strip()
        code = self.code.strip()
        if not name:
            self._set_message(MISSING_NAME_MESSAGE, error=True)
            return None
        if not code:
            self._set_message(EMPTY_CODE_MESSAGE, error=True)
            return None
        if self._service is None:
            self._set_message(NO_SERVICE_MESSAGE, error=True)
            return None

        self._saving = True
        self._set_message("")
        try:
            tool = await self._service.save_tool(name, code)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Saving tool %r failed: %s", name, exc)
            self._set_message(f"Error: {exc}", error=True)
            return None
        finally:
            self._saving = False
            self._refresh()

        self._name = ""
        self._set_message(f'Tool "{tool.name}" saved successfully!')
        if self._bus is not None:
            self._bus.publish(ToolSaved(tool=tool))
            self._bus.publish(StatusMessage(message=f"Saved tool {tool.name}", timeout_ms=3000))
        return tool

    def request_save(self) -> asyncio.Task[Any] | None:
        """Schedule :meth:`save` on the running loop (button click / Enter)."""

        if self._saving or (self._task is not None and not self._task.done()):
            return None
        return self._run_coroutine(self.save())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _set_message(self, message: str, *, error: bool = False) -> None:
        self._message = message
        self._message_is_error = error and bool(message)
        self._refresh()

    def _run_coroutine(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return None
        task = loop.create_task(coro)
        self._task = task
        return task

    def _refresh(self) -> None:
        if self._widget is None:
            return
        if self._name_input is not None:
            if self._name_input.text() != self._name:
                self._name_input.setText(self._name)
            self._name_input.setEnabled(not self._saving)
        if self._save_button is not None:
            self._save_button.setText("Saving..." if self._saving else "Save")
            self._save_button.setEnabled(self.can_save)
        if self._message_label is not None:
            self._message_label.setText(self._message)
            self._message_label.setVisible(bool(self._message))
            self._message_label.setProperty("error", self._message_is_error)
            style = self._message_label.style()
            if style is not None:
                style.unpolish(self._message_label)
                style.polish(self._message_label)

    def _build_widget(self) -> None:
        if not self._qt_enabled or QWidget is None or QVBoxLayout is None:
            return
        root = QWidget(self._parent)
        root.setObjectName("lumina-tool-saver")
        layout = QVBoxLayout(root)
        layout.setContentsMargins(16, 12, 16, 12)

        row = QHBoxLayout()
        name_input = QLineEdit()
        name_input.setPlaceholderText("Enter tool name...")
        name_input.textEdited.connect(self.set_name)  # type: ignore[attr-defined]
        name_input.returnPressed.connect(self.request_save)  # type: ignore[attr-defined]
        row.addWidget(name_input, 1)
        save_button = QPushButton("Save")
        save_button.clicked.connect(lambda *_: self.request_save())  # type: ignore[attr-defined]
        row.addWidget(save_button)
        layout.addLayout(row)

        message_label = QLabel()
        message_label.setObjectName("lumina-tool-saver-message")
        message_label.setVisible(False)
        layout.addWidget(message_label)

        self._widget = root
        self._name_input = name_input
        self._save_button = save_button
        self._message_label = message_label


__all__ = [
    "EMPTY_CODE_MESSAGE",
    "MISSING_NAME_MESSAGE",
    "NO_SERVICE_MESSAGE",
    "ToolSaverPanel",
]
