"""Main window: tool search on top, the code area, and the saver panel below."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .events import EventBus, StatusMessage, ToolSaved, ToolSelected, ToolsLoaded
from .search.controller import SearchController
from .search.debounce import TimerFactory
from .search.widget import ToolSearchWidget
from .services.settings import Settings, SettingsStore
from .tools.saver import ToolSaverPanel
from .tools.service import ToolService

try:  # pragma: no cover - PySide6 optional in CI
    from PySide6.QtGui import QFont
    from PySide6.QtWidgets import QMainWindow, QPlainTextEdit, QVBoxLayout, QWidget

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - headless fallback
    QFont = None  # type: ignore[assignment,misc]
    QMainWindow = None  # type: ignore[assignment,misc]
    QPlainTextEdit = None  # type: ignore[assignment,misc]
    QVBoxLayout = None  # type: ignore[assignment,misc]
    QWidget = None  # type: ignore[assignment,misc]
    _QT_AVAILABLE = False

_LOGGER = logging.getLogger(__name__)

WINDOW_APP_NAME = "Lumina"


@dataclass(slots=True)
class WindowContext:
    """Shared objects handed to the main window by the bootstrapper."""

    settings: Settings
    tool_service: ToolService | None = None
    settings_store: SettingsStore | None = None
    event_bus: EventBus | None = None


class MainWindow:
    """Composes the tool search, code area, and saver panel.

    Selecting a tool in the search replaces the code area's text with the
    tool's code. Saving a tool reloads the search so the new entry shows up.
    """

    def __init__(
        self,
        context: WindowContext,
        *,
        enable_qt: bool | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self._context = context
        settings = context.settings
        if enable_qt is None:
            self._qt_enabled = bool(_QT_AVAILABLE)
        else:
            self._qt_enabled = bool(enable_qt and _QT_AVAILABLE)
        self._bus = context.event_bus or EventBus()
        self._code = ""
        self._status_message = ""
        self._shown = False

        self._search_controller = SearchController(
            context.tool_service,
            event_bus=self._bus,
            debounce_ms=settings.search_debounce_ms,
            blur_grace_ms=settings.blur_grace_ms,
            timer_factory=timer_factory,
        )
        self._search = ToolSearchWidget(
            self._search_controller,
            placeholder=settings.search_placeholder,
            enable_qt=self._qt_enabled,
        )
        self._saver = ToolSaverPanel(
            context.tool_service,
            code_provider=lambda: self._code,
            event_bus=self._bus,
            enable_qt=self._qt_enabled,
        )

        self._window: Any | None = None
        self._editor: Any | None = None
        if self._qt_enabled:
            self._build_window(settings)

        self._bus.subscribe(ToolSelected, self._handle_tool_selected)
        self._bus.subscribe(ToolSaved, self._handle_tool_saved)
        self._bus.subscribe(ToolsLoaded, self._handle_tools_loaded)
        self._bus.subscribe(StatusMessage, self._handle_status_message)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def search_widget(self) -> ToolSearchWidget:
        return self._search

    @property
    def search_controller(self) -> SearchController:
        return self._search_controller

    @property
    def saver(self) -> ToolSaverPanel:
        return self._saver

    @property
    def code(self) -> str:
        return self._code

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def window(self) -> Any | None:
        """Underlying ``QMainWindow``, or ``None`` in headless mode."""

        return self._window

    @property
    def is_shown(self) -> bool:
        return self._shown

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def show(self) -> Any:
        """Show the window and start the tool search; returns the initial load task."""

        self._shown = True
        if self._window is not None:
            self._restore_geometry()
            self._window.show()
        return self._search.attach()

    def shutdown(self) -> None:
        """Stop the search session and persist window geometry."""

        self._search.detach()
        self._persist_geometry()
        self._bus.unsubscribe(ToolSelected, self._handle_tool_selected)
        self._bus.unsubscribe(ToolSaved, self._handle_tool_saved)
        self._bus.unsubscribe(ToolsLoaded, self._handle_tools_loaded)
        self._bus.unsubscribe(StatusMessage, self._handle_status_message)
        self._shown = False

    # ------------------------------------------------------------------
    # Code area
    # ------------------------------------------------------------------
    def set_code(self, code: str) -> None:
        self._code = code
        if self._editor is not None and self._editor.toPlainText() != code:
            self._editor.setPlainText(code)
        self._saver.set_code(code)

    def set_status_message(self, message: str, *, timeout_ms: int = 0) -> None:
        self._status_message = message
        if self._window is not None:
            self._window.statusBar().showMessage(message, timeout_ms)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _handle_tool_selected(self, event: ToolSelected) -> None:
        _LOGGER.info("Loaded tool %r into the code area", event.tool.name)
        self.set_code(event.tool.code)
        self.set_status_message(f"Loaded tool {event.tool.name}", timeout_ms=3000)

    def _handle_tool_saved(self, event: ToolSaved) -> None:
        self._search_controller.reload()

    def _handle_tools_loaded(self, event: ToolsLoaded) -> None:
        noun = "tool" if event.count == 1 else "tools"
        self.set_status_message(f"{event.count} {noun} available", timeout_ms=3000)

    def _handle_status_message(self, event: StatusMessage) -> None:
        self.set_status_message(event.message, timeout_ms=event.timeout_ms)

    def _on_editor_text_changed(self) -> None:
        if self._editor is None:
            return
        self._code = self._editor.toPlainText()
        self._saver.set_code(self._code)

    # ------------------------------------------------------------------
    # Qt helpers
    # ------------------------------------------------------------------
    def _build_window(self, settings: Settings) -> None:
        if QMainWindow is None or QWidget is None:
            return
        window = QMainWindow()
        window.setWindowTitle(WINDOW_APP_NAME)
        central = QWidget(window)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)

        search_widget = self._search.widget
        if search_widget is not None:
            layout.addWidget(search_widget)

        editor = QPlainTextEdit()
        editor.setObjectName("lumina-code-area")
        editor.setPlaceholderText("Write or load tool code here...")
        if QFont is not None:
            editor.setFont(QFont(settings.font_family, settings.font_size))
        editor.textChanged.connect(self._on_editor_text_changed)  # type: ignore[attr-defined]
        layout.addWidget(editor, 1)

        saver_widget = self._saver.widget
        if saver_widget is not None:
            layout.addWidget(saver_widget)

        window.setCentralWidget(central)
        window.resize(960, 720)
        self._window = window
        self._editor = editor

    def _restore_geometry(self) -> None:
        geometry = self._context.settings.window_geometry
        if self._window is None or not geometry:
            return
        try:
            from PySide6.QtCore import QByteArray

            self._window.restoreGeometry(QByteArray.fromBase64(geometry.encode("ascii")))
        except Exception as exc:  # pragma: no cover - corrupt geometry payloads
            _LOGGER.debug("Unable to restore window geometry: %s", exc)

    def _persist_geometry(self) -> None:
        store: Optional[SettingsStore] = self._context.settings_store
        if self._window is None or store is None:
            return
        try:
            encoded = bytes(self._window.saveGeometry().toBase64()).decode("ascii")
        except Exception as exc:  # pragma: no cover - Qt teardown ordering
            _LOGGER.debug("Unable to capture window geometry: %s", exc)
            return
        self._context.settings.window_geometry = encoded
        try:
            store.save(self._context.settings)
        except OSError as exc:
            _LOGGER.warning("Failed to persist window geometry: %s", exc)


__all__ = ["MainWindow", "WindowContext", "WINDOW_APP_NAME"]
