"""Tool search widget: a PySide6 view over :class:`SearchController`.

The widget only renders :class:`~lumina.search.state.SearchState` and forwards
raw input (text edits, navigation keys, focus changes, row clicks) to the
controller. Every Qt signal has a plain ``handle_*`` method counterpart, so the
widget can be driven without a ``QApplication`` (``enable_qt=False``), which is
how the tests exercise it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from ..tools.model import Tool
from .controller import KEY_DOWN, KEY_ENTER, KEY_ESCAPE, KEY_UP, SearchController
from .state import DropdownBody, SearchState

try:  # pragma: no cover - optional Qt dependency
    from PySide6.QtCore import QEvent, QObject, Qt
    from PySide6.QtWidgets import (
        QLabel,
        QLineEdit,
        QListWidget,
        QListWidgetItem,
        QVBoxLayout,
        QWidget,
    )

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - headless fallback
    QEvent = None  # type: ignore[assignment,misc]
    QObject = None  # type: ignore[assignment,misc]
    Qt = None  # type: ignore[assignment]
    QLabel = None  # type: ignore[assignment,misc]
    QLineEdit = None  # type: ignore[assignment,misc]
    QListWidget = None  # type: ignore[assignment,misc]
    QListWidgetItem = None  # type: ignore[assignment,misc]
    QVBoxLayout = None  # type: ignore[assignment,misc]
    QWidget = None  # type: ignore[assignment,misc]
    _QT_AVAILABLE = False

DEFAULT_PLACEHOLDER = "Search for tools..."
LOADING_TEXT = "Loading tools..."
EMPTY_TEXT = "No tools found"


@dataclass(frozen=True, slots=True)
class ToolRow:
    """One rendered dropdown row."""

    tool: Tool
    label: str
    detail: str
    selected: bool


def build_rows(state: SearchState) -> list[ToolRow]:
    """Rows for the dropdown, or an empty list when the body is not the result list."""

    if state.body is not DropdownBody.RESULTS:
        return []
    return [
        ToolRow(
            tool=tool,
            label=tool.name,
            detail=tool.created_at.astimezone().date().isoformat(),
            selected=index == state.selected_index,
        )
        for index, tool in enumerate(state.results)
    ]


def _status_text(body: DropdownBody) -> str:
    if body is DropdownBody.LOADING:
        return LOADING_TEXT
    if body is DropdownBody.EMPTY:
        return EMPTY_TEXT
    return ""


class ToolSearchWidget:
    """Search input with a dropdown of matching tools."""

    def __init__(
        self,
        controller: SearchController,
        *,
        parent: Any | None = None,
        placeholder: str = DEFAULT_PLACEHOLDER,
        enable_qt: bool | None = None,
    ) -> None:
        self._controller = controller
        self._parent = parent
        self._placeholder = placeholder
        if enable_qt is None:
            self._qt_enabled = bool(_QT_AVAILABLE)
        else:
            self._qt_enabled = bool(enable_qt and _QT_AVAILABLE)
        self._query_text = ""
        self._rows: list[ToolRow] = []
        self._body = DropdownBody.HIDDEN
        self._widget: Any | None = None
        self._input: Any | None = None
        self._list_widget: Any | None = None
        self._status_label: Any | None = None
        self._event_filter: Any | None = None
        self._rendered_tools: tuple[Tool, ...] = ()
        if self._qt_enabled:
            self._build_widget()
        controller.add_state_listener(self._render)
        self._render(controller.state)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def widget(self) -> Any | None:
        """Root ``QWidget``, or ``None`` in headless mode."""

        return self._widget

    @property
    def controller(self) -> SearchController:
        return self._controller

    @property
    def placeholder(self) -> str:
        return self._placeholder

    @property
    def query_text(self) -> str:
        return self._query_text

    @property
    def rows(self) -> Sequence[ToolRow]:
        return tuple(self._rows)

    @property
    def body(self) -> DropdownBody:
        return self._body

    @property
    def dropdown_visible(self) -> bool:
        return self._body is not DropdownBody.HIDDEN

    @property
    def status_text(self) -> str:
        return _status_text(self._body)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def attach(self) -> Any:
        """Activate the controller; the tools start loading now."""

        return self._controller.activate()

    def detach(self) -> None:
        self._controller.deactivate()

    # ------------------------------------------------------------------
    # Input handlers (Qt signals land here too)
    # ------------------------------------------------------------------
    def handle_text_edited(self, text: str) -> None:
        self._query_text = text
        self._controller.set_query(text)

    def handle_key(self, key: str) -> bool:
        return self._controller.handle_key(key)

    def handle_focus_in(self) -> None:
        self._controller.focus_in()

    def handle_focus_out(self) -> None:
        self._controller.focus_out()

    def handle_row_clicked(self, index: int) -> Tool | None:
        if not 0 <= index < len(self._rows):
            return None
        return self._controller.select(self._rows[index].tool)

    def open(self) -> None:
        self._controller.open()

    def close(self) -> None:
        self._controller.close()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _render(self, state: SearchState) -> None:
        self._rows = build_rows(state)
        self._body = state.body
        self._query_text = state.query
        if self._widget is not None:
            self._render_qt(state)

    def _render_qt(self, state: SearchState) -> None:
        if self._input is not None and self._input.text() != state.query:
            # setText does not emit textEdited, so this never loops back
            self._input.setText(state.query)
        if self._status_label is not None:
            text = _status_text(self._body)
            self._status_label.setText(text)
            self._status_label.setVisible(bool(text))
        list_widget = self._list_widget
        if list_widget is None:
            return
        show_rows = self._body is DropdownBody.RESULTS
        list_widget.setVisible(show_rows)
        if not show_rows:
            return
        tools = tuple(row.tool for row in self._rows)
        if tools != self._rendered_tools:
            list_widget.clear()
            for row in self._rows:
                item = QListWidgetItem(f"{row.label}    {row.detail}")
                item.setData(Qt.ItemDataRole.UserRole, row.tool)
                list_widget.addItem(item)
            self._rendered_tools = tools
        list_widget.setCurrentRow(state.selected_index)

    def _build_widget(self) -> None:
        if not self._qt_enabled or QWidget is None or QVBoxLayout is None:
            return
        root = QWidget(self._parent)
        root.setObjectName("lumina-tool-search")
        layout = QVBoxLayout(root)
        layout.setContentsMargins(12, 8, 12, 8)
        layout.setSpacing(0)

        search_input = QLineEdit()
        search_input.setPlaceholderText(self._placeholder)
        search_input.textEdited.connect(self.handle_text_edited)  # type: ignore[attr-defined]
        layout.addWidget(search_input)

        status_label = QLabel()
        status_label.setObjectName("lumina-tool-search-status")
        status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        status_label.setVisible(False)
        layout.addWidget(status_label)

        list_widget = QListWidget()
        list_widget.setObjectName("lumina-tool-search-results")
        # clicking a row must not steal focus from the input
        list_widget.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        list_widget.setMaximumHeight(200)
        list_widget.itemClicked.connect(self._on_item_clicked)  # type: ignore[attr-defined]
        list_widget.setVisible(False)
        layout.addWidget(list_widget)

        event_filter = _InputEventFilter(self, root)
        search_input.installEventFilter(event_filter)

        self._widget = root
        self._input = search_input
        self._status_label = status_label
        self._list_widget = list_widget
        self._event_filter = event_filter

    def _on_item_clicked(self, item: Any) -> None:
        if item is None or Qt is None:
            return
        tool = item.data(Qt.ItemDataRole.UserRole)
        if isinstance(tool, Tool):
            self._controller.select(tool)


# Qt key codes (Qt.Key_Escape, Key_Return, Key_Enter, Key_Up, Key_Down) so the
# mapping also works without PySide6.
_KEY_NAMES: dict[int, str] = {
    0x01000000: KEY_ESCAPE,
    0x01000004: KEY_ENTER,
    0x01000005: KEY_ENTER,
    0x01000013: KEY_UP,
    0x01000015: KEY_DOWN,
}


def key_name(code: Any) -> str | None:
    """Map a Qt key code to the controller's key name, or ``None`` for other keys."""

    try:
        return _KEY_NAMES.get(int(code))
    except (TypeError, ValueError):
        value = getattr(code, "value", None)
        return _KEY_NAMES.get(value) if isinstance(value, int) else None


if _QT_AVAILABLE:  # pragma: no cover - requires PySide6

    class _InputEventFilter(QObject):
        """Forwards navigation keys and focus changes from the search input."""

        def __init__(self, owner: ToolSearchWidget, parent: Any) -> None:
            super().__init__(parent)
            self._owner = owner

        def eventFilter(self, watched: Any, event: Any) -> bool:  # noqa: N802 - Qt override
            event_type = event.type()
            if event_type == QEvent.Type.KeyPress:
                key = key_name(event.key())
                if key is not None and self._owner.handle_key(key):
                    return True
            elif event_type == QEvent.Type.FocusIn:
                self._owner.handle_focus_in()
            elif event_type == QEvent.Type.FocusOut:
                self._owner.handle_focus_out()
            return super().eventFilter(watched, event)


__all__ = [
    "DEFAULT_PLACEHOLDER",
    "EMPTY_TEXT",
    "LOADING_TEXT",
    "ToolRow",
    "ToolSearchWidget",
    "build_rows",
    "key_name",
]
