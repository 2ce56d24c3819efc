"""Application bootstrap for the Lumina desktop shell.

``main`` parses the command line, resolves the effective :class:`Settings`
and either prints them (``--dump-settings``) or opens the tool database and
runs the main window on a qasync event loop.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, TextIO, cast, get_origin, get_type_hints

from .main_window import WINDOW_APP_NAME, MainWindow, WindowContext
from .services.settings import Settings, SettingsStore
from .tools.repository import SQLiteToolRepository
from .tools.service import RepositoryToolService
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
DEFAULT_STYLE = "default"


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


@dataclass(slots=True)
class LaunchConfig:
    """Effective settings plus where they came from."""

    settings: Settings
    store: SettingsStore
    overrides: Dict[str, Any] = field(default_factory=dict)


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure application logging and route Qt messages into it."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    _install_qt_message_handler()


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def prepare_launch(args: argparse.Namespace) -> LaunchConfig:
    """Resolve the settings file, ``--set``/``--db-path`` overrides, and load settings.

    Raises ``ValueError`` for a malformed ``--set`` entry.
    """

    settings_path = args.settings_path or os.environ.get("LUMINA_SETTINGS_PATH")
    store = SettingsStore(Path(settings_path).expanduser() if settings_path else None)
    overrides = _coerce_cli_overrides(args.overrides or [])
    if args.db_path:
        overrides["database_path"] = str(Path(args.db_path).expanduser())
    settings = load_settings(store=store, overrides=overrides or None)
    return LaunchConfig(settings=settings, store=store, overrides=overrides)


def open_repository(settings: Settings, db_path: Path | None = None) -> SQLiteToolRepository | None:
    """Open the tool database; ``None`` when it cannot be opened.

    The shell still starts without a repository: the search stays empty and
    the saver reports that the service is unavailable.
    """

    path = db_path or settings.resolved_database_path()
    try:
        repository = SQLiteToolRepository(path)
    except Exception as exc:
        _LOGGER.error("Unable to open tool database %s: %s", path, exc)
        return None
    _LOGGER.info("Tool database: %s", repository.path)
    return repository


def resolve_style(theme: str | None, available: Iterable[str]) -> str | None:
    """Map the ``theme`` setting onto one of the installed Qt widget styles.

    ``"default"`` (or blank) keeps the platform style and returns ``None``.
    Names match case-insensitively; an unknown name is logged and ignored.
    """

    wanted = (theme or "").strip().lower()
    if not wanted or wanted == DEFAULT_STYLE:
        return None
    styles = list(available)
    for style in styles:
        if style.lower() == wanted:
            return style
    _LOGGER.warning("Unknown theme %r; installed styles: %s", theme, ", ".join(styles) or "none")
    return None


def create_qapp(settings: Settings) -> QtRuntime:
    """Create the QApplication, apply the themed style, and install a qasync loop."""

    try:
        from PySide6.QtWidgets import QApplication, QStyleFactory
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to launch the Lumina UI.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName(WINDOW_APP_NAME)
    app.setApplicationDisplayName(WINDOW_APP_NAME)

    style = resolve_style(settings.theme, QStyleFactory.keys())
    if style is not None:
        app.setStyle(style)
        _LOGGER.debug("Using Qt style %s", style)

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)  # type: ignore[attr-defined]
    return QtRuntime(app=app, loop=loop)


def run(launch: LaunchConfig) -> None:  # pragma: no cover - needs a display
    """Show the main window and block on the Qt event loop until it quits."""

    repository = open_repository(launch.settings)
    runtime = create_qapp(launch.settings)
    window = MainWindow(
        WindowContext(
            settings=launch.settings,
            tool_service=RepositoryToolService(repository),
            settings_store=launch.store,
        )
    )
    window.show()

    loop = runtime.loop
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        _LOGGER.info("Shutdown requested by user.")
    finally:
        window.shutdown()
        _drain_event_loop(loop)
        loop.close()
        if repository is not None:
            repository.close()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `lumina` console script."""

    args, passthrough = _parse_cli_args(argv)
    _rewrite_sys_argv(passthrough)

    debug = _env_flag("LUMINA_DEBUG")
    configure_logging(debug)

    try:
        launch = prepare_launch(args)
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    if args.dump_settings:
        _dump_settings(launch.settings, launch.store, overrides=launch.overrides)
        return

    if launch.settings.debug_logging and not debug:
        configure_logging(True, force=True)

    run(launch)


def _env_flag(name: str) -> bool:
    value = os.environ.get(name)
    return value is not None and value.strip().lower() in _TRUE_VALUES


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel tool loads and saves still pending on ``loop`` and close async generators."""

    if loop.is_closed():
        return

    async def _cancel_pending() -> None:
        current = asyncio.current_task()
        pending = [task for task in asyncio.all_tasks() if task is not current and not task.done()]
        if pending:
            _LOGGER.debug("Cancelling %d pending task(s) before shutdown", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cancel_pending())
    except RuntimeError as exc:  # pragma: no cover - loop already stopping
        _LOGGER.debug("Unable to drain event loop: %s", exc)


def _install_qt_message_handler() -> None:
    """Send Qt's own warnings through the ``lumina.qt`` logger."""

    try:
        from PySide6.QtCore import QtMsgType, qInstallMessageHandler
    except Exception:  # pragma: no cover - PySide6 optional during tests
        return

    qt_logger = logging.getLogger("lumina.qt")
    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        qt_logger.log(level_map.get(mode, logging.INFO), message)

    qInstallMessageHandler(_handler)


def _parse_cli_args(argv: Sequence[str] | None) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(
        prog="lumina",
        description="Launch the Lumina tool editor or inspect its configuration.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.lumina/settings.json path.",
    )
    parser.add_argument(
        "--db-path",
        metavar="PATH",
        help="Use this SQLite tool database instead of ~/.lumina/lumina.db.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override a persisted setting for this launch (repeatable).",
    )
    # unknown arguments are left for QApplication (-platform, -style, ...)
    return parser.parse_known_args(argv)


def _rewrite_sys_argv(passthrough: Sequence[str]) -> None:
    program = sys.argv[0] if sys.argv else "lumina"
    sys.argv = [program, *passthrough]


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    hints = get_type_hints(Settings)
    for entry in items:
        key, sep, raw_value = entry.partition("=")
        key = key.strip()
        if not sep:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in hints:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(hints[key], raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    # Settings fields are bool, int, dict, or (optional) str
    if annotation is bool:
        return _parse_bool(raw_value)
    if annotation is int:
        try:
            return int(raw_value, 10)
        except ValueError as exc:
            raise ValueError(f"Cannot coerce '{raw_value}' to an integer.") from exc
    if annotation is dict or get_origin(annotation) is dict:
        try:
            payload = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
    return raw_value


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    output = {
        "settings": asdict(settings),
        "meta": {
            "path": str(store.path),
            "database_path": str(settings.resolved_database_path()),
            "cli_overrides": sorted(overrides),
            "environment_variables": sorted(name for name in os.environ if name.startswith("LUMINA_")),
        },
    }
    json.dump(output, destination, indent=2)
    destination.write("\n")


__all__ = [
    "DEFAULT_STYLE",
    "LaunchConfig",
    "QtRuntime",
    "configure_logging",
    "create_qapp",
    "load_settings",
    "main",
    "open_repository",
    "prepare_launch",
    "resolve_style",
    "run",
]
