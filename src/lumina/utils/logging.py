"""Logging setup for the Lumina desktop shell.

Records go to a rotating file under ``~/.lumina/logs`` (``LUMINA_LOG_DIR``
moves the directory, ``LUMINA_LOG_FILE`` renames the file) and, optionally,
to stderr.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["DEFAULT_LOG_FILE_NAME", "setup_logging", "get_logger", "get_log_path"]

DEFAULT_LOG_FILE_NAME = "lumina.log"
_DEFAULT_LOG_DIR = Path.home() / ".lumina" / "logs"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
# Qt messages are forwarded on lumina.qt by app._install_qt_message_handler
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "lumina.qt")
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    file_name: str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging and return the path of the log file.

    ``file_name`` must be a bare file name; it falls back to ``LUMINA_LOG_FILE``
    and then to ``lumina.log``. Repeated calls are no-ops unless ``force`` is
    set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    log_path = _resolve_log_dir(log_dir) / _resolve_file_name(file_name)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers = _build_handlers(log_path, level, console=console, max_bytes=max_bytes, backup_count=backup_count)
    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _tune_external_loggers(level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Return the configured log file, or ``None`` before :func:`setup_logging` ran."""

    return _LOG_PATH


def _build_handlers(
    log_path: Path,
    level: int,
    *,
    console: bool,
    max_bytes: int,
    backup_count: int,
) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("LUMINA_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _resolve_file_name(file_name: str | None) -> str:
    name = (file_name or os.environ.get("LUMINA_LOG_FILE") or DEFAULT_LOG_FILE_NAME).strip()
    if not name or Path(name).name != name:
        raise ValueError(f"Log file name must be a bare file name, got {name!r}")
    return name


def _tune_external_loggers(root_level: int) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
