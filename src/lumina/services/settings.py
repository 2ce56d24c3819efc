"""Settings dataclass and JSON persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "DEFAULT_BLUR_GRACE_MS",
    "DEFAULT_DEBOUNCE_MS",
    "Settings",
    "SettingsStore",
    "default_database_path",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".lumina"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_DEFAULT_DATABASE_NAME = "lumina.db"
_SETTINGS_VERSION = 1
DEFAULT_DEBOUNCE_MS = 300
DEFAULT_BLUR_GRACE_MS = 150
_ENV_OVERRIDES: Mapping[str, str] = {
    "LUMINA_DATABASE_PATH": "database_path",
    "LUMINA_THEME": "theme",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "LUMINA_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "LUMINA_SEARCH_DEBOUNCE_MS": "search_debounce_ms",
    "LUMINA_BLUR_GRACE_MS": "blur_grace_ms",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


def default_database_path() -> Path:
    """Location of the tool database when neither settings nor env name one."""

    return _SETTINGS_DIR / _DEFAULT_DATABASE_NAME


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    theme: str = "default"
    database_path: str | None = None
    search_debounce_ms: int = DEFAULT_DEBOUNCE_MS
    blur_grace_ms: int = DEFAULT_BLUR_GRACE_MS
    search_placeholder: str = "Search for tools..."
    debug_logging: bool = False
    font_family: str = "JetBrains Mono"
    font_size: int = 13
    window_geometry: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def resolved_database_path(self) -> Path:
        if self.database_path:
            return Path(self.database_path).expanduser()
        return default_database_path()


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, then apply CLI overrides and ``LUMINA_*`` env overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            if not isinstance(data.get("metadata", {}), Mapping):
                LOGGER.warning("Ignoring non-mapping settings metadata in %s", self._path)
                data.pop("metadata")
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()

        if payload and payload.get("version") != _SETTINGS_VERSION:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - read-only home directories
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        settings = self._apply_env_overrides(settings)
        return _clamp_timings(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings with an atomic replace of the target file."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        metadata_override = filtered.get("metadata")
        if isinstance(metadata_override, Mapping):
            merged = dict(settings.metadata or {})
            merged.update(metadata_override)
            filtered["metadata"] = merged
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _clamp_timings(settings: Settings) -> Settings:
    debounce = max(0, int(settings.search_debounce_ms))
    grace = max(0, int(settings.blur_grace_ms))
    if debounce == settings.search_debounce_ms and grace == settings.blur_grace_ms:
        return settings
    return replace(settings, search_debounce_ms=debounce, blur_grace_ms=grace)
