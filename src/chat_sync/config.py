"""Client configuration: defaults, persisted settings file, environment."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

DEFAULT_SETTINGS_FILE = Path.home() / ".chat_sync.json"

ENV_PREFIX = "CHAT_SYNC_"
_ENV_KEYS = {
    "BASE_URL": "base_url",
    "TOKEN": "session_token",
    "USER_ID": "user_id",
    "PROJECT_ID": "project_id",
    "CONVERSATIONS_INTERVAL": "conversations_interval_s",
    "TIMELINE_INTERVAL": "timeline_interval_s",
    "UNREAD_INTERVAL": "unread_interval_s",
    "REQUEST_TIMEOUT": "request_timeout_s",
}
_FLOAT_FIELDS = {"conversations_interval_s", "timeline_interval_s", "unread_interval_s", "request_timeout_s"}
_SETTINGS_KEYS = {
    "base_url",
    "session_token",
    "user_id",
    "project_id",
    "conversations_interval_s",
    "timeline_interval_s",
    "unread_interval_s",
    "request_timeout_s",
    "max_notices",
}


@dataclass(frozen=True)
class ChatSyncConfig:
    base_url: str = ""
    session_token: Optional[str] = None
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    conversations_interval_s: float = 30.0
    timeline_interval_s: float = 10.0
    unread_interval_s: float = 30.0
    request_timeout_s: float = 15.0
    max_notices: int = 50

    def __post_init__(self) -> None:
        for name in _FLOAT_FIELDS:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_notices < 1:
            raise ValueError("max_notices must be at least 1")

    def merged(self, overrides: Mapping[str, Any]) -> "ChatSyncConfig":
        """Return a copy with every non-empty override applied."""

        known = {f.name for f in fields(self)}
        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known or value is None or value == "":
                continue
            if key in _FLOAT_FIELDS:
                value = _as_float(key, value)
            elif key == "max_notices":
                value = int(value)
            else:
                value = str(value)
            changes[key] = value
        return replace(self, **changes)

    def to_settings(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


def _as_float(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be a number, got {value!r}") from exc


def load_settings(path: Path | str = DEFAULT_SETTINGS_FILE) -> Dict[str, Any]:
    """Known settings keys from ``path``; a missing or corrupt file reads as empty."""

    try:
        data = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    except (FileNotFoundError, ValueError):
        return {}
    if not isinstance(data, dict):
        return {}
    return {key: value for key, value in data.items() if key in _SETTINGS_KEYS}


def persist_settings(settings: Mapping[str, Any], path: Path | str = DEFAULT_SETTINGS_FILE) -> None:
    """Replace ``path`` with ``settings`` via fsync + rename; the file stays owner-only."""

    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {key: value for key, value in settings.items() if key in _SETTINGS_KEYS and value is not None}
    staging = target.with_name(target.name + ".tmp")
    fd = os.open(staging, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(staging, target)


def update_settings(updates: Mapping[str, Any], path: Path | str = DEFAULT_SETTINGS_FILE) -> ChatSyncConfig:
    """Apply non-empty ``updates`` to the stored settings, validate, then save.

    Raises ``ValueError`` without touching the file when the result is invalid.
    """

    settings = load_settings(path)
    settings.update({key: value for key, value in updates.items() if value is not None})
    config = ChatSyncConfig().merged(settings)
    persist_settings(settings, path)
    return config


def from_environ(environ: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for suffix, key in _ENV_KEYS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value:
            overrides[key] = value
    return overrides


def load_config(
    settings_path: Path | str = DEFAULT_SETTINGS_FILE,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ChatSyncConfig:
    """Resolve defaults < settings file < environment < explicit overrides."""

    config = ChatSyncConfig().merged(load_settings(settings_path))
    config = config.merged(from_environ(os.environ if environ is None else environ))
    if overrides:
        config = config.merged(overrides)
    return config
