"""Small JSON files under the state directory: preferences and the auth session."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pagenote.backend.models import AuthSession

logger = logging.getLogger(__name__)

PREFERENCES_FILENAME = "preferences.json"
SESSION_FILENAME = "session.json"


def _read_json(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


def _write_json(path: Path, data: dict, *, private: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, sort_keys=True)
    if private:
        os.chmod(tmp_path, 0o600)
    os.replace(tmp_path, path)


class PreferenceStore:
    """String key/value preferences kept in a single JSON file."""

    def __init__(self, state_dir: Path) -> None:
        self.path = state_dir / PREFERENCES_FILENAME

    def _load(self) -> dict[str, str]:
        data = _read_json(self.path) or {}
        return {str(key): str(value) for key, value in data.items()}

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        _write_json(self.path, data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            _write_json(self.path, data)


class SessionStore:
    """The signed-in session, readable only by the current user."""

    def __init__(self, state_dir: Path) -> None:
        self.path = state_dir / SESSION_FILENAME

    def load(self) -> Optional[AuthSession]:
        data = _read_json(self.path)
        if data is None:
            return None
        try:
            return AuthSession.from_payload(data)
        except (KeyError, TypeError) as exc:
            logger.warning("Ignoring malformed session file %s: %s", self.path, exc)
            return None

    def save(self, session: AuthSession) -> None:
        _write_json(self.path, session.to_payload(), private=True)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
