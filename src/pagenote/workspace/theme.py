"""Light/dark preference, persisted locally and applied through a callback."""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Callable, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)

THEME_KEY = "theme"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"

    @property
    def opposite(self) -> "Theme":
        return Theme.DARK if self is Theme.LIGHT else Theme.LIGHT

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Theme"]:
        if value is None:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class PreferenceBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


def detect_ambient_theme(environ: Mapping[str, str] = os.environ) -> Optional[Theme]:
    """Guess the terminal background from ``COLORFGBG`` ("fg;bg" colour indexes)."""

    value = environ.get("COLORFGBG")
    if not value:
        return None
    background = value.split(";")[-1]
    if not background.isdigit():
        return None
    # Indexes 0-6 and 8 are the dark entries of the 16-colour palette.
    return Theme.DARK if int(background) in (0, 1, 2, 3, 4, 5, 6, 8) else Theme.LIGHT


class ThemeState:
    """Current theme; ``toggle`` persists and applies the new value immediately."""

    def __init__(
        self,
        store: PreferenceBackend,
        *,
        ambient: Callable[[], Optional[Theme]] = detect_ambient_theme,
        apply: Optional[Callable[[Theme], None]] = None,
    ) -> None:
        self._store = store
        self._ambient = ambient
        self._apply = apply
        self._theme = Theme.LIGHT

    @property
    def theme(self) -> Theme:
        return self._theme

    def load(self) -> Theme:
        stored_value = self._store.get(THEME_KEY)
        stored = Theme.parse(stored_value)
        if stored_value is not None and stored is None:
            logger.warning("Ignoring unknown theme preference %r", stored_value)
        self._theme = stored or self._ambient() or Theme.LIGHT
        self._notify()
        return self._theme

    def toggle(self) -> Theme:
        self._theme = self._theme.opposite
        self._store.set(THEME_KEY, self._theme.value)
        self._notify()
        return self._theme

    def _notify(self) -> None:
        if self._apply is not None:
            self._apply(self._theme)
