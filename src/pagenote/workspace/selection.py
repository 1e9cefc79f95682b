"""Active page and expanded tree nodes for one workspace view."""

from __future__ import annotations

from typing import Optional


class SelectionState:
    """Session-local selection; nothing here is persisted."""

    def __init__(self) -> None:
        self._active_id: Optional[str] = None
        self._expanded: set[str] = set()

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def expanded(self) -> frozenset[str]:
        return frozenset(self._expanded)

    def select(self, page_id: Optional[str]) -> None:
        self._active_id = page_id

    def is_active(self, page_id: str) -> bool:
        return self._active_id is not None and self._active_id == page_id

    def expand(self, page_id: str) -> None:
        self._expanded.add(page_id)

    def collapse(self, page_id: str) -> None:
        self._expanded.discard(page_id)

    def toggle(self, page_id: str) -> bool:
        """Flip the expansion of ``page_id`` and return the new state."""

        if page_id in self._expanded:
            self._expanded.remove(page_id)
            return False
        self._expanded.add(page_id)
        return True

    def is_expanded(self, page_id: str) -> bool:
        return page_id in self._expanded

    def forget(self, page_id: str) -> bool:
        """Drop a deleted page; returns True when it was the active page."""

        self._expanded.discard(page_id)
        if self.is_active(page_id):
            self._active_id = None
            return True
        return False

    def reset(self) -> None:
        self._active_id = None
        self._expanded.clear()
