"""Debounced write-back of the open page's title and content.

The controller keeps one :class:`EditorSession` for the page currently open.
Every edit re-arms a timer; when the timer fires the working values are
written back only if the title is not blank and something actually changed.
Write-backs are serialised per page: a manual save that arrives while an
autosave is in flight waits for it and then re-checks what is left to write.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from pagenote.backend.models import Page
from pagenote.errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DELAY = 2.0
EDITABLE_FIELDS = ("title", "content")


class SaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class PageWriter(Protocol):
    def update_page(
        self,
        page_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Page: ...


@dataclass(slots=True)
class EditorSession:
    """Working copy of the open page."""

    page_id: str
    title: str
    content: str
    persisted_title: str
    persisted_content: str
    state: SaveState = SaveState.IDLE
    last_saved_at: Optional[datetime] = None
    timer: Optional[TimerHandle] = field(default=None, repr=False)
    generation: int = 0

    @classmethod
    def for_page(cls, page: Page) -> "EditorSession":
        return cls(
            page_id=page.id,
            title=page.title,
            content=page.text,
            persisted_title=page.title,
            persisted_content=page.text,
        )

    @property
    def saving(self) -> bool:
        return self.state is SaveState.SAVING

    @property
    def dirty(self) -> bool:
        return self.title.strip() != self.persisted_title or self.content != self.persisted_content


@dataclass(frozen=True, slots=True)
class AutosaveStatus:
    """What the UI shows next to the editor."""

    saving: bool
    last_saved_at: Optional[datetime]
    state: SaveState
    dirty: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AutosaveController:
    """Reconcile edits of the open page with the persisted record."""

    def __init__(
        self,
        writer: PageWriter,
        *,
        delay: float = DEFAULT_AUTOSAVE_DELAY,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], datetime] = _utcnow,
        on_saved: Optional[Callable[[Page], None]] = None,
        on_error: Optional[Callable[[PersistenceError], None]] = None,
    ) -> None:
        self._writer = writer
        self._delay = delay
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._on_saved = on_saved
        self._on_error = on_error
        self._lock = threading.RLock()
        self._page_locks: dict[str, threading.Lock] = {}
        self._page_lock_users: dict[str, int] = {}
        self._session: Optional[EditorSession] = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def session(self) -> Optional[EditorSession]:
        return self._session

    @property
    def status(self) -> AutosaveStatus:
        with self._lock:
            session = self._session
            if session is None:
                return AutosaveStatus(saving=False, last_saved_at=None, state=SaveState.IDLE, dirty=False)
            return AutosaveStatus(
                saving=session.saving,
                last_saved_at=session.last_saved_at,
                state=session.state,
                dirty=session.dirty,
            )

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def open(self, page: Page) -> EditorSession:
        """Start editing ``page``; any pending autosave of the previous page is dropped."""

        with self._lock:
            self._abandon_pending()
            self._session = EditorSession.for_page(page)
            logger.debug("Opened page %s for editing", page.id)
            return self._session

    def close(self) -> None:
        with self._lock:
            self._abandon_pending()
            self._session = None

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def on_edit(self, field_name: str, value: str) -> None:
        """Update the working title or content and re-arm the debounce timer."""

        if field_name not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown editor field {field_name!r}")
        with self._lock:
            session = self._require_session()
            setattr(session, field_name, value)
            self._cancel_timer(session)
            session.generation += 1
            generation = session.generation
            session.timer = self._scheduler.call_later(
                self._delay, lambda: self._on_timer(session, generation)
            )
            if session.state is SaveState.IDLE:
                session.state = SaveState.PENDING

    def save(self) -> Optional[Page]:
        """Write the working values now, unless the title is blank."""

        with self._lock:
            session = self._require_session()
            self._cancel_timer(session)
            session.generation += 1
        return self._write(session, require_change=False)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_session(self) -> EditorSession:
        if self._session is None:
            raise RuntimeError("No page is open for editing")
        return self._session

    def _cancel_timer(self, session: EditorSession) -> None:
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None

    def _abandon_pending(self) -> None:
        session = self._session
        if session is None:
            return
        if session.timer is not None:
            logger.debug("Abandoning pending autosave of page %s", session.page_id)
        self._cancel_timer(session)
        session.generation += 1
        if session.state is SaveState.PENDING:
            session.state = SaveState.IDLE

    def _claim_page_lock(self, page_id: str) -> threading.Lock:
        with self._lock:
            lock = self._page_locks.setdefault(page_id, threading.Lock())
            self._page_lock_users[page_id] = self._page_lock_users.get(page_id, 0) + 1
            return lock

    def _release_page_lock(self, page_id: str, lock: threading.Lock) -> None:
        lock.release()
        with self._lock:
            remaining = self._page_lock_users[page_id] - 1
            if remaining:
                self._page_lock_users[page_id] = remaining
            else:
                del self._page_lock_users[page_id]
                del self._page_locks[page_id]

    def _settle(self, session: EditorSession) -> None:
        session.state = SaveState.PENDING if session.timer is not None else SaveState.IDLE

    def _on_timer(self, session: EditorSession, generation: int) -> None:
        with self._lock:
            if session is not self._session or generation != session.generation:
                return
            session.timer = None
        self._write(session, require_change=True)

    def _write(self, session: EditorSession, *, require_change: bool) -> Optional[Page]:
        page_lock = self._claim_page_lock(session.page_id)
        joined = not page_lock.acquire(blocking=False)
        if joined:
            logger.debug("Write-back of page %s already in flight; waiting for it", session.page_id)
            page_lock.acquire()
        try:
            with self._lock:
                title = session.title.strip()
                content = session.content
                if not title:
                    logger.debug("Not saving page %s: title is blank", session.page_id)
                    self._settle(session)
                    return None
                unchanged = title == session.persisted_title and content == session.persisted_content
                if unchanged and (require_change or joined):
                    logger.debug("Not saving page %s: nothing changed", session.page_id)
                    self._settle(session)
                    return None
                session.state = SaveState.SAVING

            page: Optional[Page] = None
            failure: Optional[PersistenceError] = None
            try:
                page = self._writer.update_page(session.page_id, title=title, content=content)
            except PersistenceError as exc:
                logger.warning("Saving page %s failed: %s", session.page_id, exc)
                failure = exc
            finally:
                with self._lock:
                    if page is not None:
                        session.persisted_title = title
                        session.persisted_content = content
                        session.last_saved_at = self._clock()
                    self._settle(session)

            if failure is not None:
                if self._on_error is not None:
                    self._on_error(failure)
                return None
            logger.info("Saved page %s", session.page_id)
            if self._on_saved is not None:
                self._on_saved(page)
            return page
        finally:
            self._release_page_lock(session.page_id, page_lock)
