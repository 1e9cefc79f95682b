"""Fakes shared by the test suite."""

from __future__ import annotations

import itertools
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import frontmatter

from pagenote.backend.models import Page
from pagenote.errors import PageNotFoundError, PersistenceError

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_page(
    page_id: str,
    *,
    title: Optional[str] = None,
    content: Optional[str] = "",
    parent_id: Optional[str] = None,
    minutes: int = 0,
    user_id: str = "user-1",
) -> Page:
    return Page(
        id=page_id,
        user_id=user_id,
        title=title if title is not None else page_id.upper(),
        content=content,
        parent_id=parent_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock: callbacks run synchronously from ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled and timer.due > self.now]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted(
                (timer for timer in self.timers if not timer.cancelled and timer.due <= target),
                key=lambda timer: timer.due,
            )
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


class FakePageStore:
    """In-memory page store that records every call."""

    def __init__(self, pages: Optional[list[Page]] = None) -> None:
        self.pages: dict[str, Page] = {page.id: page for page in pages or []}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self._ids = itertools.count(1)
        self._minutes = itertools.count(1000)

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise PersistenceError(operation, f"{operation} failed: boom")

    def list_pages(self, owner_id: str) -> list[Page]:
        self.calls.append(("list_pages", owner_id))
        self._check("list_pages")
        pages = [page for page in self.pages.values() if page.user_id == owner_id]
        return sorted(pages, key=lambda page: page.created_at, reverse=True)

    def create_page(self, *, owner_id, title, content="", parent_id=None) -> Page:
        self.calls.append(("create_page", title, parent_id))
        self._check("create_page")
        page = make_page(
            f"page-{next(self._ids)}",
            title=title,
            content=content,
            parent_id=parent_id,
            minutes=next(self._minutes),
            user_id=owner_id,
        )
        self.pages[page.id] = page
        return page

    def update_page(self, page_id, *, title=None, content=None) -> Page:
        self.calls.append(("update_page", page_id, title, content))
        self._check("update_page")
        if page_id not in self.pages:
            raise PageNotFoundError(page_id, operation="update_page")
        changes = {}
        if title is not None:
            changes["title"] = title
        if content is not None:
            changes["content"] = content
        page = self.pages[page_id].with_updates(**changes)
        self.pages[page_id] = page
        return page

    def move_page(self, page_id, parent_id) -> Page:
        self.calls.append(("move_page", page_id, parent_id))
        self._check("move_page")
        page = self.pages[page_id].with_updates(parent_id=parent_id)
        self.pages[page_id] = page
        return page

    def delete_page(self, page_id) -> None:
        self.calls.append(("delete_page", page_id))
        self._check("delete_page")
        self.pages.pop(page_id, None)

    def calls_named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


def read_page(path: Path) -> tuple[dict, str]:
    """Load an exported ``page.md`` back into ``(metadata, body)``."""

    post = frontmatter.load(path)
    return dict(post.metadata), post.content


class BlockingStore(FakePageStore):
    """Store whose first update blocks until released."""

    def __init__(self, pages):
        super().__init__(pages)
        self.entered = threading.Event()
        self.release = threading.Event()
        self._blocked = False

    def update_page(self, page_id, *, title=None, content=None):
        page = super().update_page(page_id, title=title, content=content)
        if not self._blocked:
            self._blocked = True
            self.entered.set()
            assert self.release.wait(5)
        return page
