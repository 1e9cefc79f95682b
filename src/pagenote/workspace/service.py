"""Workspace coordinating the page collection, selection and the editor."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from pagenote.backend.client import PagesClient
from pagenote.backend.models import AuthSession, Page, User
from pagenote.errors import InvalidParentError, PageCycleError, PersistenceError

from .autosave import AutosaveController, EditorSession, Scheduler
from .selection import SelectionState
from .tree import PageTree

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from pagenote.config import PagenoteConfig

logger = logging.getLogger(__name__)


class PageStore(Protocol):
    def list_pages(self, owner_id: str) -> list[Page]: ...

    def create_page(
        self,
        *,
        owner_id: str,
        title: str,
        content: str = "",
        parent_id: Optional[str] = None,
    ) -> Page: ...

    def update_page(
        self,
        page_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Page: ...

    def move_page(self, page_id: str, parent_id: Optional[str]) -> Page: ...

    def delete_page(self, page_id: str) -> None: ...


DEFAULT_TITLE = "Untitled"


class Workspace:
    """Everything one signed-in user works with.

    Persistence failures never escape: they are logged, handed to
    ``on_error`` and the operation reports that nothing happened.
    """

    def __init__(
        self,
        store: PageStore,
        user: User,
        *,
        autosave_delay: float = 2.0,
        default_title: str = DEFAULT_TITLE,
        scheduler: Optional[Scheduler] = None,
        on_error: Optional[Callable[[PersistenceError], None]] = None,
    ) -> None:
        self.store = store
        self.user = user
        self.default_title = default_title
        self.selection = SelectionState()
        self._on_error = on_error
        self._lock = threading.RLock()
        self._pages: list[Page] = []
        self._tree = PageTree(())
        self.editor = AutosaveController(
            store,
            delay=autosave_delay,
            scheduler=scheduler,
            on_saved=self.apply_saved,
            on_error=self._report,
        )

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------
    @property
    def pages(self) -> list[Page]:
        with self._lock:
            return list(self._pages)

    @property
    def tree(self) -> PageTree:
        return self._tree

    @property
    def active_page(self) -> Optional[Page]:
        active_id = self.selection.active_id
        return self._tree.get(active_id) if active_id else None

    def _set_pages(self, pages: list[Page]) -> None:
        with self._lock:
            self._pages = pages
            self._tree = PageTree(pages)

    def _report(self, exc: PersistenceError) -> None:
        if self._on_error is not None:
            self._on_error(exc)

    def load(self) -> Optional[list[Page]]:
        try:
            pages = self.store.list_pages(self.user.id)
        except PersistenceError as exc:
            logger.warning("Loading pages failed: %s", exc)
            self._report(exc)
            return None
        self._set_pages(pages)
        return self.pages

    def apply_saved(self, page: Page) -> None:
        """Replace the in-memory record of ``page`` by identifier."""

        with self._lock:
            self._set_pages([page if existing.id == page.id else existing for existing in self._pages])

    # ------------------------------------------------------------------
    # Page operations
    # ------------------------------------------------------------------
    def create_page(self, *, parent_id: Optional[str] = None, title: str = "") -> Optional[Page]:
        """Create a page and make it the active one.

        A blank title becomes the default title. Creating under a parent
        expands that parent.
        """

        if parent_id is not None and parent_id not in self._tree:
            raise InvalidParentError(parent_id)
        try:
            page = self.store.create_page(
                owner_id=self.user.id,
                title=title.strip() or self.default_title,
                content="",
                parent_id=parent_id,
            )
        except PersistenceError as exc:
            logger.warning("Creating page failed: %s", exc)
            self._report(exc)
            return None

        with self._lock:
            self._set_pages([page, *self._pages])
        if parent_id is not None:
            self.selection.expand(parent_id)
        self.select_page(page.id)
        return page

    def select_page(self, page_id: Optional[str]) -> Optional[EditorSession]:
        """Make ``page_id`` active and open it in the editor (``None`` clears it).

        Selecting the page that is already open keeps its working copy.
        """

        page = self._tree.get(page_id) if page_id is not None else None
        if page_id is not None and page is None:
            raise KeyError(page_id)
        self.selection.select(page_id)
        if page is None:
            self.editor.close()
            return None
        session = self.editor.session
        if session is not None and session.page_id == page_id:
            return session
        return self.editor.open(page)

    def toggle_expanded(self, page_id: str) -> bool:
        return self.selection.toggle(page_id)

    def edit(self, field_name: str, value: str) -> None:
        self.editor.on_edit(field_name, value)

    def save(self) -> Optional[Page]:
        return self.editor.save()

    def delete_page(self, page_id: str) -> bool:
        """Delete a page; children are left in place with a stale parent reference."""

        try:
            self.store.delete_page(page_id)
        except PersistenceError as exc:
            logger.warning("Deleting page %s failed: %s", page_id, exc)
            self._report(exc)
            return False

        with self._lock:
            self._set_pages([page for page in self._pages if page.id != page_id])
        if self.selection.forget(page_id):
            self.editor.close()
        return True

    def move_page(self, page_id: str, parent_id: Optional[str]) -> Optional[Page]:
        """Reparent a page, refusing moves that would put it under itself."""

        if page_id not in self._tree:
            raise KeyError(page_id)
        if parent_id is not None and parent_id not in self._tree:
            raise InvalidParentError(parent_id)
        if self._tree.would_create_cycle(page_id, parent_id):
            raise PageCycleError(page_id, parent_id)
        try:
            page = self.store.move_page(page_id, parent_id)
        except PersistenceError as exc:
            logger.warning("Moving page %s failed: %s", page_id, exc)
            self._report(exc)
            return None
        self.apply_saved(page)
        if parent_id is not None:
            self.selection.expand(parent_id)
        return page

    def close(self) -> None:
        """Tear down session-local state (used on sign-out and exit)."""

        self.editor.close()
        self.selection.reset()


def create_workspace(
    config: "PagenoteConfig",
    session: AuthSession,
    *,
    on_error: Optional[Callable[[PersistenceError], None]] = None,
) -> tuple[Workspace, Callable[[], None]]:
    client = PagesClient(
        base_url=str(config.credentials.url),
        anon_key=config.credentials.anon_key,
        access_token=session.access_token,
    )
    workspace = Workspace(
        client,
        session.user,
        autosave_delay=config.editor.autosave_delay,
        default_title=config.editor.default_title,
        on_error=on_error,
    )

    def _cleanup() -> None:
        workspace.close()
        client.close()

    return workspace, _cleanup
