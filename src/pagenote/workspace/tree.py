"""Forest view over a flat collection of pages."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, Iterator, Optional

from pagenote.backend.models import Page


@dataclass(slots=True)
class TreeNode:
    """Page with its direct children and the session-local expansion flag."""

    page: Page
    expanded: bool = False
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def has_children(self) -> bool:
        return bool(self.children)


def _sibling_order(page: Page) -> tuple:
    return (page.created_at, page.id)


class PageTree:
    """Adjacency index over pages, rebuilt whenever the collection changes.

    The tree owns no state besides the collection it was built from; callers
    create a new instance after every create, update or delete.
    """

    def __init__(self, pages: Iterable[Page]) -> None:
        self._pages: dict[str, Page] = {}
        for page in pages:
            self._pages[page.id] = page

        children: dict[Optional[str], list[Page]] = defaultdict(list)
        for page in self._pages.values():
            children[page.parent_id].append(page)
        for siblings in children.values():
            siblings.sort(key=_sibling_order)
        self._children = dict(children)

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._pages

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages.values())

    def get(self, page_id: str) -> Optional[Page]:
        return self._pages.get(page_id)

    def children_of(self, parent_id: Optional[str]) -> list[Page]:
        """Pages whose parent is ``parent_id`` (``None`` for root level), oldest first."""

        return list(self._children.get(parent_id, ()))

    def roots(self) -> list[Page]:
        return self.children_of(None)

    def orphans(self) -> list[Page]:
        """Pages whose parent reference points at a page that is not in the collection."""

        stale = [
            page
            for page in self._pages.values()
            if page.parent_id is not None and page.parent_id not in self._pages
        ]
        return sorted(stale, key=_sibling_order)

    def detached(self) -> list[Page]:
        """Pages in or below a parent cycle, unreachable from roots and orphans."""

        reachable = {page.id for page, _depth in self.iter_subtree()}
        for orphan in self.orphans():
            reachable.update(page.id for page, _depth in self.iter_subtree(orphan.id))
        return sorted((page for page in self._pages.values() if page.id not in reachable), key=_sibling_order)

    def iter_subtree(self, page_id: Optional[str] = None) -> Iterator[tuple[Page, int]]:
        """Yield ``(page, depth)`` in depth-first order.

        With ``page_id`` the walk starts at that page (depth 0); otherwise it
        covers every root-level page. Each page is visited at most once, so a
        corrupted parent graph cannot loop forever.
        """

        if page_id is None:
            stack = [(page, 0) for page in reversed(self.roots())]
        else:
            start = self._pages.get(page_id)
            stack = [(start, 0)] if start is not None else []

        seen: set[str] = set()
        while stack:
            page, depth = stack.pop()
            if page.id in seen:
                continue
            seen.add(page.id)
            yield page, depth
            for child in reversed(self._children.get(page.id, ())):
                stack.append((child, depth + 1))

    def descendants(self, page_id: str) -> list[Page]:
        return [page for page, depth in self.iter_subtree(page_id) if depth > 0]

    def ancestors(self, page_id: str) -> list[Page]:
        """Chain of parents from the direct parent up to the root."""

        chain: list[Page] = []
        seen = {page_id}
        current = self._pages.get(page_id)
        while current is not None and current.parent_id is not None:
            if current.parent_id in seen:
                break
            parent = self._pages.get(current.parent_id)
            if parent is None:
                break
            chain.append(parent)
            seen.add(parent.id)
            current = parent
        return chain

    def would_create_cycle(self, page_id: str, new_parent_id: Optional[str]) -> bool:
        """True when ``new_parent_id`` is the page itself or one of its descendants."""

        if new_parent_id is None:
            return False
        if new_parent_id == page_id:
            return True
        return any(ancestor.id == page_id for ancestor in self.ancestors(new_parent_id))

    def build_nodes(
        self,
        expanded: AbstractSet[str] = frozenset(),
        parent_id: Optional[str] = None,
    ) -> list[TreeNode]:
        """Nested nodes below ``parent_id`` for rendering."""

        def _build(page: Page, seen: frozenset[str]) -> TreeNode:
            node = TreeNode(page=page, expanded=page.id in expanded)
            for child in self._children.get(page.id, ()):
                if child.id not in seen:
                    node.children.append(_build(child, seen | {child.id}))
            return node

        return [_build(page, frozenset({page.id})) for page in self.children_of(parent_id)]
