"""Export a page tree as Markdown files with YAML frontmatter."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import frontmatter

from .naming import slugify

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from pagenote.backend.models import Page
    from pagenote.workspace.converters import ContentConverter
    from pagenote.workspace.tree import PageTree

logger = logging.getLogger(__name__)

PAGE_FILENAME = "page.md"
HTML_FILENAME = "page.html"
ORPHANS_DIRECTORY = "_orphans"


@dataclass(slots=True)
class ExportResult:
    """Report produced after an export."""

    exported_pages: int
    orphaned_pages: int = 0
    cyclic_pages: int = 0


class LocalRepository:
    """Write pages into nested directories below ``root``, one ``page.md`` each."""

    def __init__(self, root: Path, *, converter: Optional["ContentConverter"] = None) -> None:
        self.root = root
        self.converter = converter
        self._slug_usage: dict[Path, set[str]] = defaultdict(set)

    def write_tree(self, tree: "PageTree") -> ExportResult:
        """Persist every page below ``root``; orphans and cyclic pages go under ``_orphans``."""

        self.root.mkdir(parents=True, exist_ok=True)
        directories: dict[Optional[str], Path] = {None: self.root}
        visited: set[str] = set()

        for page, _depth in tree.iter_subtree():
            self._export_page(page, directories[page.parent_id], directories, visited)

        orphans = tree.orphans()
        detached = tree.detached()
        orphan_root = self.root / ORPHANS_DIRECTORY
        for start in [*orphans, *detached]:
            if start.id in visited:
                continue
            for page, depth in tree.iter_subtree(start.id):
                if page.id in visited:
                    continue
                parent_dir = orphan_root if depth == 0 else directories[page.parent_id]
                self._export_page(page, parent_dir, directories, visited)

        if detached:
            logger.warning("%d page(s) sit in or below a parent cycle; exported under %s", len(detached), ORPHANS_DIRECTORY)
        logger.info("Exported %d pages to %s", len(visited), self.root)
        return ExportResult(
            exported_pages=len(visited),
            orphaned_pages=len(orphans),
            cyclic_pages=len(detached),
        )

    def _export_page(
        self,
        page: "Page",
        parent_dir: Path,
        directories: dict[Optional[str], Path],
        visited: set[str],
    ) -> None:
        directory = self._allocate_child_directory(parent_dir, page.title)
        directories[page.id] = directory
        visited.add(page.id)
        self._dump_page(directory, page)

    def _dump_page(self, directory: Path, page: "Page") -> None:
        post = frontmatter.Post(page.text)
        post.metadata.update(
            {
                "title": page.title,
                "page_id": page.id,
                "parent_id": page.parent_id,
                "created_at": page.created_at.isoformat(),
            }
        )
        with (directory / PAGE_FILENAME).open("w", encoding="utf-8") as handle:
            frontmatter.dump(post, handle)
        if self.converter is not None:
            html = self.converter.render_document(page.title, page.text)
            (directory / HTML_FILENAME).write_text(html, encoding="utf-8")

    def _allocate_child_directory(self, parent_directory: Path, title: str) -> Path:
        slug = self._unique_slug(title, parent_directory)
        directory = parent_directory / slug
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def _unique_slug(self, title: str, parent: Path) -> str:
        base = slugify(title)
        slug = base
        counter = 2
        used = self._slug_usage[parent]
        while slug in used:
            slug = f"{base}-{counter}"
            counter += 1
        used.add(slug)
        return slug
