"""Markdown rendering for page previews and exports."""

from __future__ import annotations

import html

from markdown_it import MarkdownIt


class ContentConverter:
    """Render page Markdown (CommonMark plus tables and strikethrough) to HTML."""

    def __init__(self) -> None:
        self._markdown = MarkdownIt("commonmark", {"html": False, "linkify": False}).enable(
            ["table", "strikethrough"]
        )

    def markdown_to_html(self, markdown: str) -> str:
        return self._markdown.render(markdown)

    def render_document(self, title: str, markdown: str) -> str:
        body = self.markdown_to_html(markdown)
        heading = html.escape(title)
        return f"<article>\n<h1>{heading}</h1>\n{body}</article>\n"
