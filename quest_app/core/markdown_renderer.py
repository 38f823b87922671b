"""Markdown rendering for question text and explanations served to web clients.

Bank questions are authored as markdown (inline code such as ``print()`` is
common), so the API ships both the raw text and an HTML fragment. Raw HTML in
the source is escaped rather than passed through: option text like
``<!-- comment -->`` must display literally.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts markdown into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str | None) -> str:
        """Render a markdown string into an HTML fragment."""

        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return ""
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str | None) -> str:
        """Render a single line (an answer option) without the wrapping paragraph."""

        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return ""
        return self._markdown.renderInline(sanitized)


# MarkdownIt is safe to share for read-only renders across request threads.
renderer = MarkdownRenderer()
