"""Content renderers for Lectern.

This module contains implementations of the ContentRenderer protocol
for the content types a site may hold. Each renderer handles a single
type of content.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- RendererRegistry: Picks the renderer for a source file.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from markupsafe import escape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .links import rewrite_image_src, rewrite_link
from .utils import is_html, is_markdown


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text (may contain inline HTML).

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _SiteRenderer(mistune.HTMLRenderer):
    """Markdown renderer that knows about the site layout.

    Adds heading ids and collects headings for the table of contents,
    rewrites source links to page URLs and image paths to assets, and
    highlights fenced code with Pygments.

    Attributes:
        folder: Folder containing the page being rendered.
        headings: List of Heading objects extracted during rendering.
    """

    def __init__(self, folder: str):
        super().__init__(escape=False)
        self.folder = folder
        self.headings: list = []
        self._used_ids: set[str] = set()

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with a unique id and track it for the TOC."""
        # Import here to avoid circular imports
        from .content import Heading

        base_id = _generate_heading_id(text) or "section"

        heading_id = base_id
        suffix = 0
        while heading_id in self._used_ids:
            suffix += 1
            heading_id = f"{base_id}-{suffix}"
        self._used_ids.add(heading_id)

        plain = re.sub(r"<[^>]+>", "", text)
        self.headings.append(Heading(id=heading_id, text=plain, level=level))

        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def link(self, text: str, url: str, title: str | None = None) -> str:
        return super().link(text, rewrite_link(url, self.folder), title)

    def image(self, text: str, url: str, title: str | None = None) -> str:
        return super().image(text, rewrite_image_src(url, self.folder), title)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Unknown languages fall back to an escaped ``<pre><code>`` block.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = escape(code)
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML."""

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str, folder: str) -> tuple[str, list]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content.
            folder: Folder containing the page.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _SiteRenderer(folder)
        markdown = mistune.create_markdown(
            renderer=renderer, plugins=["strikethrough", "footnotes", "table", "url"]
        )
        html = markdown(content)
        return html, renderer.headings


class HTMLRenderer:
    """Passes through plain HTML content unchanged."""

    @property
    def source_type(self) -> str:
        return "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str, folder: str) -> tuple[str, list]:
        return content, []


class RendererRegistry:
    """Registry for content renderers.

    New renderers can be registered without touching the page builder.
    """

    def __init__(self):
        self._renderers: list = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer) -> None:
        """Register a new renderer."""
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        """Return the first renderer that can handle the file, or None."""
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


# Default renderer registry instance
default_renderer_registry = RendererRegistry()
