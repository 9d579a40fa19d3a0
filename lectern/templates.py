"""Template rendering engine for Lectern.

This module uses Jinja2 to wrap rendered page bodies in layouts. Layouts
are looked up in the site's ``_layouts`` and ``_partials`` folders first
and then in the bundled theme, so a site only overrides what it needs.

Key class:
- TemplateEngine: Handles template rendering and provides context to templates.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup, escape
from pygments.formatters import HtmlFormatter

from .asset_resolver import AssetNotFoundError, DefaultAssetPathResolver
from .collections import PageCollection, TagCollection
from .content import THEME_DIR, Heading, Page
from .links import join_root_url

__all__ = ["AssetNotFoundError", "TemplateEngine", "render_toc"]


def render_toc(page: Page) -> Markup:
    """Render a table of contents as nested HTML from page headings.

    Pages that hide the ``toc`` get an empty result.

    Args:
        page: Page object containing the toc (list of Heading objects).

    Returns:
        Markup-safe nested ``<ul>`` list, or empty Markup.
    """
    if page.hides("toc") or not page.toc:
        return Markup("")
    return _render_toc_from_headings(page.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>')

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        site_dir: Directory containing content and site templates.
        data: Global site data.
        env: Jinja2 environment.
        pages: Collection of all pages.
        tags: Collection of pages per tag.
        asset_resolver: Resolver for asset paths.
    """

    def __init__(
        self,
        site_dir: Path,
        data: dict[str, Any],
        root_url: str | None = None,
        asset_resolver: DefaultAssetPathResolver | None = None,
        theme_dir: Path | None = THEME_DIR,
    ):
        self.site_dir = site_dir
        self.data = data
        self.root_url = (
            root_url or (data.get("root_url") if isinstance(data, dict) else "")
        ) or ""
        search_path = [site_dir / "_layouts", site_dir / "_partials", site_dir]
        if theme_dir is not None:
            search_path.append(theme_dir)
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.pages: PageCollection = PageCollection([])
        self.tags: TagCollection = TagCollection({})

        self.asset_resolver = asset_resolver or DefaultAssetPathResolver(
            site_dir.parent / "assets"
        )
        self.asset_resolver.set_url_generator(self._url_for)

        self._install_globals()

    def _install_globals(self) -> None:
        """Install global variables and functions in the Jinja environment."""
        self.env.globals["data"] = self.data
        self.env.globals["pages"] = self.pages
        self.env.globals["tags"] = self.tags
        self.env.globals["url_for"] = self._url_for
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["css_path"] = self.asset_resolver.css_path
        self.env.globals["js_path"] = self.asset_resolver.js_path
        self.env.globals["img_path"] = self.asset_resolver.img_path
        self.env.globals["has_asset"] = self.asset_resolver.exists
        self.env.globals["render_toc"] = render_toc
        self.env.globals["navigation"] = self._navigation

    @staticmethod
    def _pygments_css() -> Markup:
        """Return Pygments CSS styles for the .highlight class."""
        return Markup(HtmlFormatter().get_style_defs(".highlight"))

    def update_collections(
        self, pages: Iterable[Page], tags: dict[str, list[Page]]
    ) -> None:
        """Update the page and tag collections.

        Args:
            pages: Iterable of all pages.
            tags: Dictionary mapping tag names to page lists.
        """
        self.pages = PageCollection(pages)
        self.tags = TagCollection(tags)
        self.env.globals["pages"] = self.pages
        self.env.globals["tags"] = self.tags

    def _navigation(self) -> list[dict[str, str]]:
        """Return navigation links.

        Uses ``nav`` from site data when defined (a list of ``label``/``url``
        mappings), otherwise the homepage followed by every top-level page
        and folder index, ordered by URL.
        """
        nav = self.data.get("nav") if isinstance(self.data, dict) else None
        if isinstance(nav, list) and nav:
            return [
                {"label": str(item.get("label", "")), "url": str(item.get("url", "/"))}
                for item in nav
                if isinstance(item, dict)
            ]
        top_level = [
            p
            for p in self.pages.published()
            if p.url == "/" or p.url.count("/") == 2
        ]
        top_level.sort(key=lambda p: (p.url != "/", p.url))
        return [{"label": p.title, "url": p.url} for p in top_level]

    def _url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url if configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        normalized = path if path.startswith("/") else f"/{path}"
        if self.root_url:
            return join_root_url(self.root_url, normalized)
        return normalized

    def render_page(self, page: Page) -> str:
        """Render a page with its layout.

        Args:
            page: Page object to render.

        Returns:
            Rendered HTML string.
        """
        context = {
            "data": self.data,
            "current_page": page,
            "frontmatter": page.frontmatter,
            "pages": self.pages,
            "tags": self.tags,
        }
        layout_template = self._resolve_layout_template(page.layout)
        return layout_template.render(page_content=Markup(page.content), **context)

    def _resolve_layout_template(self, layout: str):
        candidates = [f"{layout}.html.jinja", f"{layout}.jinja", f"{layout}.html"]
        if layout != "default":
            candidates.extend(["default.html.jinja", "default.jinja", "default.html"])
        for name in candidates:
            try:
                return self.env.get_template(name)
            except TemplateNotFound:
                continue
        return self.env.from_string("{{ page_content }}")

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string with the engine's globals."""
        return self.env.from_string(template).render(**context)
