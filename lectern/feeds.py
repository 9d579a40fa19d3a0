"""Feed generation for Lectern.

Generates sitemap.xml (every page) and rss.xml (articles, newest first)
from site content. Feeds are written only when the site data defines a
base ``url``.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    RSSGenerator: Generates RSS feed files.
    FeedRegistry: Registry for managing feed generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from markupsafe import escape

if TYPE_CHECKING:
    from .content import Page

RFC822 = "%a, %d %b %Y %H:%M:%S +0000"


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, pages: Iterable[Page], data: dict[str, Any]) -> str | None:
        """Generate feed content from pages.

        Args:
            pages: Pages to include in the feed.
            data: Site data dictionary containing the base ``url``.

        Returns:
            Feed content, or None if the feed cannot be generated.
        """
        ...

    def write(self, output_dir: Path, pages: Iterable[Page], data: dict[str, Any]) -> bool:
        """Generate and write the feed; return False if it was skipped."""
        content = self.generate(pages, data)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


def _base_url(data: dict[str, Any]) -> str:
    return str(data.get("url", "") or "").rstrip("/")


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages: Iterable[Page], data: dict[str, Any]) -> str | None:
        base_url = _base_url(data)
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in sorted(pages, key=lambda p: p.url):
            full_url = escape(f"{base_url}{page.url}")
            lastmod = page.date.strftime("%Y-%m-%d")
            lines.append(
                f"  <url><loc>{full_url}</loc><lastmod>{lastmod}</lastmod></url>"
            )
        lines.append("</urlset>")
        return "\n".join(lines)


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of articles, newest first.

    Uses 'title' and 'description' from site data for the channel.
    """

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, pages: Iterable[Page], data: dict[str, Any]) -> str | None:
        base_url = _base_url(data)
        if not base_url:
            return None
        title = escape(str(data.get("title", "Lectern Feed")))
        description = escape(str(data.get("description", "")))

        items = []
        articles = [p for p in pages if p.is_article and not p.draft]
        for page in sorted(articles, key=lambda p: p.date, reverse=True):
            link = escape(f"{base_url}{page.url}")
            categories = "".join(
                f"<category>{escape(tag)}</category>" for tag in page.tags
            )
            items.append(
                f"<item><title>{escape(page.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{escape(page.description or page.title)}</description>"
                f"{categories}<pubDate>{page.date.strftime(RFC822)}</pubDate></item>"
            )

        build_date = datetime.now(timezone.utc).strftime(RFC822)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape(base_url)}/</link>",
            f"<description>{description}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss)


class FeedRegistry:
    """Registry for managing feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self,
        output_dir: Path,
        pages: Iterable[Page],
        data: dict[str, Any],
    ) -> list[str]:
        """Generate all registered feeds.

        Returns:
            List of filenames that were generated.
        """
        pages_list = list(pages)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, pages_list, data):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
