"""Content processing for Lectern.

This module loads content files, extracts their metadata and renders their
bodies into Page objects.

Key classes:
- Page: Dataclass representing a site page with all its metadata.
- Article: A Page that lives in the articles folder and is listed in the index grid.
- IndexEntry: One card of an article index grid.
- Heading: Dataclass representing a heading for TOC generation.
- FileContentLoader: Discovers content files.
- LayoutResolver: Picks the layout template for a page.
- UrlDeriver: Maps source paths to URLs.
- DefaultPageBuilder: Builds Page objects from source files.
- ContentProcessor: Facade that loads a whole site.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from .extractors import CompositeMetadataExtractor, default_metadata_extractor
from .links import resolve_link, rewrite_html_urls, source_url
from .protocols import ContentLoader, PageBuilder
from .renderers import RendererRegistry, default_renderer_registry
from .utils import as_string_list, is_html, is_internal_path, is_markdown, slugify, titleize

THEME_DIR = Path(__file__).parent / "theme"


@dataclass
class Heading:
    """A heading extracted from rendered content for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The plain text content of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class IndexEntry:
    """One article card declared by an index page.

    Attributes:
        path: Source path as written, relative to the index page.
        title: Title shown on the card.
        tags: Tags shown on the card.
        description: Optional teaser text.
        target: Site-relative source path the entry points at, or None when
            the path escapes the site directory.
        url: URL of the article page.
    """

    path: str
    title: str
    tags: list[str]
    description: str = ""
    target: PurePosixPath | None = None
    url: str = ""


@dataclass
class Page:
    """Represents a site page with all its metadata and content.

    Identity is the source path; pages are never mutated once built.

    Attributes:
        title: Human-readable title of the page.
        body: Source text after the front-matter block.
        content: Rendered HTML content.
        description: Short description of the page.
        url: URL path for the page.
        slug: URL-friendly slug.
        date: Publication date.
        tags: Tags from front-matter, duplicates removed.
        hide: Hide-directives such as "toc" or "navigation".
        draft: Whether this is a draft page.
        layout: Layout template to use.
        group: Top-level folder of the page (e.g. "articles").
        path: Path to the source file.
        folder: Folder path relative to site directory.
        filename: Name of the source file.
        source_type: "markdown" or "html".
        frontmatter: Raw front-matter mapping.
        frontmatter_error: Why the front-matter block was rejected, if it was.
        encoding_error: Why the file could not be read as UTF-8, if it could not.
        toc: Headings collected while rendering.
        index_entries: Article cards declared by an index page.
    """

    title: str
    body: str
    content: str
    description: str
    url: str
    slug: str
    date: datetime
    tags: list[str]
    hide: list[str]
    draft: bool
    layout: str
    group: str
    path: Path
    folder: str
    filename: str
    source_type: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    frontmatter_error: str | None = None
    encoding_error: str | None = None
    toc: list[Heading] = field(default_factory=list)
    index_entries: list[IndexEntry] = field(default_factory=list)

    is_article = False

    def hides(self, directive: str) -> bool:
        """Return True when the page asks to hide the named element."""
        return directive.lower() in self.hide

    @property
    def rel_path(self) -> PurePosixPath:
        """Source path relative to the site directory."""
        name = f"{self.folder}/{self.filename}" if self.folder else self.filename
        return PurePosixPath(name)

    @property
    def is_index(self) -> bool:
        """True for pages that declare an article grid."""
        return bool(self.index_entries)


@dataclass
class Article(Page):
    """A tutorial article.

    Articles live in the articles folder, must carry tags and are
    displayed in the article index grid.
    """

    is_article = True


def parse_index_entries(frontmatter: dict[str, Any], folder: str) -> list[IndexEntry]:
    """Read the ``articles:`` list of an index page's front-matter.

    Each item must be a mapping with at least a ``path``; items without
    one are ignored.

    Args:
        frontmatter: Front-matter mapping of the index page.
        folder: Folder of the index page relative to the site directory.

    Returns:
        IndexEntry objects in declared order.
    """
    raw = frontmatter.get("articles")
    if not isinstance(raw, list):
        return []
    entries: list[IndexEntry] = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("path"):
            continue
        path = str(item["path"]).strip()
        target = resolve_link(path, folder)
        entries.append(
            IndexEntry(
                path=path,
                title=str(item.get("title") or "").strip(),
                tags=as_string_list(item.get("tags")),
                description=str(item.get("description") or "").strip(),
                target=target,
                url=source_url(target) if target is not None else "",
            )
        )
    return entries


def read_source(path: Path) -> tuple[str, str | None]:
    """Read a content file as UTF-8.

    Returns:
        Tuple of (text, error). Undecodable bytes are replaced so the rest
        of the page can still be checked; the error names the first one.
    """
    data = path.read_bytes()
    try:
        return data.decode("utf-8"), None
    except UnicodeDecodeError as exc:
        error = f"file is not valid UTF-8 (byte 0x{data[exc.start]:02x} at offset {exc.start})"
        return data.decode("utf-8", errors="replace"), error


class FileContentLoader:
    """Discovers content files in a site directory.

    Attributes:
        site_dir: Directory containing site content.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return all content files in sorted order.

        Args:
            include_drafts: Whether to include draft files (``_name.md``).

        Returns:
            List of paths to content files.
        """
        files: list[Path] = []
        for path in sorted(self.site_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.site_dir)
            if is_internal_path(rel.parent):
                continue
            if rel.name.startswith("_") and not include_drafts:
                continue
            if is_markdown(path) or is_html(path):
                files.append(path)
        return files


class LayoutResolver:
    """Resolves layout templates for pages.

    Attributes:
        site_dir: Directory containing site content and layouts.
        search_dirs: Directories searched for layouts, site first.
    """

    SUFFIXES = (".html.jinja", ".jinja", ".html")

    def __init__(self, site_dir: Path, theme_dir: Path | None = THEME_DIR):
        self.site_dir = site_dir
        self.layout_dir = site_dir / "_layouts"
        self.search_dirs = [self.layout_dir]
        if theme_dir is not None:
            self.search_dirs.append(theme_dir)

    def resolve(self, path: Path, folder: str) -> str:
        """Resolve the layout for a page.

        Searches for layouts in order:
        1. {folder}/{name} - Most specific
        2. {group} - Group-level layout
        3. default - Fallback

        Front-matter ``layout`` is handled by the page builder and wins
        over all of these.

        Args:
            path: Path to the source file.
            folder: Folder containing the page.

        Returns:
            Layout name to use.
        """
        name = path.stem
        candidates: list[str] = []
        if folder:
            candidates.append(f"{folder}/{name}")
            candidates.append(self._group_from_folder(folder))
        else:
            candidates.append(name)
        candidates.append("default")

        for candidate in candidates:
            if self.exists(candidate):
                return candidate
        return "default"

    def exists(self, layout: str) -> bool:
        for directory in self.search_dirs:
            for suffix in self.SUFFIXES:
                if (directory / f"{layout}{suffix}").exists():
                    return True
        return False

    def _group_from_folder(self, folder: str) -> str:
        if not folder:
            return ""
        return Path(folder).parts[0]


class UrlDeriver:
    """Derives URLs for pages from their location in the site."""

    def derive(self, rel: Path) -> str:
        """Derive the URL for a page.

        Args:
            rel: Relative path from site directory.

        Returns:
            URL path for the page.
        """
        return source_url(PurePosixPath(rel.as_posix()))


class DefaultPageBuilder:
    """Builds Page objects from source files.

    Coordinates renderers, extractors and resolvers to build complete
    Page objects. Files in the articles folder (other than its index)
    become Article objects.

    Attributes:
        site_dir: Directory containing site content.
        articles_dir: Folder (relative to site_dir) holding articles.
        renderer_registry: Registry of content renderers.
        metadata_extractor: Composite metadata extractor.
        layout_resolver: Layout resolver instance.
        url_deriver: URL deriver instance.
    """

    def __init__(
        self,
        site_dir: Path,
        articles_dir: str = "articles",
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.site_dir = site_dir
        self.articles_dir = articles_dir.strip("/")
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.layout_resolver = LayoutResolver(site_dir)
        self.url_deriver = UrlDeriver()

    def is_article_path(self, rel: Path) -> bool:
        """Return True if a site-relative path holds an article."""
        folder = rel.parent.as_posix()
        if not self.articles_dir or folder != self.articles_dir:
            return False
        return is_markdown(rel) and slugify(rel.stem) != "index"

    def build(self, path: Path, draft: bool = False) -> Page:
        """Build a Page object from a source file.

        Args:
            path: Path to the source file.
            draft: Whether this is a draft page.

        Returns:
            Page (or Article) object.
        """
        rel = path.relative_to(self.site_dir)
        folder = rel.parent.as_posix() if rel.parent != Path(".") else ""
        filename = path.name
        raw, encoding_error = read_source(path)

        metadata = self.metadata_extractor.extract(raw, path)
        frontmatter = metadata.get("frontmatter", {})
        body = metadata.get("body", raw)

        renderer = self.renderer_registry.get_renderer(path)
        if renderer:
            source_type = renderer.source_type
            content, toc = renderer.render(body, folder)
        else:
            source_type = "unknown"
            content = body
            toc = []
        content = rewrite_html_urls(content, folder)

        layout = frontmatter.get("layout")
        if not isinstance(layout, str) or not layout.strip():
            layout = self.layout_resolver.resolve(path, folder)

        page_cls = Article if self.is_article_path(rel) else Page
        return page_cls(
            title=metadata.get("title", titleize(filename)),
            body=body,
            content=content,
            description=metadata.get("description", ""),
            url=self.url_deriver.derive(rel),
            slug=slugify(path.stem),
            date=metadata.get("date", datetime.now()),
            tags=metadata.get("tags", []),
            hide=metadata.get("hide", []),
            draft=draft,
            layout=layout.strip(),
            group=self.layout_resolver._group_from_folder(folder),
            path=path,
            folder=folder,
            filename=filename,
            source_type=source_type,
            frontmatter=frontmatter,
            frontmatter_error=metadata.get("frontmatter_error"),
            encoding_error=encoding_error,
            toc=toc,
            index_entries=parse_index_entries(frontmatter, folder),
        )


class ContentProcessor:
    """Facade for loading content files into Page objects.

    Attributes:
        site_dir: Directory containing site content.
    """

    def __init__(
        self,
        site_dir: Path,
        articles_dir: str = "articles",
        content_loader: ContentLoader | None = None,
        page_builder: PageBuilder | None = None,
    ):
        self.site_dir = site_dir
        self._content_loader = content_loader or FileContentLoader(site_dir)
        self._page_builder = page_builder or DefaultPageBuilder(
            site_dir, articles_dir=articles_dir
        )

    def load(self, include_drafts: bool = False) -> list[Page]:
        """Load all content files and create Page objects.

        Args:
            include_drafts: Whether to include draft pages.

        Returns:
            List of Page objects in source path order.
        """
        pages: list[Page] = []
        for path in self._content_loader.iter_files(include_drafts):
            draft = path.name.startswith("_")
            pages.append(self._page_builder.build(path, draft=draft))
        return pages
