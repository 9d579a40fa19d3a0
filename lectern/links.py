"""Link handling for Lectern.

Pages link to each other by source path (``articles/getting-started.md``)
the way authors see them in their editor. This module maps those source
links to the URLs the built site serves, and extracts links from Markdown
through mistune's syntax tree so links shown inside code samples are
never mistaken for real ones. The renderer and the link check both go
through ``page_url`` and ``rewrite_image_src``, so a link the check
accepts is a link that exists in the output.

Key functions:
- source_url: URL of the page built from a source path.
- resolve_link: Site-relative source path a link points at.
- page_url: URL of the page a relative link names.
- rewrite_link: Rendered href for a link written in a page.
- rewrite_image_src: Rendered src for a relative image.
- rewrite_html_urls: Apply both rewrites to raw HTML.
- iter_links: Links and images found in a Markdown document.
- iter_html_links: Links and images found in an HTML document.
- absolutize_html_urls: Prefix site-relative URLs in rendered HTML.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import unquote

import mistune

from .utils import slugify

LINK_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "javascript:",
    "data:",
)

PAGE_SUFFIXES = (".md", ".html")

_HTML_TAG_RE = re.compile(r"<(?P<tag>[a-zA-Z][\w-]*)\b[^>]*>")
_TAG_URL_RE = re.compile(
    r'\b(?P<name>href|src)=(?P<quote>["\'])(?P<url>[^"\']*)(?P=quote)',
    re.IGNORECASE,
)
_HTML_ATTR_RE = re.compile(
    r'(?P<attr>\b(?:href|src|action)=(?P<quote>["\']))(?P<url>[^"\']+)(?P=quote)'
)

_ast_parser = mistune.create_markdown(
    renderer="ast", plugins=["strikethrough", "footnotes", "table", "url"]
)


@dataclass(frozen=True)
class Link:
    """A link or image reference found in a document.

    Attributes:
        url: Target exactly as written.
        text: Plain text of the link label (alt text for images).
        kind: "link" or "image".
    """

    url: str
    text: str
    kind: str


def is_external(href: str) -> bool:
    """Return True for links that leave the site (schemes, protocol-relative)."""
    return href.strip().lower().startswith(LINK_SKIP_PREFIXES)


def split_link(href: str) -> tuple[str, str]:
    """Split an href into its path and fragment (without the ``#``).

    Query strings are dropped from the path.
    """
    path, _, fragment = href.partition("#")
    path = path.split("?", 1)[0]
    return path, fragment


def source_url(rel: PurePosixPath) -> str:
    """Return the URL of the page built from a site-relative source path.

    Examples:
        >>> source_url(PurePosixPath("index.md"))
        '/'

        >>> source_url(PurePosixPath("articles/2024-05-01-intro.md"))
        '/articles/intro/'
    """
    slug = slugify(rel.stem)
    segments = [p for p in rel.parent.parts if p and p != "."]
    url_parts = segments if slug == "index" else segments + [slug]
    path = "/".join(url_parts)
    return f"/{path}/" if path else "/"


def resolve_link(href: str, folder: str) -> PurePosixPath | None:
    """Resolve a relative link to a source path under the site directory.

    Args:
        href: Link target as written in the page.
        folder: Folder of the linking page relative to the site directory.

    Returns:
        Normalized site-relative path, or None for external links,
        pure anchors, root-relative URLs, and paths escaping the site.
    """
    if not href or is_external(href):
        return None
    path, _ = split_link(href)
    if not path or path.startswith("/"):
        return None
    joined = posixpath.normpath(posixpath.join(folder or ".", unquote(path)))
    if joined == ".." or joined.startswith("../"):
        return None
    return PurePosixPath(joined)


def page_url(href: str, folder: str) -> str | None:
    """Return the URL of the page a relative link names, without its fragment.

    ``.md`` and ``.html`` sources map to their page URL. Folder links
    (``articles/`` or a path without a suffix) map to the folder's index
    page. Anything else (images, downloads, stylesheets) is not a page
    and gives None, as do external links and paths escaping the site.

    Examples:
        >>> page_url("../about.html", "articles")
        '/about/'

        >>> page_url("articles/", "")
        '/articles/'
    """
    target = resolve_link(href, folder)
    if target is None:
        return None
    path, _ = split_link(href)
    if path.endswith("/") or not target.suffix:
        return source_url(target / "index.md")
    if target.suffix.lower() in PAGE_SUFFIXES:
        return source_url(target)
    return None


def rewrite_link(href: str, folder: str) -> str:
    """Rewrite a source link into the URL of its rendered page.

    Page and folder links become page URLs, keeping any fragment. Every
    other link is returned unchanged.

    Examples:
        >>> rewrite_link("../about.md#team", "articles")
        '/about/#team'
    """
    url = page_url(href, folder)
    if url is None:
        return href
    _, fragment = split_link(href)
    return f"{url}#{fragment}" if fragment else url


def rewrite_image_src(src: str, folder: str) -> str:
    """Point a relative image at its copy under ``/assets/images/``.

    Examples:
        >>> rewrite_image_src("../img/chart.png", "articles/python")
        '/assets/images/articles/img/chart.png'
    """
    if "{{" in src:
        return src
    target = resolve_link(src, folder)
    if target is None:
        return src
    return f"/assets/images/{target}"


def _html_urls(tag: re.Match) -> Iterator[tuple[re.Match, str]]:
    is_img = tag.group("tag").lower() == "img"
    for attr in _TAG_URL_RE.finditer(tag.group(0)):
        is_src = attr.group("name").lower() == "src"
        yield attr, "image" if is_img and is_src else "link"


def iter_html_links(html: str) -> Iterator[Link]:
    """Yield the href and src targets of every tag in an HTML fragment.

    ``<img src>`` is an image; every other href or src is a link.
    """
    for tag in _HTML_TAG_RE.finditer(html):
        for attr, kind in _html_urls(tag):
            yield Link(url=attr.group("url"), text="", kind=kind)


def rewrite_html_urls(html: str, folder: str) -> str:
    """Rewrite source links and relative images written as raw HTML tags."""

    def rewrite_tag(tag: re.Match) -> str:
        text = tag.group(0)
        for attr, kind in reversed(list(_html_urls(tag))):
            url = attr.group("url")
            new = rewrite_image_src(url, folder) if kind == "image" else rewrite_link(url, folder)
            if new != url:
                text = f"{text[: attr.start('url')]}{new}{text[attr.end('url') :]}"
        return text

    return _HTML_TAG_RE.sub(rewrite_tag, html)


def join_root_url(root_url: str, path: str) -> str:
    """Prefix a site path with the configured root URL.

    Examples:
        >>> join_root_url("https://example.com/", "about/")
        'https://example.com/about/'
    """
    if not root_url:
        return path
    return f"{root_url.rstrip('/')}/{path.lstrip('/')}"


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Prefix every site-relative href, src and action in rendered HTML.

    External links and pure anchors are left alone.
    """
    if not root_url:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if is_external(url) or url.startswith("#"):
            return match.group(0)
        return f"{match.group('attr')}{join_root_url(root_url, url)}{match.group('quote')}"

    return _HTML_ATTR_RE.sub(repl, html)


def _plain_text(children: list[dict]) -> str:
    parts: list[str] = []
    for child in children:
        if "raw" in child:
            parts.append(child["raw"])
        elif "children" in child:
            parts.append(_plain_text(child["children"]))
    return "".join(parts)


def _walk(tokens: list[dict]) -> Iterator[Link]:
    for token in tokens:
        kind = token.get("type")
        if kind in ("link", "image"):
            url = token.get("attrs", {}).get("url", "")
            yield Link(url=url, text=_plain_text(token.get("children", [])), kind=kind)
        elif kind in ("block_html", "inline_html"):
            yield from iter_html_links(token.get("raw", ""))
        if kind in ("block_code", "codespan"):
            continue
        children = token.get("children")
        if isinstance(children, list):
            yield from _walk(children)


def iter_links(markdown: str) -> Iterator[Link]:
    """Yield every link and image written in a Markdown document.

    Code blocks and code spans are skipped.
    """
    tokens = _ast_parser(markdown)
    yield from _walk(tokens)
