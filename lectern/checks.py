"""Content checks for Lectern.

Checks look at the loaded pages of a site and report integrity problems
the renderer would silently carry into the output: missing front-matter
fields, duplicate tags, an article index that disagrees with the articles
it lists, and links the built site would not serve.

Key classes:
- Finding: One problem found in one file.
- CheckReport: All findings of a run.
- ContentCheck: Base class for checks.
- CheckRegistry: Runs the registered checks.

Key functions:
- check_pages: Run the default checks over already loaded pages.
- check_site: Load a project and check it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from .config import load_config
from .content import ContentProcessor, Page
from .extractors import KNOWN_HIDE_DIRECTIVES
from .links import is_external, iter_html_links, iter_links, page_url, resolve_link, split_link

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class Finding:
    """A single problem found by a check.

    Attributes:
        path: Source file the problem was found in.
        rule: Stable rule identifier (e.g. "missing-title").
        message: Human-readable explanation.
        severity: "error" or "warning".
    """

    path: Path
    rule: str
    message: str
    severity: str = ERROR

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR


@dataclass
class CheckReport:
    """Findings of a check run, sorted by file then rule."""

    findings: list[Finding] = field(default_factory=list)
    pages_checked: int = 0

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def rules(self) -> set[str]:
        return {f.rule for f in self.findings}

    def to_dict(self, root: Path | None = None) -> dict[str, Any]:
        """Serializable form; paths are made relative to ``root`` when given."""

        def show(path: Path) -> str:
            if root is not None:
                try:
                    return path.relative_to(root).as_posix()
                except ValueError:
                    pass
            return path.as_posix()

        return {
            "pages_checked": self.pages_checked,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "findings": [
                {
                    "path": show(f.path),
                    "rule": f.rule,
                    "severity": f.severity,
                    "message": f.message,
                }
                for f in self.findings
            ],
        }


@dataclass
class SiteContext:
    """Everything a check may look at.

    Attributes:
        site_dir: Directory holding the content files.
        assets_dir: Directory holding static assets.
        pages: Loaded pages.
    """

    site_dir: Path
    assets_dir: Path
    pages: list[Page]

    def __post_init__(self) -> None:
        self._by_rel = {page.rel_path: page for page in self.pages}
        self._urls = {page.url: page for page in self.pages}

    def page_at(self, rel: PurePosixPath) -> Page | None:
        return self._by_rel.get(rel)

    def page_for_url(self, url: str) -> Page | None:
        if not url.endswith("/"):
            url = f"{url}/"
        return self._urls.get(url)

    def asset_exists(self, rel: PurePosixPath) -> bool:
        return (self.assets_dir / Path(*rel.parts)).is_file()


class ContentCheck(ABC):
    """Base class for content checks."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def run(self, context: SiteContext) -> Iterable[Finding]:
        """Yield findings for the site."""
        ...


def _text_value(frontmatter: dict[str, Any], key: str) -> str:
    value = frontmatter.get(key)
    return value.strip() if isinstance(value, str) else ""


class FrontmatterCheck(ContentCheck):
    """Pages decode as UTF-8 and their front-matter carries a title and description."""

    name = "frontmatter"

    def run(self, context: SiteContext) -> Iterator[Finding]:
        for page in context.pages:
            if page.encoding_error:
                yield Finding(page.path, "invalid-encoding", page.encoding_error)
                continue
            if page.frontmatter_error:
                yield Finding(page.path, "invalid-frontmatter", page.frontmatter_error)
                continue
            for key in ("title", "description"):
                if not _text_value(page.frontmatter, key):
                    yield Finding(
                        page.path,
                        f"missing-{key}",
                        f"front-matter has no non-empty '{key}'",
                    )


class TagCheck(ContentCheck):
    """No tag is listed twice on the same page."""

    name = "tags"

    def run(self, context: SiteContext) -> Iterator[Finding]:
        for page in context.pages:
            raw = page.frontmatter.get("tags")
            if not isinstance(raw, list):
                continue
            counts = Counter(str(tag).strip() for tag in raw if tag is not None)
            for tag, count in counts.items():
                if tag and count > 1:
                    yield Finding(
                        page.path,
                        "duplicate-tag",
                        f"tag '{tag}' is listed {count} times",
                    )


class HideDirectiveCheck(ContentCheck):
    """Every hide-directive is one the theme understands."""

    name = "hide"

    def run(self, context: SiteContext) -> Iterator[Finding]:
        known = ", ".join(KNOWN_HIDE_DIRECTIVES)
        for page in context.pages:
            for directive in page.hide:
                if directive not in KNOWN_HIDE_DIRECTIVES:
                    yield Finding(
                        page.path,
                        "unknown-hide-directive",
                        f"unknown hide directive '{directive}' (expected one of: {known})",
                        WARNING,
                    )


class ArticleCheck(ContentCheck):
    """Every article carries at least one tag."""

    name = "articles"

    def run(self, context: SiteContext) -> Iterator[Finding]:
        for page in context.pages:
            if page.is_article and not page.tags:
                yield Finding(page.path, "article-missing-tags", "article has no tags")


class ArticleIndexCheck(ContentCheck):
    """Index grids and articles agree with each other.

    Every entry must be a mapping with a ``path`` to an existing page whose
    title and tags match the entry, no page may be listed twice by the
    same index, and every article should be listed by some index.
    """

    name = "index"

    def run(self, context: SiteContext) -> Iterator[Finding]:
        indexed: set[PurePosixPath] = set()
        for index in context.pages:
            yield from self._check_declaration(index)
            listed: set[PurePosixPath] = set()
            for entry in index.index_entries:
                target = entry.target
                page = context.page_at(target) if target is not None else None
                if page is None:
                    yield Finding(
                        index.path,
                        "index-missing-article",
                        f"index lists '{entry.path}' but no such page exists",
                    )
                    continue
                if target in listed:
                    yield Finding(
                        index.path,
                        "index-duplicate-entry",
                        f"index lists '{entry.path}' more than once",
                    )
                    continue
                listed.add(target)
                if entry.title != page.title:
                    yield Finding(
                        index.path,
                        "index-title-mismatch",
                        f"index title '{entry.title}' does not match "
                        f"'{page.title}' of {entry.path}",
                    )
                if set(entry.tags) != set(page.tags):
                    yield Finding(
                        index.path,
                        "index-tags-mismatch",
                        f"index tags {sorted(set(entry.tags))} do not match "
                        f"{sorted(set(page.tags))} of {entry.path}",
                    )
            indexed |= listed
        for page in context.pages:
            if page.is_article and not page.draft and page.rel_path not in indexed:
                yield Finding(
                    page.path,
                    "article-not-indexed",
                    "article is not listed in any article index",
                    WARNING,
                )

    @staticmethod
    def _check_declaration(index: Page) -> Iterator[Finding]:
        if "articles" not in index.frontmatter:
            return
        raw = index.frontmatter["articles"]
        if not isinstance(raw, list):
            yield Finding(index.path, "index-invalid-entry", "'articles' must be a list of entries")
            return
        for number, item in enumerate(raw, start=1):
            if not isinstance(item, dict) or not item.get("path"):
                yield Finding(
                    index.path,
                    "index-invalid-entry",
                    f"entry {number} of 'articles' is not a mapping with a 'path'",
                )


class LinkCheck(ContentCheck):
    """Internal links and images resolve in the built site; anchors name real headings.

    A link is followed the way the renderer writes it: page and folder
    links must match a page that is being built, images must exist under
    ``assets/images/`` and root-relative links must match a page or an
    asset. Drafts that are not built and ``_`` folders count as missing.
    """

    name = "links"

    def run(self, context: SiteContext) -> Iterator[Finding]:
        for page in context.pages:
            if page.source_type == "html":
                links = iter_html_links(page.body)
            else:
                links = iter_links(page.body)
            for link in links:
                yield from self._check_link(context, page, link.url, link.kind)

    def _check_link(
        self, context: SiteContext, page: Page, href: str, kind: str
    ) -> Iterator[Finding]:
        href = href.strip()
        if not href or is_external(href) or "{{" in href:
            return
        path, fragment = split_link(href)

        if not path:
            if fragment and not self._has_anchor(page, fragment):
                yield Finding(
                    page.path,
                    "broken-anchor",
                    f"'#{fragment}' does not match any heading on this page",
                    WARNING,
                )
            return

        if path.startswith("/"):
            if path.startswith("/assets/"):
                linked = None
                found = context.asset_exists(PurePosixPath(path[len("/assets/") :]))
            else:
                linked = context.page_for_url(path)
                found = linked is not None
            if not found:
                yield Finding(page.path, "broken-link", f"'{href}' does not match any page or asset")
                return
        else:
            target = resolve_link(href, page.folder)
            if target is None:
                yield Finding(page.path, "broken-link", f"'{href}' points outside the site")
                return
            if kind == "image":
                if not context.asset_exists(PurePosixPath("images") / target):
                    yield Finding(
                        page.path,
                        "broken-link",
                        f"'{href}' has no file at assets/images/{target}",
                    )
                return
            url = page_url(href, page.folder)
            if url is None:
                yield Finding(
                    page.path,
                    "broken-link",
                    f"'{href}' is not a page; link static files from /assets/",
                )
                return
            linked = context.page_for_url(url)
            if linked is None:
                yield Finding(
                    page.path, "broken-link", f"'{href}' does not match a page in the built site"
                )
                return

        if fragment and linked is not None and not self._has_anchor(linked, fragment):
            yield Finding(
                page.path,
                "broken-anchor",
                f"'{href}' names a heading that does not exist in {linked.rel_path}",
                WARNING,
            )

    @staticmethod
    def _has_anchor(page: Page, fragment: str) -> bool:
        return any(heading.id == fragment for heading in page.toc)


class CheckRegistry:
    """Registry of content checks."""

    def __init__(self) -> None:
        self._checks: list[ContentCheck] = []

    def register(self, check: ContentCheck) -> None:
        self._checks.append(check)

    @property
    def names(self) -> list[str]:
        return [check.name for check in self._checks]

    def run(self, context: SiteContext) -> CheckReport:
        findings: list[Finding] = []
        for check in self._checks:
            findings.extend(check.run(context))
        findings.sort(key=lambda f: (str(f.path), f.rule, f.message))
        return CheckReport(findings=findings, pages_checked=len(context.pages))


def create_default_check_registry() -> CheckRegistry:
    registry = CheckRegistry()
    registry.register(FrontmatterCheck())
    registry.register(TagCheck())
    registry.register(HideDirectiveCheck())
    registry.register(ArticleCheck())
    registry.register(ArticleIndexCheck())
    registry.register(LinkCheck())
    return registry


def check_pages(
    site_dir: Path,
    pages: list[Page],
    assets_dir: Path | None = None,
    registry: CheckRegistry | None = None,
) -> CheckReport:
    """Run content checks over already loaded pages.

    Args:
        site_dir: Directory holding the content files.
        pages: Pages loaded from site_dir.
        assets_dir: Static assets directory; defaults to the ``assets``
            folder next to site_dir.
        registry: Checks to run; defaults to all built-in checks.

    Returns:
        CheckReport with every finding.
    """
    context = SiteContext(
        site_dir=site_dir,
        assets_dir=assets_dir or site_dir.parent / "assets",
        pages=pages,
    )
    return (registry or create_default_check_registry()).run(context)


def check_site(project_root: Path, include_drafts: bool = False) -> CheckReport:
    """Load a project's content and check it.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether draft pages are checked too.

    Returns:
        CheckReport with every finding.

    Raises:
        FileNotFoundError: If the site directory does not exist.
    """
    config = load_config(project_root)
    site_dir = project_root / config.get("site_dir", "site")
    if not site_dir.exists():
        raise FileNotFoundError(f"Expected site directory at {site_dir}")
    pages = ContentProcessor(
        site_dir, articles_dir=str(config.get("articles_dir", "articles"))
    ).load(include_drafts=include_drafts)
    return check_pages(site_dir, pages, project_root / "assets")
