"""Site building functionality for Lectern.

This module builds a static site from a project: it loads configuration
and data, processes content, renders templates, and writes the output.

Key functions:
- build_site: Main function to build the entire site.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import TemplateError, TemplateSyntaxError, UndefinedError

from .asset_resolver import AssetNotFoundError
from .assets import AssetPipeline
from .checks import CheckReport, check_pages
from .config import load_config, load_data
from .content import ContentProcessor, Page
from .feeds import create_default_feed_registry
from .links import absolutize_html_urls
from .templates import TemplateEngine
from .utils import build_tags_index, ensure_clean_dir


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class ContentCheckError(Exception):
    """Raised by a strict build when the content checks report errors.

    Attributes:
        report: The failing CheckReport.
    """

    def __init__(self, report: CheckReport):
        self.report = report
        super().__init__(f"content checks failed with {len(report.errors)} error(s)")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        pages: List of all pages in the site.
        output_dir: Directory where the site was built.
        data: Global site data dictionary.
        report: Content check report (strict builds only).
        feeds: Names of the feed files written.
    """

    pages: list[Page]
    output_dir: Path
    data: dict[str, Any]
    report: CheckReport | None = None
    feeds: list[str] | None = None


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
    strict: bool = False,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include draft pages (starting with _).
        root_url: Optional base URL to absolutize links with.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional path to write the build output instead of config output_dir.
        strict: Run the content checks first and refuse to build on errors.

    Returns:
        BuildResult containing all pages, output directory, and site data.

    Raises:
        FileNotFoundError: If the site directory does not exist.
        ContentCheckError: If ``strict`` and the content checks fail.
        BuildError: If a page fails to render.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["root_url"] = root_url
    site_dir = project_root / config.get("site_dir", "site")
    if not site_dir.exists():
        raise FileNotFoundError(f"Expected site directory at {site_dir}")

    data = load_data(project_root)
    resolved_root = str(config.get("root_url") or "")
    if resolved_root:
        data.setdefault("root_url", resolved_root)

    pages = ContentProcessor(
        site_dir, articles_dir=str(config.get("articles_dir", "articles"))
    ).load(include_drafts=include_drafts)

    report = None
    if strict:
        report = check_pages(site_dir, pages, project_root / "assets")
        if not report.ok:
            raise ContentCheckError(report)
    for page in pages:
        if page.encoding_error:
            raise BuildError(page.path, page.encoding_error)

    output_dir = output_dir_override or (
        project_root / config.get("output_dir", "output")
    )
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    engine = TemplateEngine(site_dir, data, root_url=resolved_root)
    engine.update_collections(pages, build_tags_index(pages))
    for page in pages:
        try:
            rendered = engine.render_page(page)
        except TemplateSyntaxError as exc:
            raise BuildError(
                Path(exc.filename) if exc.filename else page.path,
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except (TemplateError, AssetNotFoundError, TypeError, AttributeError) as exc:
            raise BuildError(page.path, _format_error_message(exc), exc) from exc
        if resolved_root:
            rendered = absolutize_html_urls(rendered, resolved_root)
        _write_page(output_dir, page, rendered)

    AssetPipeline(project_root, output_dir).run()
    feeds = create_default_feed_registry().generate_all(output_dir, pages, data)
    return BuildResult(
        pages=pages, output_dir=output_dir, data=data, report=report, feeds=feeds
    )


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    if isinstance(exc, UndefinedError):
        return f"Undefined variable: {exc}"
    if isinstance(exc, AssetNotFoundError):
        return f"Missing asset: {exc}"
    if isinstance(exc, TypeError):
        return f"Type error: {exc}"
    if isinstance(exc, AttributeError):
        return f"Attribute error: {exc}"
    return f"{type(exc).__name__}: {exc}"


def _write_page(output_dir: Path, page: Page, rendered: str) -> None:
    """Write a rendered page to ``<output>/<url>/index.html``."""
    target_dir = output_dir / page.url.strip("/")
    target_dir.mkdir(parents=True, exist_ok=True)
    with open(target_dir / "index.html", "w", encoding="utf-8") as f:
        f.write(rendered)
