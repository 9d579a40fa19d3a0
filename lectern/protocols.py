"""Protocol definitions for Lectern.

The interfaces the content pipeline depends on. Alternative loaders,
builders, renderers and extractors only need to match these shapes.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Heading, Page


@runtime_checkable
class ContentRenderer(Protocol):
    """Renders one type of content (Markdown, HTML) to HTML."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        ...

    @abstractmethod
    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        """Render content to HTML.

        Args:
            content: Source content to render.
            folder: Folder containing the page (for relative path resolution).

        Returns:
            Tuple of (rendered HTML, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Extracts one kind of metadata from a source file."""

    @abstractmethod
    def extract(self, content: str, path: Path) -> dict[str, Any]:
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Discovers content files."""

    @abstractmethod
    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        ...


@runtime_checkable
class PageBuilder(Protocol):
    """Builds a Page from a source file."""

    @abstractmethod
    def build(self, path: Path, draft: bool = False) -> Page:
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Wraps pages in layouts."""

    @abstractmethod
    def render_page(self, page: Page) -> str:
        ...

    @abstractmethod
    def render_string(self, template: str, context: dict[str, Any]) -> str:
        ...
