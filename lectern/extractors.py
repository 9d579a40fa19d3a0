"""Metadata extractors for Lectern.

This module contains implementations of the MetadataExtractor protocol.
Each extractor handles a single type of metadata. Front-matter values win
over anything derived from the body or the filename.

Key classes:
- FrontmatterExtractor: Splits the YAML front-matter block from the body.
- TitleExtractor: Title from front-matter, first heading, or filename.
- DescriptionExtractor: Description from front-matter or first paragraph.
- TagExtractor: Tags from front-matter.
- HideExtractor: Hide-directives from front-matter.
- DateExtractor: Date from front-matter, filename, or file metadata.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .utils import (
    as_string_list,
    coerce_datetime,
    extract_date_from_name,
    first_paragraph,
    titleize,
    unique,
)

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)

KNOWN_HIDE_DIRECTIVES = ("toc", "navigation", "footer", "tags")


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str, str | None]:
    """Extract YAML front-matter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front-matter dict, remaining content, error message).
        When the block is missing the dict is empty and the error is None.
        When the block is present but unusable the dict is empty, the
        content is returned unchanged and the error describes the problem.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text, None
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" (line {mark.line + 2})" if mark is not None else ""
        return {}, text, f"front-matter is not valid YAML{where}"
    if data is None:
        return {}, text[match.end() :], None
    if not isinstance(data, dict):
        return {}, text, "front-matter must be a mapping of keys to values"
    return data, text[match.end() :], None


def _frontmatter_and_prose(content: str) -> tuple[dict[str, Any], str]:
    # A rejected block stays in the body but is never prose.
    frontmatter, body, error = extract_frontmatter(content)
    if error:
        body = content[FRONTMATTER_RE.match(content).end() :]
    return frontmatter, body


class FrontmatterExtractor:
    """Splits YAML front-matter (between ``---`` markers) from the body."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, body, error = extract_frontmatter(content)
        return {"frontmatter": frontmatter, "body": body, "frontmatter_error": error}


class TitleExtractor:
    """Extracts the page title.

    Uses the front-matter ``title`` when it is a non-empty string, then
    the first level-1 heading (``# Title``), then the titleized filename.
    """

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, body = _frontmatter_and_prose(content)
        title = frontmatter.get("title")
        if isinstance(title, str) and title.strip():
            return {"title": title.strip()}
        for line in body.splitlines():
            stripped = line.strip()
            if stripped.startswith("# "):
                return {"title": stripped[2:].strip()}
        return {"title": titleize(path.name)}


class DescriptionExtractor:
    """Extracts the description.

    Uses the front-matter ``description`` when present, otherwise the first
    prose paragraph of the body truncated to 160 characters.
    """

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, body = _frontmatter_and_prose(content)
        description = frontmatter.get("description")
        if isinstance(description, str) and description.strip():
            return {"description": " ".join(description.split())}
        return {"description": first_paragraph(body)}


class TagExtractor:
    """Extracts tags from front-matter, dropping duplicates."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, _, _ = extract_frontmatter(content)
        return {"tags": unique(as_string_list(frontmatter.get("tags")))}


class HideExtractor:
    """Extracts hide-directives (``hide: [toc, navigation]``) from front-matter."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, _, _ = extract_frontmatter(content)
        return {"hide": unique(d.lower() for d in as_string_list(frontmatter.get("hide")))}


class DateExtractor:
    """Extracts date from front-matter, filename or file metadata.

    Looks for a front-matter ``date``, then a YYYY-MM-DD filename prefix,
    falling back to file modification time.
    """

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, _, _ = extract_frontmatter(content)
        date = coerce_datetime(frontmatter.get("date"))
        if date is None:
            date = extract_date_from_name(path.stem)
        if date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime)
        return {"date": date}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs all registered extractors and merges their results. Later
    extractors can override earlier ones.
    """

    def __init__(self, extractors: list | None = None):
        if extractors is None:
            self._extractors = [
                FrontmatterExtractor(),
                TitleExtractor(),
                DescriptionExtractor(),
                TagExtractor(),
                HideExtractor(),
                DateExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract all metadata from content.

        Args:
            content: Source content.
            path: Path to the source file.

        Returns:
            Dictionary with all extracted metadata.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(content, path))
        return result


# Default composite extractor instance
default_metadata_extractor = CompositeMetadataExtractor()
