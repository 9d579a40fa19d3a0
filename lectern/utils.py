"""Utility functions for Lectern.

String processing, path handling and date extraction helpers shared by the
content, build and check modules.

Key functions:
    slugify: Convert filenames to URL slugs.
    titleize: Convert filenames to human-readable titles.
    as_string_list: Normalize a front-matter scalar or list into strings.
    unique: Drop duplicates while keeping authored order.
    build_tags_index: Build index of pages by tags.
    extract_date_from_name: Extract date from filename prefix.
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is a plain HTML file.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any


def _strip_date_prefix(name: str) -> str:
    parts = name.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return name


def slugify(name: str) -> str:
    """Convert filename (without extension) to slug, dropping date prefix.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug.
    """
    cleaned = _strip_date_prefix(name)
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("getting-started.md")
        'Getting Started'
    """
    base = _strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def coerce_datetime(value: Any) -> datetime | None:
    """Turn a front-matter date value into a datetime.

    PyYAML already parses unquoted ISO dates into ``date`` objects; quoted
    strings are parsed with ``datetime.fromisoformat``.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def as_string_list(value: Any) -> list[str]:
    """Normalize a front-matter value into a list of stripped strings.

    A single string becomes a one-element list, ``None`` becomes an empty
    list, and empty items are dropped.

    Examples:
        >>> as_string_list("toc")
        ['toc']

        >>> as_string_list(["python", " basics ", ""])
        ['python', 'basics']
    """
    if value is None:
        return []
    if isinstance(value, (str, int, float)):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return []
    items = [str(item).strip() for item in value if item is not None]
    return [item for item in items if item]


def unique(items: Iterable[str]) -> list[str]:
    """Return items with duplicates removed, keeping first occurrences."""
    seen: list[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first paragraph from text.

    Skips headings, images, fences and horizontal rules. Strips HTML tags
    and Markdown link syntax, collapses whitespace and truncates to the
    specified limit.

    Args:
        text: Text content to extract from.
        limit: Maximum character length of result.

    Returns:
        Cleaned first paragraph, truncated to limit characters.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "---", "<!--")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"!?\[([^\]]*)\]\([^)]*\)", r"\1", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def is_internal_path(path: Path) -> bool:
    """Check if a path is internal (contains components starting with _).

    Internal paths include layouts, partials, and draft files.
    """
    return any(part.startswith("_") for part in path.parts)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file."""
    return path.suffix.lower() == ".md"


def is_html(path: Path) -> bool:
    """Check if a path is a plain HTML file (not a Jinja template)."""
    return path.suffix.lower() == ".html"


def extract_number_from_name(name: str) -> int | None:
    """Extract a leading number from a filename for sorting.

    Handles filenames like "01-intro.md", "2-getting-started.md", etc.
    If the filename has a date prefix, extracts number after the date.
    """
    parts = name.split("-")

    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        if parts[3].isdigit():
            return int(parts[3])
        return None

    if parts and parts[0].isdigit():
        return int(parts[0])

    return None


def strip_number_prefix(name: str) -> str:
    """Strip date and number prefixes from filename for sorting comparison."""
    parts = name.split("-")

    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        parts = parts[3:]
        if parts and parts[0].isdigit():
            parts = parts[1:]
    elif parts and parts[0].isdigit():
        parts = parts[1:]

    return "-".join(parts) if parts else name


def build_tags_index(pages: Iterable) -> dict[str, list]:
    """Build an index mapping tags to lists of pages containing that tag.

    Args:
        pages: Iterable of Page objects with a 'tags' attribute.

    Returns:
        Dictionary mapping tag names to lists of pages.
    """
    tags: dict[str, list] = {}
    for page in pages:
        for tag in page.tags:
            tags.setdefault(tag, []).append(page)
    return tags
