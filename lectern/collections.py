"""Page and tag collections exposed to templates as ``pages`` and ``tags``."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Page
from .utils import extract_number_from_name, strip_number_prefix


def _ordering_key(page: Page, newest_first: bool) -> tuple:
    # Unnumbered files go after numbered ones in either direction.
    number = extract_number_from_name(page.path.stem)
    if number is None:
        number = float("inf") if newest_first else 0
    return (page.date, number, strip_number_prefix(page.path.stem).lower())


class PageCollection(Sequence[Page]):
    """Read-only list of pages with the filters templates reach for."""

    def __init__(self, pages: Iterable[Page]):
        self._pages = list(pages)
        self._newest_first: PageCollection | None = None

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        return self._pages[item]

    def _where(self, predicate) -> PageCollection:
        return PageCollection(page for page in self._pages if predicate(page))

    def group(self, name: str) -> PageCollection:
        return self._where(lambda page: page.group == name)

    def articles(self) -> PageCollection:
        return self._where(lambda page: page.is_article)

    def with_tag(self, tag: str) -> PageCollection:
        return self._where(lambda page: tag in page.tags)

    def drafts(self) -> PageCollection:
        return self._where(lambda page: page.draft)

    def published(self) -> PageCollection:
        return self._where(lambda page: not page.draft)

    def by_url(self, url: str) -> Page | None:
        return next((page for page in self._pages if page.url == url), None)

    def sorted(self, reverse: bool = True) -> PageCollection:
        """Order pages by date, then number prefix, then bare filename.

        ``reverse=True`` (the default) puts the newest page first; that
        ordering is computed once and reused.
        """
        if not reverse:
            return PageCollection(
                sorted(self._pages, key=lambda page: _ordering_key(page, False))
            )
        if self._newest_first is None:
            self._newest_first = PageCollection(
                sorted(self._pages, key=lambda page: _ordering_key(page, True), reverse=True)
            )
        return self._newest_first

    def latest(self, count: int = 5) -> PageCollection:
        return PageCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


class TagCollection(Mapping[str, PageCollection]):
    """Tag name to pages, iterated in alphabetical order."""

    def __init__(self, mapping: dict[str, Iterable[Page]]):
        self._by_tag = {tag: PageCollection(mapping[tag]) for tag in sorted(mapping)}

    def __getitem__(self, key: str) -> PageCollection:
        return self._by_tag[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_tag)

    def __len__(self) -> int:
        return len(self._by_tag)

    def counts(self) -> dict[str, int]:
        return {tag: len(pages) for tag, pages in self._by_tag.items()}

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._by_tag)} tags)"
