from datetime import datetime
from pathlib import Path

from lectern.collections import PageCollection, TagCollection


class FakePage:
    def __init__(
        self,
        title,
        group="",
        date=None,
        tags=None,
        draft=False,
        filename=None,
        is_article=False,
        url=None,
    ):
        self.title = title
        self.group = group
        self.date = date or datetime(2024, 1, 1)
        self.tags = tags or []
        self.draft = draft
        self.is_article = is_article
        self.path = Path(filename if filename else f"{title.lower().replace(' ', '-')}.md")
        self.url = url or f"/{self.path.stem}/"


def test_page_collection_filters_and_latest():
    pages = PageCollection(
        [
            FakePage("A", group="articles", date=datetime(2024, 1, 2), is_article=True),
            FakePage("B", group="articles", date=datetime(2024, 1, 3), draft=True, is_article=True),
            FakePage("C", date=datetime(2024, 1, 1), tags=["python"], url="/"),
        ]
    )
    assert len(pages) == 3
    assert [p.title for p in pages.group("articles")] == ["A", "B"]
    assert [p.title for p in pages.articles()] == ["A", "B"]
    assert [p.title for p in pages.published()] == ["A", "C"]
    assert [p.title for p in pages.drafts()] == ["B"]
    assert pages.latest(1)[0].title == "B"
    assert [p.title for p in pages.sorted(reverse=False)] == ["C", "A", "B"]
    assert pages.sorted() is pages.sorted()
    assert pages.with_tag("python")[0].title == "C"
    assert pages.by_url("/").title == "C"
    assert pages.by_url("/missing/") is None


def test_sorting_by_date_number_filename():
    pages = PageCollection(
        [
            FakePage("Third", filename="03-third.md"),
            FakePage("First", filename="01-first.md"),
            FakePage("Second", filename="02-second.md"),
        ]
    )
    assert [p.title for p in pages.sorted(reverse=True)] == ["Third", "Second", "First"]
    assert [p.title for p in pages.sorted(reverse=False)] == ["First", "Second", "Third"]


def test_sorting_by_filename_when_no_numbers():
    pages = PageCollection(
        [
            FakePage("Zebra", filename="zebra.md"),
            FakePage("Apple", filename="apple.md"),
            FakePage("Mango", filename="mango.md"),
        ]
    )
    assert [p.title for p in pages.sorted(reverse=True)] == ["Zebra", "Mango", "Apple"]
    assert [p.title for p in pages.sorted(reverse=False)] == ["Apple", "Mango", "Zebra"]


def test_tag_collection_is_sorted_and_counts():
    a = FakePage("A")
    b = FakePage("B")
    tags = TagCollection({"web": [a], "python": [a, b]})
    assert list(tags) == ["python", "web"]
    assert len(tags) == 2
    assert [p.title for p in tags["python"]] == ["A", "B"]
    assert tags.counts() == {"python": 2, "web": 1}
