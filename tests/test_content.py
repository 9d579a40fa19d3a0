from datetime import datetime
from pathlib import Path, PurePosixPath

from lectern.content import (
    Article,
    ContentProcessor,
    DefaultPageBuilder,
    FileContentLoader,
    LayoutResolver,
    Page,
    parse_index_entries,
)
from lectern.extractors import (
    CompositeMetadataExtractor,
    DateExtractor,
    TitleExtractor,
    extract_frontmatter,
)
from lectern.protocols import ContentLoader, ContentRenderer, MetadataExtractor, PageBuilder
from lectern.renderers import MarkdownRenderer, RendererRegistry


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_extract_frontmatter_variants():
    data, body, error = extract_frontmatter("---\ntitle: Hi\ntags: [a]\n---\nBody")
    assert data == {"title": "Hi", "tags": ["a"]}
    assert body == "Body"
    assert error is None

    data, body, error = extract_frontmatter("No front-matter here")
    assert data == {} and body == "No front-matter here" and error is None

    text = "---\ntitle: [unclosed\n---\nBody"
    data, body, error = extract_frontmatter(text)
    assert data == {}
    assert body == text
    assert error.startswith("front-matter is not valid YAML")

    text = "---\n- just\n- a list\n---\nBody"
    data, body, error = extract_frontmatter(text)
    assert data == {} and body == text
    assert error == "front-matter must be a mapping of keys to values"


def test_metadata_extraction_prefers_frontmatter(tmp_path):
    path = write(
        tmp_path / "2024-01-05-notes.md",
        "---\n"
        "title: '  Real Title '\n"
        "description: |\n  Spans\n  two lines.\n"
        "tags: [python, python, cli]\n"
        "hide: [TOC, toc, footer]\n"
        "date: 2023-07-08\n"
        "---\n"
        "# Heading Title\n\nFirst paragraph.\n",
    )
    meta = CompositeMetadataExtractor().extract(path.read_text(encoding="utf-8"), path)
    assert meta["title"] == "Real Title"
    assert meta["description"] == "Spans two lines."
    assert meta["tags"] == ["python", "cli"]
    assert meta["hide"] == ["toc", "footer"]
    assert meta["date"] == datetime(2023, 7, 8)
    assert meta["body"].startswith("# Heading Title")
    assert meta["frontmatter_error"] is None


def test_metadata_fallbacks(tmp_path):
    path = write(tmp_path / "2024-01-05-notes.md", "# Heading Title\n\nFirst paragraph.\n")
    meta = CompositeMetadataExtractor().extract(path.read_text(encoding="utf-8"), path)
    assert meta["title"] == "Heading Title"
    assert meta["description"] == "First paragraph."
    assert meta["tags"] == []
    assert meta["date"] == datetime(2024, 1, 5)

    plain = write(tmp_path / "plain-page.md", "Just text.")
    assert TitleExtractor().extract("Just text.", plain) == {"title": "Plain Page"}
    date = DateExtractor().extract("Just text.", plain)["date"]
    assert isinstance(date, datetime)


def test_parse_index_entries():
    frontmatter = {
        "articles": [
            {"path": "intro.md", "title": "Intro", "tags": ["a", "b"], "description": "Start"},
            {"path": "../outside.md", "title": "Out"},
            {"title": "No path"},
            "not-a-mapping",
        ]
    }
    entries = parse_index_entries(frontmatter, "articles")
    assert len(entries) == 2
    first, second = entries
    assert first.target == PurePosixPath("articles/intro.md")
    assert first.url == "/articles/intro/"
    assert first.tags == ["a", "b"]
    assert first.description == "Start"
    assert second.target == PurePosixPath("outside.md")
    assert parse_index_entries({"articles": "nope"}, "") == []


def test_file_loader_skips_internal_and_drafts(tmp_path):
    site = tmp_path / "site"
    write(site / "index.md", "home")
    write(site / "about.html", "<p>about</p>")
    write(site / "_draft.md", "draft")
    write(site / "_layouts" / "default.html.jinja", "{{ page_content }}")
    write(site / "_partials" / "footer.md", "partial")
    write(site / "notes.txt", "ignored")
    loader = FileContentLoader(site)
    assert isinstance(loader, ContentLoader)

    names = [p.relative_to(site).as_posix() for p in loader.iter_files()]
    assert names == ["about.html", "index.md"]
    with_drafts = [p.name for p in loader.iter_files(include_drafts=True)]
    assert "_draft.md" in with_drafts
    assert "footer.md" not in with_drafts


def test_layout_resolver(tmp_path):
    site = tmp_path / "site"
    write(site / "_layouts" / "docs" / "guide.html.jinja", "")
    resolver = LayoutResolver(site)
    assert resolver.resolve(site / "docs" / "guide.md", "docs") == "docs/guide"
    assert resolver.resolve(site / "articles" / "intro.md", "articles") == "articles"
    assert resolver.resolve(site / "about.md", "") == "default"

    bare = LayoutResolver(site, theme_dir=None)
    assert bare.resolve(site / "articles" / "intro.md", "articles") == "default"
    assert not bare.exists("articles")


def test_page_builder_builds_articles_and_pages(tmp_path):
    site = tmp_path / "site"
    article_path = write(
        site / "articles" / "intro.md",
        "---\ntitle: Intro\ndescription: Start here\ntags: [python]\n---\n"
        "# Intro\n\nSee [about](../about.md#team) and ![chart](chart.png).\n\n"
        '<img src="inline.png">\n\n'
        "## Setup\n\n## Setup\n",
    )
    index_path = write(
        site / "articles" / "index.md",
        "---\ntitle: Articles\ndescription: All\n"
        "articles:\n  - path: intro.md\n    title: Intro\n    tags: [python]\n---\n",
    )
    builder = DefaultPageBuilder(site)
    assert isinstance(builder, PageBuilder)

    article = builder.build(article_path)
    assert isinstance(article, Article)
    assert article.is_article
    assert article.url == "/articles/intro/"
    assert article.layout == "articles"
    assert article.group == "articles"
    assert article.rel_path == PurePosixPath("articles/intro.md")
    assert 'href="/about/#team"' in article.content
    assert 'src="/assets/images/articles/chart.png"' in article.content
    assert 'src="/assets/images/articles/inline.png"' in article.content
    assert [h.id for h in article.toc] == ["intro", "setup", "setup-1"]

    index = builder.build(index_path)
    assert type(index) is Page
    assert not index.is_article
    assert index.is_index
    assert index.url == "/articles/"
    assert index.index_entries[0].title == "Intro"


def test_page_builder_honours_layout_and_html(tmp_path):
    site = tmp_path / "site"
    page_path = write(site / "landing.md", "---\nlayout: wide\n---\nHello")
    html_path = write(site / "raw.html", "<p>raw</p>")
    builder = DefaultPageBuilder(site)

    page = builder.build(page_path)
    assert page.layout == "wide"
    assert page.source_type == "markdown"

    raw = builder.build(html_path)
    assert raw.source_type == "html"
    assert raw.content == "<p>raw</p>"
    assert raw.url == "/raw/"


def test_page_builder_keeps_invalid_frontmatter_error(tmp_path):
    site = tmp_path / "site"
    path = write(site / "broken.md", "---\ntitle: [oops\n---\nBody")
    page = DefaultPageBuilder(site).build(path)
    assert page.frontmatter == {}
    assert page.frontmatter_error is not None


def test_page_builder_records_undecodable_bytes(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    path = site / "bad.md"
    path.write_bytes(b"# Bad \xff\n")
    page = DefaultPageBuilder(site).build(path)
    assert page.encoding_error == "file is not valid UTF-8 (byte 0xff at offset 6)"
    assert page.title.startswith("Bad")


def test_title_and_description_skip_rejected_frontmatter(tmp_path):
    path = write(
        tmp_path / "notes.md",
        "---\n# a yaml comment\ntitle: [oops\n---\n# Real Heading\n\nBody text.\n",
    )
    meta = CompositeMetadataExtractor().extract(path.read_text(encoding="utf-8"), path)
    assert meta["frontmatter_error"] is not None
    assert meta["title"] == "Real Heading"
    assert meta["description"] == "Body text."


def test_heading_ids_stay_unique():
    html, headings = MarkdownRenderer().render("# Intro\n\n# Intro 1\n\n# Intro\n", "")
    assert [h.id for h in headings] == ["intro", "intro-1", "intro-2"]
    assert html.count('id="intro-1"') == 1


def test_content_processor_marks_drafts(tmp_path):
    site = tmp_path / "site"
    write(site / "index.md", "# Home")
    write(site / "articles" / "_wip.md", "---\ntags: [x]\n---\n# WIP")
    processor = ContentProcessor(site)

    assert [p.url for p in processor.load()] == ["/"]
    pages = processor.load(include_drafts=True)
    draft = next(p for p in pages if p.filename == "_wip.md")
    assert draft.draft
    assert draft.is_article
    assert draft.url == "/articles/wip/"


def test_content_processor_custom_articles_dir(tmp_path):
    site = tmp_path / "site"
    write(site / "tutorials" / "one.md", "# One")
    write(site / "articles" / "two.md", "# Two")
    pages = ContentProcessor(site, articles_dir="tutorials").load()
    kinds = {p.filename: p.is_article for p in pages}
    assert kinds == {"two.md": False, "one.md": True}


def test_renderer_protocols():
    renderer = MarkdownRenderer()
    assert isinstance(renderer, ContentRenderer)
    assert isinstance(CompositeMetadataExtractor(), MetadataExtractor)
    assert RendererRegistry().get_renderer(Path("x.txt")) is None
