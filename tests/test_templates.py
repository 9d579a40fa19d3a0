from datetime import datetime
from pathlib import Path

import pytest

from lectern.asset_resolver import AssetNotFoundError, DefaultAssetPathResolver
from lectern.content import Article, Heading, IndexEntry, Page
from lectern.templates import TemplateEngine, render_toc


def make_page(site: Path, cls=Page, **overrides):
    fields = dict(
        title="Hello",
        body="Hi",
        content="<p>Hi</p>",
        description="Greeting",
        url="/hello/",
        slug="hello",
        date=datetime(2024, 3, 4),
        tags=[],
        hide=[],
        draft=False,
        layout="default",
        group="",
        path=site / "hello.md",
        folder="",
        filename="hello.md",
        source_type="markdown",
    )
    fields.update(overrides)
    return cls(**fields)


def test_template_engine_renders_site_layout(tmp_path):
    site = tmp_path / "site"
    (site / "_layouts").mkdir(parents=True)
    (site / "_layouts" / "default.html.jinja").write_text(
        "<title>{{ current_page.title }}</title>{{ page_content }}{{ url_for('assets/js/app.js') }}",
        encoding="utf-8",
    )
    engine = TemplateEngine(site, {"title": "My Site"}, root_url="https://example.com")
    page = make_page(site, title="Tom & Jerry")
    engine.update_collections([page], {})

    rendered = engine.render_page(page)
    assert "<title>Tom &amp; Jerry</title>" in rendered
    assert "<p>Hi</p>" in rendered
    assert "https://example.com/assets/js/app.js" in rendered


def test_url_for(tmp_path):
    engine = TemplateEngine(tmp_path, {})
    assert engine._url_for("assets/app.js") == "/assets/app.js"
    assert engine._url_for("http://cdn.com/lib.js") == "http://cdn.com/lib.js"

    rooted = TemplateEngine(tmp_path, {"root_url": "https://root.com/"})
    assert rooted._url_for("/articles/") == "https://root.com/articles/"


def test_default_theme_renders_article(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    engine = TemplateEngine(site, {"title": "Field Notes", "footer": "Bye"})
    article = make_page(
        site,
        cls=Article,
        title="Intro",
        url="/articles/intro/",
        layout="articles",
        tags=["python", "cli"],
        toc=[Heading(id="setup", text="Setup", level=2)],
    )
    home = make_page(site, title="Home", url="/", path=site / "index.md", filename="index.md")
    engine.update_collections([home, article], {"python": [article]})

    html = engine.render_page(article)
    assert "<title>Intro · Field Notes</title>" in html
    assert '<time datetime="2024-03-04">March 4, 2024</time>' in html
    assert "<li>python</li>" in html
    assert '<a href="#setup">Setup</a>' in html
    assert 'href="/">Home</a>' in html
    assert "Bye" in html
    assert ".highlight" in html


def test_default_theme_honours_hide(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    engine = TemplateEngine(site, {"footer": "Bye"})
    article = make_page(
        site,
        cls=Article,
        layout="articles",
        tags=["python"],
        hide=["toc", "navigation", "footer", "tags"],
        toc=[Heading(id="setup", text="Setup", level=2)],
    )
    html = engine.render_page(article)
    assert "<nav>" not in html
    assert "On this page" not in html
    assert "<footer>" not in html
    assert "<li>python</li>" not in html


def test_default_theme_renders_article_grid(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    engine = TemplateEngine(site, {})
    index = make_page(
        site,
        title="Articles",
        url="/articles/",
        index_entries=[
            IndexEntry(
                path="intro.md",
                title="Intro <1>",
                tags=["python"],
                description="Start here",
                url="/articles/intro/",
            )
        ],
    )
    html = engine.render_page(index)
    assert '<a href="/articles/intro/">Intro &lt;1&gt;</a>' in html
    assert "<p>Start here</p>" in html


def test_navigation_prefers_data_nav(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    engine = TemplateEngine(site, {"nav": [{"label": "Docs", "url": "/docs/"}, "junk"]})
    assert engine._navigation() == [{"label": "Docs", "url": "/docs/"}]

    auto = TemplateEngine(site, {})
    pages = [
        make_page(site, title="About", url="/about/"),
        make_page(site, title="Home", url="/"),
        make_page(site, title="Intro", url="/articles/intro/"),
        make_page(site, title="Secret", url="/secret/", draft=True),
    ]
    auto.update_collections(pages, {})
    assert [item["label"] for item in auto._navigation()] == ["Home", "About"]


def test_render_toc_nests_levels(tmp_path):
    page = make_page(
        tmp_path,
        toc=[
            Heading(id="a", text="A", level=2),
            Heading(id="b", text="B & C", level=3),
            Heading(id="d", text="D", level=2),
        ],
    )
    html = str(render_toc(page))
    assert html == (
        '<ul><li><a href="#a">A</a><ul><li><a href="#b">B &amp; C</a></li></ul>'
        '</li><li><a href="#d">D</a></li></ul>'
    )
    assert str(render_toc(make_page(tmp_path))) == ""
    hidden = make_page(tmp_path, hide=["toc"], toc=[Heading(id="a", text="A", level=2)])
    assert str(render_toc(hidden)) == ""


def test_layout_fallback_and_render_string(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    engine = TemplateEngine(site, {}, theme_dir=None)
    page = make_page(site, layout="missing")
    assert engine.render_page(page) == "<p>Hi</p>"
    assert engine.render_string("{{ name | upper }}", {"name": "lectern"}) == "LECTERN"


def test_asset_helpers(tmp_path):
    assets = tmp_path / "assets"
    (assets / "css").mkdir(parents=True)
    (assets / "css" / "site.css").write_text("body{}", encoding="utf-8")
    (assets / "images").mkdir()
    (assets / "images" / "logo.svg").write_text("<svg/>", encoding="utf-8")

    resolver = DefaultAssetPathResolver(assets)
    assert resolver.css_path("site") == "/assets/css/site.css"
    assert resolver.img_path("logo") == "/assets/images/logo.svg"
    assert resolver.exists("site.css", "css")
    assert not resolver.exists("app", "js")
    with pytest.raises(AssetNotFoundError) as excinfo:
        resolver.js_path("app")
    assert excinfo.value.searched_paths == [assets / "js" / "app.js"]
    with pytest.raises(ValueError):
        resolver.resolve("x", "font")

    site = tmp_path / "site"
    site.mkdir()
    engine = TemplateEngine(site, {}, root_url="https://example.com")
    assert engine.render_string("{{ css_path('site') }}", {}) == "https://example.com/assets/css/site.css"
