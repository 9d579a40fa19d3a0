import json
from datetime import datetime
from pathlib import Path

import yaml
from click.testing import CliRunner

from lectern import __version__
from lectern.cli import cli


class FakeQuestion:
    def __init__(self, answer):
        self.answer = answer

    def ask(self):
        return self.answer


def fake_prompts(monkeypatch, texts, confirm=False):
    answers = list(texts)
    monkeypatch.setattr(
        "lectern.cli.questionary.text", lambda *args, **kwargs: FakeQuestion(answers.pop(0))
    )
    monkeypatch.setattr(
        "lectern.cli.questionary.confirm", lambda *args, **kwargs: FakeQuestion(confirm)
    )


def new_project(runner: CliRunner, tmp_path: Path) -> Path:
    target = tmp_path / "mysite"
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code == 0, result.output
    return target


def test_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    target = new_project(runner, tmp_path)
    assert (target / "lectern.yaml").exists()
    assert (target / "data" / "site.yaml").exists()
    assert (target / "site" / "index.md").exists()
    assert (target / "site" / "articles" / "index.md").exists()
    assert (target / "site" / "articles" / "hello-world.md").exists()

    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code != 0
    assert "non-empty directory" in result.output


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_check_and_build_starter_project(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 0, result.output
    assert "Checked 3 pages: 0 error(s), 0 warning(s)" in result.output

    result = runner.invoke(cli, ["build", "--strict"])
    assert result.exit_code == 0, result.output
    assert "Built 3 pages" in result.output
    assert (project / "output" / "articles" / "hello-world" / "index.html").exists()


def test_check_reports_errors_and_warnings(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)
    articles = project / "site" / "articles"
    (articles / "orphan.md").write_text(
        "---\ntitle: Orphan\ndescription: Lonely\ntags: [misc]\n---\n# Orphan\n",
        encoding="utf-8",
    )

    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 0
    assert "site/articles/orphan.md: warning [article-not-indexed]" in result.stdout
    assert "0 error(s), 1 warning(s)" in result.stdout

    result = runner.invoke(cli, ["check", "--strict"])
    assert result.exit_code == 1

    (project / "site" / "about.md").write_text("[gone](missing.md)", encoding="utf-8")
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 1
    assert "site/about.md: error [broken-link]" in result.stderr
    assert "site/about.md: error [missing-title]" in result.stderr


def test_check_json_output(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)
    (project / "site" / "about.md").write_text("# About", encoding="utf-8")

    result = runner.invoke(cli, ["check", "--format", "json"])
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["pages_checked"] == 4
    assert payload["errors"] == 2
    assert {f["rule"] for f in payload["findings"]} == {"missing-title", "missing-description"}
    assert payload["findings"][0]["path"] == "site/about.md"


def test_check_outside_project(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["check"])
    assert result.exit_code == 1
    assert "Expected site directory" in result.output


def test_check_bad_config(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "lectern.yaml").write_text("- nope\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["check"])
    assert result.exit_code == 1
    assert "expected a mapping of settings" in result.output


def test_strict_build_failure_lists_findings(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)
    (project / "site" / "about.md").write_text("# About", encoding="utf-8")

    result = runner.invoke(cli, ["build", "--strict"])
    assert result.exit_code == 1
    assert "Build failed: content checks reported errors" in result.stderr
    assert "[missing-title]" in result.stderr
    assert not (project / "output").exists()


def test_build_error_shows_file(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)
    layouts = project / "site" / "_layouts"
    layouts.mkdir()
    (layouts / "default.html.jinja").write_text("{{ nothing.attr }}", encoding="utf-8")

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.stderr
    assert "  File: site/" in result.stderr
    assert "  Error: Undefined variable:" in result.stderr


def test_serve_passes_ports(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    called = {}

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            called["root"] = root
            called["ports"] = (http_port, ws_port)

        def start(self, include_drafts=False):
            called["drafts"] = include_drafts

    monkeypatch.setattr("lectern.server.DevServer", DummyServer)
    result = CliRunner().invoke(
        cli, ["serve", "--drafts", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called == {"root": tmp_path, "ports": (5050, 5051), "drafts": True}


def test_article_creates_file(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)
    fake_prompts(monkeypatch, ["Deploying Sites", "Ship it.", "Ops, web, ops"])

    result = runner.invoke(cli, ["article"])
    assert result.exit_code == 0, result.output
    path = project / "site" / "articles" / "deploying-sites.md"
    assert "Created site/articles/deploying-sites.md" in result.output
    assert "article index" in result.output

    text = path.read_text(encoding="utf-8")
    frontmatter = yaml.safe_load(text.split("---\n")[1])
    assert frontmatter == {
        "title": "Deploying Sites",
        "description": "Ship it.",
        "tags": ["ops", "web"],
    }
    assert "# Deploying Sites\n\nShip it.\n" in text


def test_article_with_date_prefix(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)
    fake_prompts(monkeypatch, ["Dated", "Has a date.", "misc"], confirm=True)

    result = runner.invoke(cli, ["article"])
    assert result.exit_code == 0, result.output
    prefix = datetime.now().strftime("%Y-%m-%d-")
    assert (project / "site" / "articles" / f"{prefix}dated.md").exists()


def test_article_refuses_duplicate_slug(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)

    fake_prompts(monkeypatch, ["Hello World", "Again.", "meta"])
    result = runner.invoke(cli, ["article"])
    assert result.exit_code == 1
    assert "File already exists: site/articles/hello-world.md" in result.output

    fake_prompts(monkeypatch, ["Hello World", "Again.", "meta"], confirm=True)
    result = runner.invoke(cli, ["article"])
    assert result.exit_code == 1
    assert "An article with slug 'hello-world' already exists: hello-world.md" in result.output


def test_article_aborts_on_cancel(monkeypatch, tmp_path):
    runner = CliRunner()
    project = new_project(runner, tmp_path)
    monkeypatch.chdir(project)
    fake_prompts(monkeypatch, [None])

    result = runner.invoke(cli, ["article"])
    assert result.exit_code == 1
    assert "Aborted" in result.output


def test_article_outside_project(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["article"])
    assert result.exit_code == 1
    assert "No site/ directory found" in result.output


def test_module_entrypoint_and_main(monkeypatch):
    from lectern.__main__ import main
    import lectern.cli as cli_mod

    called = {}
    monkeypatch.setattr(cli_mod, "cli", lambda: called.setdefault("ran", True))
    main()
    assert called["ran"]
