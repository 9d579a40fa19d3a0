"""Command-line interface for Lectern.

Commands:
- new: Scaffold a new Lectern project.
- check: Check content integrity (front-matter, article index, links).
- build: Build the site into the output directory.
- serve: Run development server with live reload.
- article: Create a new article interactively.
"""

from __future__ import annotations

import json
import shutil
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .utils import as_string_list, slugify, unique

# Files copied into a new project
_STARTER_DIR = Path(__file__).parent / "starter"


@click.group()
@click.version_option(version=__version__, prog_name="lectern")
def cli():
    """Lectern static site generator."""


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Lectern project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Lectern site created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option("--strict", is_flag=True, help="Refuse to build when content checks fail")
def build(drafts: bool, strict: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import BuildError, ContentCheckError, build_site
    from .config import ConfigError

    try:
        result = build_site(project_root, include_drafts=drafts, strict=strict)
    except (BuildError, ConfigError) as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {_relative(exc.source_path, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    except ContentCheckError as exc:
        click.echo(click.style("Build failed: content checks reported errors", fg="red", bold=True), err=True)
        _echo_findings(exc.report, project_root)
        raise SystemExit(1) from None
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Check draft content too")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Report format",
)
@click.option("--strict", is_flag=True, help="Treat warnings as failures")
def check(drafts: bool, output_format: str, strict: bool):
    """Check content: front-matter, tags, article index and links."""
    project_root = Path.cwd()
    from .checks import check_site
    from .config import ConfigError

    try:
        report = check_site(project_root, include_drafts=drafts)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None

    if output_format == "json":
        click.echo(json.dumps(report.to_dict(project_root), indent=2))
    else:
        _echo_findings(report, project_root)
        summary = (
            f"Checked {report.pages_checked} pages: "
            f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )
        colour = "green" if not report.findings else ("red" if report.errors else "yellow")
        click.echo(click.style(summary, fg=colour))

    if report.errors or (strict and report.warnings):
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides lectern.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides lectern.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    server.start(include_drafts=drafts)


@cli.command()
def article():
    """Create a new article interactively."""
    project_root = Path.cwd()
    from .config import load_config

    config = load_config(project_root)
    site_dir = project_root / config.get("site_dir", "site")
    if not site_dir.exists():
        raise click.ClickException(
            "No site/ directory found. Run this command from a Lectern project root."
        )
    target_dir = site_dir / str(config.get("articles_dir", "articles"))

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()

    description = questionary.text(
        "Description:",
        validate=lambda x: len(x.strip()) > 0 or "Description cannot be empty",
        style=_questionary_style(),
    ).ask()
    if description is None:
        raise click.Abort()

    raw_tags = questionary.text(
        "Tags (comma separated):",
        validate=lambda x: len(_parse_tags(x)) > 0 or "Articles need at least one tag",
        style=_questionary_style(),
    ).ask()
    if raw_tags is None:
        raise click.Abort()

    add_date = questionary.confirm(
        "Prefix with today's date? (YYYY-MM-DD-)",
        default=False,
        style=_questionary_style(),
    ).ask()
    if add_date is None:
        raise click.Abort()

    slug = slugify(title.strip())
    prefix = datetime.now().strftime("%Y-%m-%d-") if add_date else ""
    target_path = target_dir / f"{prefix}{slug}.md"

    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {_relative(target_path, project_root)}"
        )
    conflicting = _find_slug(target_dir, slug)
    if conflicting is not None:
        raise click.ClickException(
            f"An article with slug '{slug}' already exists: {conflicting.name}"
        )

    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(
        _article_source(title.strip(), description.strip(), _parse_tags(raw_tags)),
        encoding="utf-8",
    )
    click.echo(f"Created {_relative(target_path, project_root)}")
    click.echo("Remember to list it in the article index.")


def _echo_findings(report, project_root: Path) -> None:
    for finding in report.findings:
        colour = "red" if finding.is_error else "yellow"
        location = _relative(finding.path, project_root)
        click.echo(
            f"{location}: "
            + click.style(f"{finding.severity} [{finding.rule}]", fg=colour)
            + f" {finding.message}",
            err=finding.is_error,
        )


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def _parse_tags(raw: str) -> list[str]:
    return unique(tag.lower() for tag in as_string_list(raw.split(",")))


def _find_slug(folder: Path, slug: str) -> Path | None:
    """Return an existing Markdown file in folder with the given slug."""
    if not folder.exists():
        return None
    for path in sorted(folder.glob("*.md")):
        if slugify(path.stem) == slug:
            return path
    return None


def _article_source(title: str, description: str, tags: list[str]) -> str:
    frontmatter = yaml.safe_dump(
        {"title": title, "description": description, "tags": tags},
        sort_keys=False,
        allow_unicode=True,
    )
    return f"---\n{frontmatter}---\n\n# {title}\n\n{description}\n"


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the starter project into root."""
    for src_path in sorted(_STARTER_DIR.rglob("*")):
        if src_path.is_dir() or "__pycache__" in src_path.parts:
            continue
        dest_path = root / src_path.relative_to(_STARTER_DIR)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
