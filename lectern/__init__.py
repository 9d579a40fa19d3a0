"""Lectern static site generator.

This package renders a tree of Markdown articles into a static site with Jinja2 layouts
and checks the content for integrity problems (front-matter, article index, links).

The main entry point is the CLI module, which provides commands for scaffolding new projects,
checking content, building sites, and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.2.0"
