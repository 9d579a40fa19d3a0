"""Entry point for the Lectern CLI."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
