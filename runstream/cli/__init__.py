"""CLI application setup using Typer."""

from runstream.cli.main import app

__all__ = ["app"]
