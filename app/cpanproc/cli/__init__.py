"""CLI package for cpanproc.

This package contains the Typer application and all subcommands.
"""

from cpanproc.cli.main import app

__all__ = ["app"]
