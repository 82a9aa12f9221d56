"""CLI commands for cpanproc.

This package contains all subcommand implementations.
"""

from cpanproc.cli.commands import config, sync

__all__ = ["config", "sync"]
