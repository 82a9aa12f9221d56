"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from cpanproc import __version__
from cpanproc.cli.commands import config, sync
from cpanproc.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="cpanproc",
    help="Mirror a CPAN repository and expand its archives for processing.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cpanproc version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool, quiet: bool) -> None:
    """Route cpanproc log records through Rich on stderr.

    Args:
        verbose: Show debug records.
        quiet: Show errors only.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    package_logger = logging.getLogger("cpanproc")
    package_logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=err_console, show_path=False))


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
) -> None:
    """cpanproc - Mirror CPAN and expand its archives for processing.

    Keep a local mirror of a CPAN repository current, maintain a tree of
    the Perl sources inside its archives, and run a processor over that
    tree whenever something changed.
    """
    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    configure_logging(verbose, quiet)


# Register commands
app.add_typer(sync.app, name="sync")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
