"""Config file commands.

Provides commands to create a starter configuration and to show the
effective configuration.
"""

from pathlib import Path
from typing import Annotated

import tomli_w
import typer

from cpanproc.core.config import (
    DEFAULT_REMOTE,
    ConfigError,
    ProcessorConfig,
    config_to_dict,
    load_config,
    save_config,
)
from cpanproc.core.paths import get_config_path
from cpanproc.utils.formatting import console, print_error, print_info, print_success, print_warning

app = typer.Typer(
    help="Create and inspect the configuration file.",
    no_args_is_help=True,
)


@app.command()
def init(
    local: Annotated[
        Path,
        typer.Option("--local", "-l", help="Local mirror root directory."),
    ],
    source: Annotated[
        Path | None,
        typer.Option("--source", "-s", help="Directory receiving the expanded archives."),
    ] = None,
    remote: Annotated[
        str,
        typer.Option("--remote", "-r", help="Remote repository base URL."),
    ] = DEFAULT_REMOTE,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Where to write the config file."),
    ] = None,
    overwrite: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write a config file with default settings."""
    target = config_path or get_config_path()
    if target.exists() and not overwrite:
        print_warning(f"Config already exists: {target}")
        print_info("Use --force to overwrite it.")
        raise typer.Exit(code=1)

    try:
        config = ProcessorConfig(local=local, source=source, remote=remote)
        saved = save_config(config, target)
    except (ConfigError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Config written: {saved}")


@app.command()
def show(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file to show."),
    ] = None,
) -> None:
    """Print the effective configuration as TOML."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    console.print(tomli_w.dumps(config_to_dict(config)), markup=False, highlight=False)
