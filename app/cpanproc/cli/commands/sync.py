"""Sync command implementation.

Runs one full cycle in a single invocation: update the local mirror,
expand new archives into the source tree, remove what upstream dropped,
and start the processor if anything changed.
"""

import logging
from pathlib import Path
from typing import Annotated, Any

import typer

from cpanproc.cli.display import print_run_summary
from cpanproc.core.config import (
    ConfigError,
    ConfigNotFoundError,
    ProcessorConfig,
    build_config,
    load_config,
)
from cpanproc.core.downstream import ExpandOnlyProcessor, SourceProcessor, load_processor
from cpanproc.core.errors import ProcessorError
from cpanproc.core.paths import get_config_path
from cpanproc.core.processor import CPANProcessor
from cpanproc.utils.formatting import print_error, print_info

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Update the mirror, expand archives, and run the processor.",
    invoke_without_command=True,
)


def _resolve_config(config_path: Path | None, overrides: dict[str, Any]) -> ProcessorConfig:
    """Load the config file and apply command line overrides.

    Without an explicit --config, a missing default config file is not an
    error as long as the command line supplies --local.

    Raises:
        typer.Exit: If the configuration is missing or invalid.
    """
    try:
        return load_config(config_path, **overrides)
    except ConfigNotFoundError as e:
        if config_path is not None or overrides.get("local") is None:
            print_error(str(e))
            print_info("Create one with 'cpanproc config init' or pass --local.")
            raise typer.Exit(code=1) from e
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    try:
        return build_config({key: value for key, value in overrides.items() if value is not None})
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def _resolve_processor(config: ProcessorConfig, reference: str | None) -> SourceProcessor:
    """Build the downstream processor for this run.

    Raises:
        typer.Exit: If no source directory is known or the processor
            reference cannot be loaded.
    """
    if config.source is None:
        print_error("No source directory configured (set 'source' or pass --source).")
        raise typer.Exit(code=1)

    if reference is None:
        return ExpandOnlyProcessor(config.source)

    try:
        return load_processor(reference, config.source)
    except ProcessorError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def sync(
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help=f"Config file (default: {get_config_path()}).",
        ),
    ] = None,
    local: Annotated[
        Path | None,
        typer.Option("--local", "-l", help="Local mirror root directory."),
    ] = None,
    remote: Annotated[
        str | None,
        typer.Option("--remote", "-r", help="Remote repository base URL."),
    ] = None,
    source: Annotated[
        Path | None,
        typer.Option("--source", "-s", help="Directory receiving the expanded archives."),
    ] = None,
    processor: Annotated[
        str | None,
        typer.Option(
            "--processor",
            "-p",
            help="Processor factory as 'module:attribute' (default: expand only).",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Scan the package index even if unchanged."),
    ] = False,
    force_expand: Annotated[
        bool,
        typer.Option("--force-expand", help="Discard and re-expand every archive."),
    ] = False,
    check_expand: Annotated[
        bool,
        typer.Option("--check-expand", help="Expand any archive lacking an expansion."),
    ] = False,
    force_processor: Annotated[
        bool,
        typer.Option("--force-processor", help="Run the processor even without changes."),
    ] = False,
    exact_mirror: Annotated[
        bool,
        typer.Option("--exact-mirror", help="Also remove untracked dotfiles."),
    ] = False,
    trace: Annotated[
        bool,
        typer.Option("--trace", "-t", help="Print progress while running."),
    ] = False,
) -> None:
    """Update the local mirror and process what changed.

    Phases:
      1. Flush expansions (--force-expand)
      2. Mirror the index files, then every indexed archive
      3. Expand new archives and remove files dropped upstream
      4. Expand archives lacking an expansion (--check-expand)
      5. Run the processor if anything changed (or --force-processor)
    """
    # Flags only override the config file when given
    overrides: dict[str, Any] = {
        "local": local,
        "remote": remote,
        "source": source,
        "force": force or None,
        "force_expand": force_expand or None,
        "check_expand": check_expand or None,
        "force_processor": force_processor or None,
        "exact_mirror": exact_mirror or None,
        "trace": trace or None,
    }

    config = _resolve_config(config_path, overrides)
    downstream = _resolve_processor(config, processor)

    try:
        runner = CPANProcessor(config, downstream)
    except ProcessorError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_info(f"Synchronizing {config.local} from {config.remote}")
    result = runner.run()
    print_run_summary(result)

    if not result.success:
        raise typer.Exit(code=1)
