"""Rich display functions for run results."""

from rich.table import Table

from cpanproc.core.processor import RunResult
from cpanproc.utils.formatting import console, print_error, print_success


def create_results_table(result: RunResult) -> Table:
    """Create a Rich table summarizing a processor run.

    Args:
        result: Outcome of the run.

    Returns:
        Rich Table with one row per counter.
    """
    table = Table(
        title="Results",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Phase", no_wrap=True)
    table.add_column("Count", justify="right")

    table.add_row("Changes", f"[added]{result.changes}[/added]")
    table.add_row("Archives expanded", str(result.expanded))
    table.add_row("Files cleaned", f"[removed]{result.cleaned}[/removed]")
    processor = "[success]yes[/success]" if result.processor_ran else "[muted]no[/muted]"
    table.add_row("Processor started", processor)

    return table


def print_run_summary(result: RunResult) -> None:
    """Print the results table and a closing status line.

    Args:
        result: Outcome of the run.
    """
    console.print(create_results_table(result))

    if not result.success:
        print_error(f"Run failed: {result.error}")
    elif result.processor_ran:
        print_success(f"Mirror updated with {result.changes} change(s); processor finished.")
    else:
        print_success("Mirror is up to date. Nothing to process.")
