"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich, and the
Tracer used by the mirror and expansion components to report progress.
"""

import logging
import sys

from rich.console import Console
from rich.theme import Theme

logger = logging.getLogger(__name__)

_THEME = Theme(
    {
        "text": "#ffffff",
        "muted": "#b2bec3",
        "header": "#69B9A1",
        "bold_header": "bold #69B9A1",
        "border": "#29526d",
        "success": "#03b971",
        "warning": "#f5b332",
        "error": "bold #f53263",
        "info": "#0ec1c8",
        "added": "#c1ff62",
        "removed": "#f53263",
        "dim": "#b2bec3",
    }
)


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances
console = Console(theme=_THEME, color_system=_detect_color_system())
err_console = Console(theme=_THEME, stderr=True, color_system=_detect_color_system())


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")


class Tracer:
    """Progress sink for a synchronization run.

    Messages always go to the debug log. When tracing is enabled they are
    also printed to the shared console, without markup interpretation
    since they carry file names.

    Args:
        enabled: Print trace messages to the console.
        target: Console to print to (defaults to the shared console).
    """

    def __init__(self, enabled: bool = False, target: Console | None = None) -> None:
        self.enabled = enabled
        self._console = target if target is not None else console

    def __call__(self, message: str) -> None:
        logger.debug("%s", message)
        if self.enabled:
            self._console.print(message, markup=False, highlight=False, style="muted")
