"""Optional line-oriented reports written during expansion.

Two reports are supported: archive warnings (every archive the
extraction collaborator had trouble with, plus the problem) and archives
that ship a Build.PL without a Makefile.PL.
"""

import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Protocol

from cpanproc import __version__

_BUILD_PL = re.compile(r"\bBuild\.PL$", re.IGNORECASE)
_MAKEFILE_PL = re.compile(r"\bMakefile\.PL$", re.IGNORECASE)

_RULE = "-" * 64


class ReportSink(Protocol):
    """Anything that accepts report lines."""

    def write_line(self, line: str) -> None:
        """Append one line of text to the report."""
        ...


class TextReport:
    """A report file opened for writing with a short header block.

    Args:
        path: Report file to create (truncated if it exists).
        title: First header line.
        description: Lines explaining what the report lists.

    Raises:
        OSError: If the file cannot be opened.
    """

    def __init__(self, path: Path, title: str, description: Iterable[str]) -> None:
        self.path = path
        self._handle = path.open("w", encoding="utf-8")
        generated = datetime.now().strftime("%a %b %d %H:%M:%S %Y")
        self.write_line(title)
        self.write_line(f"(Generated by cpanproc {__version__} at {generated})")
        self.write_line("")
        for line in description:
            self.write_line(line)
        self.write_line(_RULE)
        self.write_line("")

    @property
    def closed(self) -> bool:
        """Check if the report file has been closed."""
        return self._handle.closed

    def write_line(self, line: str) -> None:
        """Append one line to the report."""
        self._handle.write(f"{line}\n")

    def close(self) -> None:
        """Flush and close the report file."""
        if not self._handle.closed:
            self._handle.close()

    def __enter__(self) -> "TextReport":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def open_archive_warning_report(path: Path) -> TextReport:
    """Create the archive warnings report."""
    return TextReport(
        path,
        "Archive Warnings and Errors Report",
        (
            "This report outlines all .tar.gz files in the mirror that",
            "failed or raised a warning while being listed, opened, or",
            "having a member extracted.",
        ),
    )


def open_missing_makefile_report(path: Path) -> TextReport:
    """Create the missing Makefile.PL report."""
    return TextReport(
        path,
        "Report: Has Build.PL without a Makefile.PL",
        (
            "This report outlines all .tar.gz files in the mirror that",
            "had a new-style Build.PL but did not have a Makefile.PL,",
            "which is needed for compatibility with older installers.",
        ),
    )


def has_missing_makefile(members: Iterable[str]) -> bool:
    """Check if an archive has a Build.PL but no Makefile.PL."""
    has_build = False
    for member in members:
        if _MAKEFILE_PL.search(member):
            return False
        if _BUILD_PL.search(member):
            has_build = True
    return has_build
