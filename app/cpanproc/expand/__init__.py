"""Archive expansion module.

This module provides tarball listing and member extraction, the
ArchiveExpander that maintains the derived source tree, and the optional
text reports written while expanding.
"""

from cpanproc.expand.archive import ARCHIVE_SUFFIX, TarArchive, list_archive
from cpanproc.expand.expander import ArchiveExpander
from cpanproc.expand.models import ArchiveJob, ExtractResult, ExtractStatus, ListingResult
from cpanproc.expand.reports import (
    ReportSink,
    TextReport,
    has_missing_makefile,
    open_archive_warning_report,
    open_missing_makefile_report,
)

__all__ = [
    "ARCHIVE_SUFFIX",
    "ArchiveExpander",
    "ArchiveJob",
    "ExtractResult",
    "ExtractStatus",
    "ListingResult",
    "ReportSink",
    "TarArchive",
    "TextReport",
    "has_missing_makefile",
    "list_archive",
    "open_archive_warning_report",
    "open_missing_makefile_report",
]
