"""Expansion domain models.

This module defines the unit of expansion work and the structured
results returned by the archive extraction collaborator.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ExtractStatus(str, Enum):
    """Outcome class of an archive operation.

    Attributes:
        OK: The operation succeeded.
        WARNING: The archive library reported a recoverable problem; the
            affected item is unusable but the archive may still be read.
        FATAL: The archive cannot be used at all.
    """

    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class ExtractResult:
    """Result of opening an archive or extracting one member.

    Attributes:
        status: Outcome class.
        message: Problem description (None when status is OK).
    """

    status: ExtractStatus = ExtractStatus.OK
    message: str | None = None

    @property
    def ok(self) -> bool:
        """Check if the operation succeeded."""
        return self.status == ExtractStatus.OK


@dataclass(frozen=True, slots=True)
class ListingResult:
    """Result of listing archive members.

    Attributes:
        members: Member names in archive order (possibly partial on WARNING).
        status: Outcome class.
        message: Problem description (None when status is OK).
    """

    members: tuple[str, ...] = ()
    status: ExtractStatus = ExtractStatus.OK
    message: str | None = None

    @property
    def ok(self) -> bool:
        """Check if the archive was listed completely."""
        return self.status == ExtractStatus.OK


@dataclass(frozen=True, slots=True)
class ArchiveJob:
    """One archive scheduled for expansion.

    Attributes:
        mirror_relative_path: Archive path relative to the mirror root.
        local_archive_file: Archive file in the mirror.
        derived_target_dir: Directory receiving the extracted members.
    """

    mirror_relative_path: str
    local_archive_file: Path
    derived_target_dir: Path
