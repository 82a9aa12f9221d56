"""Mirror domain models.

This module defines the data structures shared by the transport, the
state tracker, and the index synchronizer: the per-file mirror state,
fetch outcomes, and parsed package index records.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum


class MirrorState(IntEnum):
    """Per-run state of a local mirror file.

    States are ordered and only ever increase within a run.

    Attributes:
        UNSEEN: Not referenced during this run; deleted by the sweep.
        CHECKED: Local copy exists and was kept without a fetch.
        MIRRORED: A fetch was attempted this run.
    """

    UNSEEN = 0
    CHECKED = 1
    MIRRORED = 2


class FetchStatus(str, Enum):
    """Outcome of a conditional fetch.

    Attributes:
        UPDATED: New content was downloaded.
        NOT_MODIFIED: The local copy is current.
        FAILED: The fetch did not complete.
    """

    UPDATED = "updated"
    NOT_MODIFIED = "not_modified"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Result of a single conditional fetch.

    Attributes:
        status: Fetch outcome.
        reason: Failure description (None unless status is FAILED).
    """

    status: FetchStatus
    reason: str | None = None

    @property
    def failed(self) -> bool:
        """Check if the fetch failed."""
        return self.status == FetchStatus.FAILED

    @property
    def updated(self) -> bool:
        """Check if new content was written."""
        return self.status == FetchStatus.UPDATED


@dataclass(frozen=True, slots=True)
class IndexRecord:
    """One data line of the package listing index.

    Attributes:
        module: Module name (e.g., "Foo::Bar").
        version: Module version string as listed.
        path: Archive path relative to ``authors/id``.
    """

    module: str
    version: str
    path: str

    def __post_init__(self) -> None:
        """Validate record data after initialization."""
        if not self.path:
            msg = "Index record path cannot be empty"
            raise ValueError(msg)

    @property
    def mirror_path(self) -> str:
        """Path of the archive relative to the repository root."""
        return f"authors/id/{self.path}"
