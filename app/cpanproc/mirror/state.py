"""Per-run mirror state tracking.

This module provides the MirrorStateTracker, which records for every
local file referenced during a synchronization run whether it was merely
checked or actually mirrored. Files the tracker never saw are the ones
the reconciliation sweep removes.
"""

import logging
from pathlib import Path

from cpanproc.core.paths import canonical
from cpanproc.mirror.models import MirrorState

logger = logging.getLogger(__name__)


class MirrorStateTracker:
    """Tri-state bookkeeping for local mirror files, scoped to one run.

    Keys are canonical local paths. Absent keys are UNSEEN. State only
    ever increases: UNSEEN < CHECKED < MIRRORED.

    Example:
        >>> tracker = MirrorStateTracker()
        >>> tracker.mark_checked("/srv/minicpan/authors/id/A/AA/AUTH/CHECKSUMS")
        >>> tracker.should_attempt_fetch("/srv/minicpan/authors/id/A/AA/AUTH/CHECKSUMS")
        True
    """

    def __init__(self) -> None:
        self._states: dict[str, MirrorState] = {}

    def reset(self) -> None:
        """Forget all state, starting a new run."""
        self._states.clear()

    def mark_checked(self, path: Path | str) -> None:
        """Record that a local copy was kept without fetching.

        No-op if the path is already CHECKED or MIRRORED.

        Args:
            path: Local file path.
        """
        key = canonical(path)
        if self._states.get(key, MirrorState.UNSEEN) == MirrorState.UNSEEN:
            self._states[key] = MirrorState.CHECKED

    def mark_mirrored(self, path: Path | str) -> None:
        """Record that a fetch was attempted for this path.

        Args:
            path: Local file path.
        """
        self._states[canonical(path)] = MirrorState.MIRRORED

    def state_of(self, path: Path | str) -> MirrorState:
        """Get the current state of a path (UNSEEN if never referenced)."""
        return self._states.get(canonical(path), MirrorState.UNSEEN)

    def should_attempt_fetch(self, path: Path | str) -> bool:
        """Check whether a fetch for this path may still be performed this run."""
        return self.state_of(path) < MirrorState.MIRRORED

    def is_tracked(self, path: Path | str) -> bool:
        """Check whether a path survives the end-of-run sweep."""
        return self.state_of(path) > MirrorState.UNSEEN
