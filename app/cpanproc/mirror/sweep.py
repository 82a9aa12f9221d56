"""End-of-run reconciliation of the local mirror tree.

After every index entry has been mirrored or checked, any regular file
in the mirror root that the state tracker never saw is no longer listed
upstream and is removed, together with its expansion directory.
"""

import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path

from cpanproc.core.paths import relative_to_root
from cpanproc.filesystem.operator import FilesystemOperator
from cpanproc.mirror.state import MirrorStateTracker
from cpanproc.utils.formatting import Tracer

logger = logging.getLogger(__name__)

# Called with the mirror-relative path of a file about to be removed.
CleanHook = Callable[[str], object]


class ReconciliationSweep:
    """Deletes mirror files left UNSEEN by a synchronization run.

    Args:
        local_root: Mirror root directory.
        tracker: State tracker holding the settled state of the run.
        exact_mirror: If True, dotfiles are removed like any other file.
        on_file_cleaned: Hook invoked before each file is removed.
        operator: Deletion operator (defaults to one rooted at local_root).
        trace: Progress sink.
    """

    def __init__(
        self,
        local_root: Path,
        tracker: MirrorStateTracker,
        *,
        exact_mirror: bool = False,
        on_file_cleaned: CleanHook | None = None,
        operator: FilesystemOperator | None = None,
        trace: Tracer | None = None,
    ) -> None:
        self._root = Path(os.path.abspath(local_root))
        self._tracker = tracker
        self._exact_mirror = exact_mirror
        self._on_file_cleaned = on_file_cleaned
        self._operator = operator if operator is not None else FilesystemOperator(self._root)
        self._trace = trace if trace is not None else Tracer()

    def is_exempt(self, path: Path) -> bool:
        """Check if an untracked file is kept anyway.

        Dotfiles (local bookkeeping, editor files, in-flight downloads)
        survive unless exact mirroring is requested.
        """
        if self._exact_mirror:
            return False
        return path.name.startswith(".")

    def iter_files(self) -> Iterator[Path]:
        """Yield every regular file below the mirror root in sorted order."""
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                if path.is_file():
                    yield path

    def sweep(self) -> int:
        """Remove untracked, non-exempt files.

        Deletion failures are logged and do not stop the sweep.

        Returns:
            Number of files removed.
        """
        removed = 0
        for path in self.iter_files():
            if self._tracker.is_tracked(path) or self.is_exempt(path):
                continue

            relative = relative_to_root(self._root, path)
            if self._on_file_cleaned is not None:
                self._on_file_cleaned(relative)

            result = self._operator.delete_path(path)
            if result.success:
                removed += 1
                self._trace(f"{relative} ... removed")
            else:
                logger.warning("Cannot remove %s: %s", path, result.error)
                self._trace(f"{relative} ... cannot remove: {result.error}")

        return removed
