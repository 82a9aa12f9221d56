"""Index-driven mirror synchronization.

Fetches the top-level repository indices, streams the package listing,
mirrors every accepted archive together with its author's CHECKSUMS file,
and finally sweeps away whatever the run did not touch.

Expansion of mirrored archives is not part of this module. It is
attached through the ``on_file_mirrored`` and ``on_file_cleaned`` hooks.
"""

import logging
import os
import posixpath
from collections.abc import Callable
from pathlib import Path
from urllib.parse import quote, urljoin

from cpanproc.core.errors import ExpansionError, IndexUnavailableError
from cpanproc.core.filters import IndexEntryFilter
from cpanproc.core.paths import local_path_for
from cpanproc.mirror.index import PACKAGE_INDEX, iter_package_index
from cpanproc.mirror.state import MirrorStateTracker
from cpanproc.mirror.sweep import CleanHook, ReconciliationSweep
from cpanproc.mirror.transport import Transport
from cpanproc.utils.formatting import Tracer

logger = logging.getLogger(__name__)

INDEX_FILES: tuple[str, ...] = (
    "authors/01mailrc.txt.gz",
    PACKAGE_INDEX,
    "modules/03modlist.data.gz",
)

AUTHORS_ID = "authors/id/"
CHECKSUMS = "CHECKSUMS"

# Called with the mirror-relative path of every file kept by the run.
# Returning False aborts the run.
MirrorHook = Callable[[str], bool]


class IndexSynchronizer:
    """Keeps a local mirror root in step with a remote repository.

    Args:
        local_root: Mirror root directory.
        remote: Base URL of the remote repository.
        transport: Conditional-fetch transport.
        tracker: Per-run state tracker (a fresh one by default).
        entry_filter: Filter deciding which index entries are skipped.
        force: Scan the package index even when no index file changed.
        exact_mirror: Let the sweep remove dotfiles too.
        on_file_mirrored: Hook called for every mirrored or checked file.
        on_file_cleaned: Hook called before the sweep removes a file.
        trace: Progress sink.
    """

    def __init__(
        self,
        local_root: Path,
        remote: str,
        transport: Transport,
        tracker: MirrorStateTracker | None = None,
        *,
        entry_filter: IndexEntryFilter | None = None,
        force: bool = False,
        exact_mirror: bool = False,
        on_file_mirrored: MirrorHook | None = None,
        on_file_cleaned: CleanHook | None = None,
        trace: Tracer | None = None,
    ) -> None:
        self._root = Path(os.path.abspath(local_root))
        self._remote = remote if remote.endswith("/") else f"{remote}/"
        self._transport = transport
        self._tracker = tracker if tracker is not None else MirrorStateTracker()
        self._filter = entry_filter if entry_filter is not None else IndexEntryFilter()
        self._force = force
        self._on_file_mirrored = on_file_mirrored
        self._trace = trace if trace is not None else Tracer()
        self._sweep = ReconciliationSweep(
            self._root,
            self._tracker,
            exact_mirror=exact_mirror,
            on_file_cleaned=on_file_cleaned,
            trace=self._trace,
        )
        self._changes = 0
        self.cleaned = 0

    @property
    def tracker(self) -> MirrorStateTracker:
        """The state tracker for the current run."""
        return self._tracker

    @property
    def local_root(self) -> Path:
        """The mirror root directory."""
        return self._root

    def remote_url(self, path: str) -> str:
        """Resolve a repository-relative path against the remote base URL."""
        return urljoin(self._remote, quote(path))

    def local_file(self, path: str) -> Path:
        """Map a repository-relative path onto the mirror root."""
        return local_path_for(self._root, path)

    def synchronize(self) -> int:
        """Bring the mirror up to date with the remote package index.

        Returns:
            Number of files actually downloaded during this call.

        Raises:
            IndexUnavailableError: If the package index cannot be read.
            ExpansionError: If the mirror hook reports a fatal failure.
        """
        self._changes = 0
        self.cleaned = 0

        self.mirror_indices()

        index_path = self.local_file(PACKAGE_INDEX)
        if not index_path.is_file():
            msg = f"Cannot open details: {index_path}: package index was not mirrored"
            raise IndexUnavailableError(msg)

        if not self._changes and not self._force:
            self._trace("Indices unchanged, mirror is up to date")
            return 0

        accepted = 0
        rejected = 0
        for record in iter_package_index(index_path):
            if self._filter.rejects(record):
                rejected += 1
                continue
            accepted += 1
            self.mirror_file(record.mirror_path, skip_if_present=True)

        logger.info("Package index: %d entries mirrored, %d filtered", accepted, rejected)

        self.cleaned = self._sweep.sweep()
        return self._changes

    def mirror_indices(self) -> None:
        """Fetch the top-level repository indices unconditionally."""
        for path in INDEX_FILES:
            self.mirror_file(path)

    def mirror_file(self, path: str, skip_if_present: bool = False) -> bool:
        """Mirror a single repository file.

        A present local file is only marked CHECKED when ``skip_if_present``
        is set. Otherwise a conditional fetch is made at most once per run;
        the path is marked MIRRORED before the attempt, so a failed refresh
        keeps the existing local copy out of the sweep.

        Files under ``authors/id`` also pull in the CHECKSUMS file of their
        directory, re-fetched whenever the file itself changed.

        Args:
            path: Repository-relative path.
            skip_if_present: Keep an existing local copy without fetching.

        Returns:
            False if the fetch failed, True otherwise.

        Raises:
            ExpansionError: If the mirror hook reports a fatal failure.
        """
        local_file = self.local_file(path)
        checksum_current = True

        if skip_if_present and local_file.is_file():
            self._tracker.mark_checked(local_file)
        elif self._tracker.should_attempt_fetch(local_file):
            self._tracker.mark_mirrored(local_file)
            url = self.remote_url(path)
            result = self._transport.fetch(url, local_file)

            if result.updated:
                checksum_current = False
                self._changes += 1
                self._trace(f"{path} ... updated")
            elif result.failed:
                logger.warning("%s: %s", url, result.reason)
                self._trace(f"{path} ... failed: {result.reason}")
                return False
            else:
                self._trace(f"{path} ... up to date")

        if path.startswith(AUTHORS_ID):
            checksum_path = posixpath.join(posixpath.dirname(path), CHECKSUMS)
            if checksum_path != path:
                self.mirror_file(checksum_path, skip_if_present=checksum_current)

        if self._on_file_mirrored is not None and not self._on_file_mirrored(path):
            msg = f"Expansion of {path} failed"
            raise ExpansionError(msg)

        return True
