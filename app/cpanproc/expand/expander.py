"""Selective archive expansion into the derived source tree.

Every archive in the mirror has a matching directory in the derived
tree, ``<source>/<mirror-relative archive path>/``, holding the archive
members worth processing. The ArchiveExpander is the only component that
creates or removes anything in that tree.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path

from cpanproc.core.errors import ExpansionError
from cpanproc.core.filters import MemberFilter
from cpanproc.core.paths import (
    DEFAULT_DIRMODE,
    ensure_dir,
    local_path_for,
    relative_to_root,
)
from cpanproc.expand.archive import ARCHIVE_SUFFIX, TarArchive, list_archive
from cpanproc.expand.models import ArchiveJob, ListingResult
from cpanproc.expand.reports import ReportSink, has_missing_makefile
from cpanproc.filesystem.operator import FilesystemOperator
from cpanproc.utils.formatting import Tracer

logger = logging.getLogger(__name__)

# Extracted members are normalized to this mode
MEMBER_FILE_MODE = 0o644


class ArchiveExpander:
    """Keeps the derived source tree in step with the mirror's archives.

    Args:
        local_root: Mirror root directory holding the archives.
        source_root: Derived tree root (the downstream processor's source).
        member_filter: Decides which archive members are extracted.
        dirmode: Permission bits for directories created in the derived tree.
        warning_report: Optional sink for archive problems.
        missing_makefile_report: Optional sink for Build.PL-only archives.
        trace: Progress sink.
        lister: Archive listing function.
        archive_factory: Callable opening an archive for extraction.
    """

    def __init__(
        self,
        local_root: Path,
        source_root: Path,
        *,
        member_filter: MemberFilter | None = None,
        dirmode: int = DEFAULT_DIRMODE,
        warning_report: ReportSink | None = None,
        missing_makefile_report: ReportSink | None = None,
        trace: Tracer | None = None,
        lister: Callable[[Path], ListingResult] = list_archive,
        archive_factory: Callable[[Path], TarArchive] = TarArchive,
    ) -> None:
        self._local_root = Path(os.path.abspath(local_root))
        self._source_root = Path(os.path.abspath(source_root))
        self._member_filter = member_filter if member_filter is not None else MemberFilter()
        self._dirmode = dirmode
        self.warning_report = warning_report
        self.missing_makefile_report = missing_makefile_report
        self._trace = trace if trace is not None else Tracer()
        self._lister = lister
        self._archive_factory = archive_factory
        self._operator = FilesystemOperator(self._source_root)
        self.expanded = 0

    @property
    def source_root(self) -> Path:
        """The derived tree root."""
        return self._source_root

    def job_for(self, relative_path: str) -> ArchiveJob:
        """Build the expansion job for a mirror-relative archive path."""
        return ArchiveJob(
            mirror_relative_path=relative_path,
            local_archive_file=local_path_for(self._local_root, relative_path),
            derived_target_dir=local_path_for(self._source_root, relative_path),
        )

    def needs_expansion(self, relative_path: str) -> bool:
        """Check if an archive has no expansion directory yet."""
        if not relative_path.endswith(ARCHIVE_SUFFIX):
            return False
        return not self.job_for(relative_path).derived_target_dir.is_dir()

    def on_file_mirrored(self, relative_path: str) -> bool:
        """Mirror hook: expand the file if it is an archive not yet expanded.

        Returns:
            False only on an unrecoverable expansion failure.
        """
        if not self.needs_expansion(relative_path):
            return True
        return self.expand(relative_path)

    def on_file_cleaned(self, relative_path: str) -> None:
        """Sweep hook: drop the expansion of a file being removed."""
        self.remove_expansion(relative_path)

    def expand(self, relative_path: str) -> bool:
        """Extract the processable members of an archive.

        Listing and opening problems are soft failures: they are logged
        and reported, nothing is created, and the archive is retried on
        the next run. A failed member is removed and skipped without
        affecting the others.

        Args:
            relative_path: Mirror-relative archive path.

        Returns:
            False if the derived directory could not be created, True
            for success and for handled soft failures.
        """
        if not relative_path.endswith(ARCHIVE_SUFFIX):
            return True

        job = self.job_for(relative_path)

        listing = self._lister(job.local_archive_file)
        if not listing.ok:
            self._soft_failure(relative_path, listing.message or "archive listing failed")
            return True
        if not listing.members:
            self._soft_failure(relative_path, "archive has no members")
            return True

        if self.missing_makefile_report is not None and has_missing_makefile(listing.members):
            self.missing_makefile_report.write_line(relative_path)

        wanted = self._member_filter.select(listing.members)
        if not wanted:
            # Empty directory marks the archive as done for future checks
            try:
                ensure_dir(job.derived_target_dir, self._dirmode)
            except OSError as e:
                logger.error("Cannot create %s: %s", job.derived_target_dir, e)
                return False
            self._trace(f"{relative_path} ... nothing to extract")
            self.expanded += 1
            return True

        self._trace(f"{relative_path} ... expanding {len(wanted)} files")
        with self._archive_factory(job.local_archive_file) as archive:
            opened = archive.open()
            if not opened.ok:
                self._soft_failure(relative_path, opened.message or "archive open failed")
                return True

            for member in wanted:
                self._extract_member(archive, job, member)

        self.expanded += 1
        return True

    def _extract_member(self, archive: TarArchive, job: ArchiveJob, member: str) -> bool:
        """Extract one member into the job's derived directory.

        Returns:
            True if the member was extracted.
        """
        try:
            target = local_path_for(job.derived_target_dir, member)
        except ValueError:
            self._soft_failure(job.mirror_relative_path, f"unsafe member name {member!r}")
            return False

        try:
            ensure_dir(target.parent, self._dirmode)
        except OSError as e:
            self._soft_failure(job.mirror_relative_path, f"cannot create {target.parent}: {e}")
            return False

        result = archive.extract_member(member, target)
        if result.ok:
            try:
                target.chmod(MEMBER_FILE_MODE)
            except OSError as e:
                logger.warning("Cannot set permissions on %s: %s", target, e)
            self._trace(f"    {member} ... extracted")
            return True

        self._trace(f"    {member} ... failed")
        self._soft_failure(job.mirror_relative_path, result.message or f"cannot extract {member}")
        if target.is_file() or target.is_symlink():
            cleanup = self._operator.delete_path(target)
            if not cleanup.success:
                logger.warning("Cannot remove partial file %s: %s", target, cleanup.error)
        return False

    def remove_expansion(self, relative_path: str) -> bool:
        """Remove the derived directory of an archive, if present.

        Failures are logged, not raised.

        Returns:
            False if an existing directory could not be removed.
        """
        derived = self.job_for(relative_path).derived_target_dir
        if not derived.exists() and not derived.is_symlink():
            return True

        result = self._operator.delete_path(derived)
        if not result.success:
            logger.warning("Cannot remove %s: %s", derived, result.error)
            return False
        self._trace(f"{relative_path} ... expansion removed")
        return True

    def flush(self) -> None:
        """Remove every expansion so all archives are expanded afresh.

        Raises:
            ExpansionError: If the previous expansion tree cannot be removed.
        """
        authors_dir = self._source_root / "authors"
        if not authors_dir.exists():
            return

        self._trace(f"Removing {authors_dir}")
        result = self._operator.delete_path(authors_dir)
        if not result.success:
            msg = f"Failed to remove previous expansion directory '{authors_dir}': {result.error}"
            raise ExpansionError(msg)
        self._trace(f"{authors_dir} ... removed")

    def find_unexpanded(self) -> list[str]:
        """List mirrored archives that lack an expansion directory.

        Returns:
            Sorted mirror-relative archive paths.
        """
        archives: list[str] = []
        for dirpath, _dirnames, filenames in os.walk(self._local_root):
            for name in filenames:
                if name.endswith(ARCHIVE_SUFFIX):
                    archives.append(relative_to_root(self._local_root, Path(dirpath) / name))

        self._trace(f"Checking {len(archives)} tarballs")
        return sorted(path for path in archives if self.needs_expansion(path))

    def _soft_failure(self, relative_path: str, message: str) -> None:
        """Log and report a recoverable expansion problem."""
        logger.warning("Expansion of %s failed: %s", relative_path, message)
        self._trace(f"Expansion of {relative_path} failed: {message}")
        if self.warning_report is not None:
            self.warning_report.write_line(relative_path)
            self.warning_report.write_line(message)
