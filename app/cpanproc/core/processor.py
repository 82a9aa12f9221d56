"""Top-level run orchestration.

The CPANProcessor wires a state tracker, the index synchronizer, and the
archive expander together, runs the phases of one invocation in their
fixed order, and hands the derived tree to the downstream processor when
anything changed:

    flush expansions (force_expand) -> synchronize mirror (expanding
    archives as they arrive, sweeping at the end) -> expansion check
    (check_expand) -> downstream run()
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from cpanproc.core.config import ProcessorConfig
from cpanproc.core.downstream import SourceProcessor
from cpanproc.core.errors import CPANProcessorError, ProcessorError, normalize_error
from cpanproc.core.paths import is_writable_dir
from cpanproc.expand.expander import ArchiveExpander
from cpanproc.expand.reports import (
    TextReport,
    open_archive_warning_report,
    open_missing_makefile_report,
)
from cpanproc.mirror.state import MirrorStateTracker
from cpanproc.mirror.synchronizer import IndexSynchronizer
from cpanproc.mirror.transport import HttpTransport, Transport
from cpanproc.utils.formatting import Tracer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunResult:
    """Outcome of one processor run.

    Attributes:
        changes: Files downloaded plus archives expanded by the check scan.
        error: Fatal error message, None on success.
        processor_ran: Whether the downstream processor was started.
        expanded: Archives expanded during the run.
        cleaned: Mirror files removed by the sweep.
    """

    changes: int = 0
    error: str | None = None
    processor_ran: bool = False
    expanded: int = 0
    cleaned: int = 0

    @property
    def success(self) -> bool:
        """Check if the run completed without a fatal error."""
        return self.error is None


class CPANProcessor:
    """Mirrors a repository, expands its archives, and runs a processor.

    Args:
        config: Validated processor configuration.
        processor: Downstream processor whose source directory receives
            the expanded archives.
        transport: Conditional-fetch transport (HTTP by default).
        tracer: Progress sink (follows ``config.trace`` by default).

    Raises:
        ProcessorError: If the processor, the local mirror, the remote,
            or a report file fails validation.
    """

    def __init__(
        self,
        config: ProcessorConfig,
        processor: SourceProcessor,
        *,
        transport: Transport | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        if not isinstance(processor, SourceProcessor) or not callable(processor.run):
            msg = "'processor' param missing or not a SourceProcessor object"
            raise ProcessorError(msg)
        if not is_writable_dir(Path(processor.source)):
            msg = "Processor source directory is not writable"
            raise ProcessorError(msg)
        if not is_writable_dir(config.local):
            msg = f"no write permission to local mirror {config.local}"
            raise ProcessorError(msg)

        if transport is None:
            transport = HttpTransport(timeout=(10.0, config.timeout), dirmode=config.dirmode)
        if not transport.probe(config.remote):
            msg = f"unable to contact the remote mirror {config.remote}"
            raise ProcessorError(msg)

        self._config = config
        self._processor = processor
        self._trace = tracer if tracer is not None else Tracer(config.trace)
        self._warning_report: TextReport | None = None
        self._missing_makefile_report: TextReport | None = None
        self._open_reports()
        self._last_error: str | None = None

        self._tracker = MirrorStateTracker()
        self._expander = ArchiveExpander(
            config.local,
            Path(processor.source),
            member_filter=config.member_filter(),
            dirmode=config.dirmode,
            warning_report=self._warning_report,
            missing_makefile_report=self._missing_makefile_report,
            trace=self._trace,
        )
        self._synchronizer = IndexSynchronizer(
            config.local,
            config.remote,
            transport,
            self._tracker,
            entry_filter=config.index_filter(),
            force=config.force,
            exact_mirror=config.exact_mirror,
            on_file_mirrored=self._expander.on_file_mirrored,
            on_file_cleaned=self._expander.on_file_cleaned,
            trace=self._trace,
        )

    @property
    def config(self) -> ProcessorConfig:
        """The configuration this processor was built with."""
        return self._config

    @property
    def processor(self) -> SourceProcessor:
        """The downstream processor."""
        return self._processor

    @property
    def tracker(self) -> MirrorStateTracker:
        """The mirror state tracker of the current run."""
        return self._tracker

    @property
    def expander(self) -> ArchiveExpander:
        """The archive expander maintaining the derived tree."""
        return self._expander

    @property
    def last_error(self) -> str | None:
        """Fatal error of the most recent run, None if it succeeded."""
        return self._last_error

    def run(self) -> RunResult:
        """Update the mirror and expansions, then run the processor if needed.

        Returns:
            RunResult with the change count, or the normalized fatal error.
        """
        self._last_error = None
        self._tracker.reset()
        self._expander.expanded = 0

        try:
            self._open_reports()
            self._expander.warning_report = self._warning_report
            self._expander.missing_makefile_report = self._missing_makefile_report
            changes = self._update_mirror()
            if self._config.check_expand and not self._config.force:
                changes += self._check_expansions()
        except (CPANProcessorError, OSError) as e:
            return self._fail(str(e))
        finally:
            self._close_reports()

        expanded = self._expander.expanded
        cleaned = self._synchronizer.cleaned

        if not changes and not self._config.force_processor:
            self._trace("No changes, processor not started")
            return RunResult(changes=0, expanded=expanded, cleaned=cleaned)

        self._trace("Starting processor...")
        self._processor.run()
        return RunResult(
            changes=changes,
            processor_ran=True,
            expanded=expanded,
            cleaned=cleaned,
        )

    def _update_mirror(self) -> int:
        """Flush expansions if requested, then synchronize the mirror."""
        if self._config.force_expand:
            self._trace("Flushing all expansion directories (force_expand enabled)")
            self._expander.flush()

        self._trace("Updating local mirror")
        return self._synchronizer.synchronize()

    def _check_expansions(self) -> int:
        """Expand every mirrored archive that has no expansion directory.

        Returns:
            Number of archives scheduled for expansion.
        """
        self._trace("Tarball expansion checking enabled")
        pending = self._expander.find_unexpanded()
        if not pending:
            self._trace("No tarballs need to be expanded")
            return 0

        self._trace(f"Scheduling {len(pending)} tarballs for expansion")
        for relative_path in pending:
            if not self._expander.expand(relative_path):
                msg = f"Expansion of {relative_path} failed"
                raise ProcessorError(msg)
        return len(pending)

    def _open_reports(self) -> None:
        """Open the configured report files that are not open yet.

        Raises:
            ProcessorError: If a report file cannot be created.
        """
        if self._config.archive_tar_report is not None and (
            self._warning_report is None or self._warning_report.closed
        ):
            try:
                report = open_archive_warning_report(self._config.archive_tar_report)
            except OSError as e:
                msg = f"Failed to open archive_tar_report '{self._config.archive_tar_report}'"
                raise ProcessorError(msg) from e
            self._trace("Generating archive warning report (archive_tar_report provided)")
            self._warning_report = report

        if self._config.missing_makefile_report is not None and (
            self._missing_makefile_report is None or self._missing_makefile_report.closed
        ):
            try:
                report = open_missing_makefile_report(self._config.missing_makefile_report)
            except OSError as e:
                msg = (
                    "Failed to open missing_makefile_report "
                    f"'{self._config.missing_makefile_report}'"
                )
                raise ProcessorError(msg) from e
            self._trace("Generating missing Makefile.PL report (missing_makefile_report provided)")
            self._missing_makefile_report = report

    def _close_reports(self) -> None:
        """Close all open report files."""
        for report in (self._warning_report, self._missing_makefile_report):
            if report is not None:
                report.close()

    def _fail(self, message: str) -> RunResult:
        """Record a fatal error and build the failed result."""
        error = normalize_error(message)
        logger.error("Run aborted: %s", error)
        self._trace(f"Run aborted: {error}")
        self._last_error = error
        return RunResult(
            error=error,
            expanded=self._expander.expanded,
            cleaned=self._synchronizer.cleaned,
        )
