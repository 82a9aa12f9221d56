"""Local mirror maintenance.

This module provides the conditional-fetch transport, per-run state
tracking, package index streaming, the index synchronizer, and the
end-of-run reconciliation sweep.
"""

from cpanproc.mirror.index import PACKAGE_INDEX, iter_package_index, parse_index_lines
from cpanproc.mirror.models import FetchResult, FetchStatus, IndexRecord, MirrorState
from cpanproc.mirror.state import MirrorStateTracker
from cpanproc.mirror.sweep import ReconciliationSweep
from cpanproc.mirror.synchronizer import INDEX_FILES, IndexSynchronizer
from cpanproc.mirror.transport import HttpTransport, Transport

__all__ = [
    "INDEX_FILES",
    "PACKAGE_INDEX",
    "FetchResult",
    "FetchStatus",
    "HttpTransport",
    "IndexRecord",
    "IndexSynchronizer",
    "MirrorState",
    "MirrorStateTracker",
    "ReconciliationSweep",
    "Transport",
    "iter_package_index",
    "parse_index_lines",
]
