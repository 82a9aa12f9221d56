"""Streaming parser for the package listing index.

The index (``modules/02packages.details.txt.gz``) is a gzip-compressed
text file: a block of ``Key: value`` header lines, one blank line, then
one ``module version path`` line per indexed module. It lists hundreds of
thousands of entries, so it is read as a line stream and never held in
memory.
"""

import gzip
import logging
import zlib
from collections.abc import Iterable, Iterator
from pathlib import Path, PurePosixPath

from cpanproc.core.errors import IndexUnavailableError
from cpanproc.mirror.models import IndexRecord

logger = logging.getLogger(__name__)

PACKAGE_INDEX = "modules/02packages.details.txt.gz"


def _is_safe_path(path: str) -> bool:
    """Check that an archive path stays below authors/id."""
    candidate = PurePosixPath(path)
    return not candidate.is_absolute() and ".." not in candidate.parts


def parse_index_lines(lines: Iterable[str]) -> Iterator[IndexRecord]:
    """Parse decompressed index lines into records.

    Lines are header until the first blank line; after that every
    non-empty line must hold exactly three whitespace-separated fields.
    Malformed data lines and paths leaving the archive tree are logged
    and skipped.

    Args:
        lines: Decompressed text lines (with or without newlines).

    Yields:
        IndexRecord for each well-formed data line.
    """
    in_header = True
    for line_num, line in enumerate(lines, start=1):
        if in_header:
            if not line.strip():
                in_header = False
            continue

        fields = line.split()
        if not fields:
            continue
        if len(fields) != 3:
            logger.warning("Skipping malformed index line %d: %r", line_num, line.rstrip())
            continue

        module, version, path = fields
        if not _is_safe_path(path):
            logger.warning("Skipping index line %d with unsafe path: %r", line_num, path)
            continue
        yield IndexRecord(module=module, version=version, path=path)


def iter_package_index(path: Path) -> Iterator[IndexRecord]:
    """Stream records from a gzip-compressed package index file.

    Args:
        path: Local path of the compressed index.

    Yields:
        IndexRecord for each data line.

    Raises:
        IndexUnavailableError: If the file is missing, is not gzip data,
            or is truncated.
    """
    try:
        with gzip.open(path, mode="rt", encoding="utf-8", errors="replace") as f:
            yield from parse_index_lines(f)
    except (OSError, EOFError, zlib.error) as e:
        msg = f"Cannot open details: {path}: {e}"
        raise IndexUnavailableError(msg) from e
