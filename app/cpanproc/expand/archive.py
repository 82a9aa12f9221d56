"""Tarball access for archive expansion.

Wraps ``tarfile`` so that every operation returns an ExtractResult or
ListingResult instead of raising. Problems the library signals while
reading a damaged or unusual archive become WARNING results the caller
can log and skip, and archives that cannot be read at all become FATAL.
"""

import logging
import os
import shutil
import tarfile
import zlib
from pathlib import Path
from types import TracebackType

from cpanproc.expand.models import ExtractResult, ExtractStatus, ListingResult

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"

# Errors tarfile and its gzip layer raise on damaged input.
_READ_ERRORS = (tarfile.TarError, EOFError, zlib.error, OSError)


def list_archive(path: Path) -> ListingResult:
    """List the member names of a gzip-compressed tarball.

    Args:
        path: Archive file.

    Returns:
        ListingResult with all names (OK), the names read before the
        archive turned out to be damaged (WARNING), or nothing (FATAL).
    """
    try:
        tar = tarfile.open(path, mode="r:gz")
    except _READ_ERRORS as e:
        return ListingResult(status=ExtractStatus.FATAL, message=f"Cannot open {path}: {e}")

    names: list[str] = []
    try:
        with tar:
            for member in tar:
                names.append(member.name)
    except _READ_ERRORS as e:
        return ListingResult(
            members=tuple(names),
            status=ExtractStatus.WARNING if names else ExtractStatus.FATAL,
            message=f"Damaged archive {path}: {e}",
        )

    return ListingResult(members=tuple(names))


class TarArchive:
    """Random-access extraction of individual tarball members.

    Use as a context manager so the underlying file is released even
    when extraction of some members fails.

    Example:
        >>> with TarArchive(Path("Foo-1.0.tar.gz")) as archive:
        ...     if archive.open().ok:
        ...         archive.extract_member("Foo-1.0/lib/Foo.pm", Path("out/Foo.pm"))

    Args:
        path: Archive file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._tar: tarfile.TarFile | None = None

    def open(self) -> ExtractResult:
        """Open the archive and read its member table."""
        try:
            self._tar = tarfile.open(self._path, mode="r:gz")
            self._tar.getmembers()
        except _READ_ERRORS as e:
            self.close()
            return ExtractResult(ExtractStatus.FATAL, f"Cannot open {self._path}: {e}")
        return ExtractResult()

    def extract_member(self, name: str, destination: Path) -> ExtractResult:
        """Extract a single regular-file member to an explicit destination.

        The destination's parent directory must already exist.

        Args:
            name: Member name as listed.
            destination: Target file path.

        Returns:
            ExtractResult; WARNING for missing, non-regular, or unreadable
            members.
        """
        if self._tar is None:
            return ExtractResult(ExtractStatus.FATAL, f"Archive {self._path} is not open")

        try:
            member = self._tar.getmember(name)
        except KeyError:
            return ExtractResult(ExtractStatus.WARNING, f"No such member: {name}")

        if not member.isfile():
            return ExtractResult(ExtractStatus.WARNING, f"Not a regular file: {name}")

        try:
            source = self._tar.extractfile(member)
            if source is None:
                return ExtractResult(ExtractStatus.WARNING, f"Cannot read member: {name}")
            with source, destination.open("wb") as out:
                shutil.copyfileobj(source, out)
            os.utime(destination, (member.mtime, member.mtime))
        except _READ_ERRORS as e:
            return ExtractResult(ExtractStatus.WARNING, f"Cannot extract {name}: {e}")

        return ExtractResult()

    def close(self) -> None:
        """Release the archive file."""
        if self._tar is not None:
            try:
                self._tar.close()
            except OSError as e:
                logger.debug("Closing %s failed: %s", self._path, e)
            self._tar = None

    def __enter__(self) -> "TarArchive":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
