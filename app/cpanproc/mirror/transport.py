"""HTTP transport with conditional fetch semantics.

Fetches a remote resource into a local file only when it changed since
the local copy was written. The local file's mtime is set from the
server's Last-Modified header, so the next run can send an accurate
If-Modified-Since and receive 304 Not Modified for unchanged files.
"""

import logging
import os
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Protocol

import requests

from cpanproc import __version__
from cpanproc.core.paths import DEFAULT_DIRMODE, ensure_dir
from cpanproc.mirror.models import FetchResult, FetchStatus

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 256

# Mirrored files are world-readable regardless of the temp file's mode.
MIRROR_FILE_MODE = 0o644


def _parse_http_date(value: str | None) -> float | None:
    """Parse an HTTP date header into a POSIX timestamp.

    Args:
        value: Header value, or None if the header was absent.

    Returns:
        Timestamp, or None if absent or unparseable.
    """
    if not value:
        return None
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        logger.debug("Could not parse HTTP date %r", value)
        return None


class Transport(Protocol):
    """Interface the synchronizer needs from a transport."""

    def probe(self, url: str) -> bool:
        """Check that a remote location answers."""
        ...

    def fetch(self, url: str, local_path: Path) -> FetchResult:
        """Conditionally fetch ``url`` into ``local_path``."""
        ...


class HttpTransport:
    """Conditional HTTP fetches into a local directory tree.

    Args:
        timeout: Connect/read timeout passed to requests.
        dirmode: Permission bits for directories created for local files.
        session: Optional preconfigured requests session.
    """

    def __init__(
        self,
        *,
        timeout: float | tuple[float, float] = (10.0, 300.0),
        dirmode: int = DEFAULT_DIRMODE,
        session: requests.Session | None = None,
    ) -> None:
        self._timeout = timeout
        self._dirmode = dirmode
        self._session = session if session is not None else requests.Session()
        self._session.headers.setdefault("User-Agent", f"cpanproc/{__version__}")

    def probe(self, url: str) -> bool:
        """Check that a remote location answers at all.

        Args:
            url: Remote URL to probe with a HEAD request.

        Returns:
            True if the server responded with a non-error status.
        """
        try:
            response = self._session.head(url, timeout=self._timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.warning("Liveness probe for %s failed: %s", url, e)
            return False
        return response.ok

    def fetch(self, url: str, local_path: Path) -> FetchResult:
        """Conditionally fetch a remote resource into a local file.

        The body is streamed into a temporary file next to the target and
        moved into place only once complete, so an interrupted download
        never leaves a truncated mirror file behind.

        Args:
            url: Absolute remote URL.
            local_path: Destination file.

        Returns:
            FetchResult with UPDATED, NOT_MODIFIED, or FAILED status.
        """
        headers = {"Accept-Encoding": "identity"}
        if local_path.is_file():
            headers["If-Modified-Since"] = formatdate(local_path.stat().st_mtime, usegmt=True)

        try:
            ensure_dir(local_path.parent, self._dirmode)
        except OSError as e:
            return FetchResult(FetchStatus.FAILED, f"Cannot create {local_path.parent}: {e}")

        tmp_path: Path | None = None
        try:
            with self._session.get(
                url, headers=headers, stream=True, timeout=self._timeout
            ) as response:
                if response.status_code == 304:
                    return FetchResult(FetchStatus.NOT_MODIFIED)
                if response.status_code != 200:
                    reason = f"HTTP {response.status_code} {response.reason or ''}".strip()
                    return FetchResult(FetchStatus.FAILED, reason)

                written = 0
                with NamedTemporaryFile(
                    mode="wb",
                    dir=local_path.parent,
                    prefix=f".{local_path.name}.",
                    suffix=".part",
                    delete=False,
                ) as f:
                    tmp_path = Path(f.name)
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)

                expected = response.headers.get("Content-Length")
                if expected is not None and expected.isdigit() and int(expected) != written:
                    return FetchResult(
                        FetchStatus.FAILED,
                        f"Truncated download: expected {expected} bytes, got {written}",
                    )

                os.chmod(tmp_path, MIRROR_FILE_MODE)
                os.replace(tmp_path, local_path)
                tmp_path = None

                remote_ts = _parse_http_date(response.headers.get("Last-Modified"))
                if remote_ts is not None:
                    os.utime(local_path, (remote_ts, remote_ts))
                return FetchResult(FetchStatus.UPDATED)

        except requests.RequestException as e:
            return FetchResult(FetchStatus.FAILED, str(e))
        except OSError as e:
            return FetchResult(FetchStatus.FAILED, f"Cannot write {local_path}: {e}")
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
