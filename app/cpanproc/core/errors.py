"""Exception hierarchy for fatal run errors.

Soft failures (single fetch, extraction, or deletion problems) are logged
where they occur and never raise past the component that detected them.
Everything defined here aborts the current run.
"""

import re

# Trailing location details appended by some error sources, e.g.
# "... at /opt/cpanproc/mirror.py line 42." or "... (synchronizer.py:118)".
_LOCATION_SUFFIX = re.compile(r"(?:\s+at\s+\S+\s+line\s+\d+.*|\s*\(\S+\.py:\d+\))\s*$", re.DOTALL)


class CPANProcessorError(Exception):
    """Base exception for all fatal cpanproc errors."""


class ProcessorError(CPANProcessorError):
    """Raised when a processor cannot be constructed from its collaborators."""


class IndexUnavailableError(CPANProcessorError):
    """Raised when the package listing index cannot be opened."""


class ExpansionError(CPANProcessorError):
    """Raised when the derived expansion tree cannot be maintained."""


def normalize_error(message: str) -> str:
    """Strip environment-specific location suffixes from an error message.

    Args:
        message: Raw error message.

    Returns:
        The message without trailing location details or whitespace.
    """
    return _LOCATION_SUFFIX.sub("", message.strip()).strip()
