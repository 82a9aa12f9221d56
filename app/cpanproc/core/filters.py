"""Reject-if-matched filters for index entries and archive members.

Filters are supplied once through configuration as a single pattern or a
list of patterns. They are normalized into an ordered tuple of compiled
regular expressions at load time, so matching never has to branch on the
shape of the configured value.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cpanproc.mirror.models import IndexRecord

# Perl core distributions and relatives that a processor has no use for.
PERL_DISTRIBUTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"/(?:emb|syb|bio)*perl-\d", re.IGNORECASE),
    re.compile(r"/(?:parrot|ponie)-\d", re.IGNORECASE),
    re.compile(r"/\bperl5\.0", re.IGNORECASE),
)

# Archive members worth extracting for processing.
PROCESSABLE_MEMBER = re.compile(r"\.(?:pm|pl|t)$")


def compile_patterns(value: object, name: str = "filter") -> list[re.Pattern[str]]:
    """Normalize a configured filter value into compiled patterns.

    Accepts None, a pattern string, a compiled pattern, or a list/tuple
    mixing those. Order is preserved.

    Args:
        value: Raw configured value.
        name: Name of the option, used in error messages.

    Returns:
        List of compiled patterns (empty when nothing is configured).

    Raises:
        ValueError: If the value has the wrong shape or a pattern is invalid.
    """
    if value is None:
        return []
    if isinstance(value, str | re.Pattern):
        items: list[object] = [value]
    elif isinstance(value, list | tuple):
        items = list(value)
    else:
        msg = f"{name} must be a pattern or a list of patterns, got {type(value).__name__}"
        raise ValueError(msg)

    patterns: list[re.Pattern[str]] = []
    for item in items:
        if isinstance(item, re.Pattern):
            if not isinstance(item.pattern, str):
                msg = f"{name} can only contain text patterns"
                raise ValueError(msg)
            patterns.append(item)
        elif isinstance(item, str):
            try:
                patterns.append(re.compile(item))
            except re.error as e:
                msg = f"{name} contains an invalid pattern {item!r}: {e}"
                raise ValueError(msg) from e
        else:
            msg = f"{name} can only contain patterns, got {type(item).__name__}"
            raise ValueError(msg)
    return patterns


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """An immutable set of reject-if-matched patterns.

    Attributes:
        patterns: Compiled patterns, checked in order with ``re.search``.
    """

    patterns: tuple[re.Pattern[str], ...] = ()

    @classmethod
    def from_patterns(cls, patterns: Iterable[re.Pattern[str] | str]) -> FilterSpec:
        """Build a FilterSpec from compiled patterns or pattern strings."""
        return cls(tuple(compile_patterns(list(patterns))))

    def matches(self, candidate: str) -> bool:
        """Check whether any pattern matches the candidate string."""
        return any(pattern.search(candidate) for pattern in self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)


@dataclass(frozen=True, slots=True)
class IndexEntryFilter:
    """Decides which package index entries are skipped entirely.

    Attributes:
        skip_perl: Reject perl core distributions and their relatives.
        path_filters: Patterns checked against the archive path.
        module_filters: Patterns checked against the module name.
    """

    skip_perl: bool = False
    path_filters: FilterSpec = field(default_factory=FilterSpec)
    module_filters: FilterSpec = field(default_factory=FilterSpec)

    def rejects(self, record: IndexRecord) -> bool:
        """Check whether an index entry must not be mirrored.

        Args:
            record: Parsed package index line.

        Returns:
            True if any filter matches the entry.
        """
        if self.skip_perl and any(p.search(record.path) for p in PERL_DISTRIBUTION_PATTERNS):
            return True
        if self.path_filters.matches(record.path):
            return True
        return self.module_filters.matches(record.module)


@dataclass(frozen=True, slots=True)
class MemberFilter:
    """Decides which archive members are extracted.

    A member is kept only if it has a processable suffix AND matches none
    of the configured file filters.

    Attributes:
        file_filters: Patterns checked against the member name.
    """

    file_filters: FilterSpec = field(default_factory=FilterSpec)

    def accepts(self, member: str) -> bool:
        """Check whether an archive member should be extracted."""
        if not PROCESSABLE_MEMBER.search(member):
            return False
        return not self.file_filters.matches(member)

    def select(self, members: Iterable[str]) -> list[str]:
        """Return the accepted members, preserving archive order."""
        return [member for member in members if self.accepts(member)]
