"""Filesystem deletion support shared by the mirror and expansion trees."""

from cpanproc.filesystem.operator import FilesystemActionResult, FilesystemOperator

__all__ = [
    "FilesystemActionResult",
    "FilesystemOperator",
]
