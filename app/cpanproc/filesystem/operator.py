"""Filesystem deletion operator.

Handles removal of stale mirror files, expansion directories, and
partially extracted members. Every operation is confined to a managed
root directory, and failures are reported per path instead of raised.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FilesystemActionResult:
    """Result of a single filesystem deletion operation.

    Attributes:
        path: Absolute path that was operated on.
        success: Whether the operation completed successfully.
        error: Error message if the operation failed, None otherwise.
    """

    path: str
    success: bool
    error: str | None = None


class FilesystemOperator:
    """Removes files and directory trees below a managed root.

    Attributes:
        _root: Directory that every deleted path must live under.
    """

    def __init__(self, root: Path) -> None:
        """Initialize the FilesystemOperator.

        Args:
            root: Managed root directory.
        """
        self._root = Path(os.path.abspath(root))

    def delete_path(self, path: Path) -> FilesystemActionResult:
        """Delete a single file, symlink, or directory tree.

        Dispatches on the path type:
        - Directories: shutil.rmtree
        - Files and symlinks: chmod 0644 (files only), then Path.unlink

        Args:
            path: Path to delete.

        Returns:
            FilesystemActionResult indicating success or failure.
        """
        target = Path(os.path.abspath(path))
        if not self._is_managed(target):
            return FilesystemActionResult(
                path=str(target),
                success=False,
                error=f"Path outside managed root {self._root}: {target}",
            )

        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
                return FilesystemActionResult(path=str(target), success=True)

            if target.is_symlink():
                target.unlink()
                return FilesystemActionResult(path=str(target), success=True)

            if target.exists():
                # Extracted members may carry read-only modes from the archive
                target.chmod(0o644)
                target.unlink()
                return FilesystemActionResult(path=str(target), success=True)

            return FilesystemActionResult(
                path=str(target),
                success=False,
                error=f"Path does not exist: {target}",
            )

        except OSError as e:
            logger.debug("Deletion of %s failed: %s", target, e)
            return FilesystemActionResult(path=str(target), success=False, error=str(e))

    def _is_managed(self, target: Path) -> bool:
        """Check if a path lies strictly below the managed root."""
        return target != self._root and target.is_relative_to(self._root)
