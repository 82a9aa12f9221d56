"""Path management for cpanproc.

This module maps mirror-relative paths (always ``/``-separated, as they
appear in the remote repository) onto the local mirror root and the
derived expansion root, creates directories with a configured mode, and
resolves the XDG configuration location.

XDG defaults:
- Config: ~/.config/cpanproc/
"""

import os
from pathlib import Path, PurePosixPath

# Application identifier for directory naming
APP_NAME = "cpanproc"

# Default permission bits for directories created in either tree
DEFAULT_DIRMODE = 0o711


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/cpanproc/ (or XDG_CONFIG_HOME/cpanproc/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_config_path() -> Path:
    """Get the default configuration file path.

    Returns:
        Path to ~/.config/cpanproc/config.toml.
    """
    return get_config_dir() / "config.toml"


def local_path_for(root: Path, relative: str) -> Path:
    """Map a mirror-relative path onto a local root directory.

    Args:
        root: Local root directory (mirror root or derived root).
        relative: ``/``-separated path relative to the repository root.

    Returns:
        Native path below ``root``.

    Raises:
        ValueError: If the relative path is absolute or climbs out of root.
    """
    parts = PurePosixPath(relative).parts
    if not parts or PurePosixPath(relative).is_absolute() or ".." in parts:
        msg = f"Invalid repository-relative path: {relative!r}"
        raise ValueError(msg)
    return root.joinpath(*parts)


def relative_to_root(root: Path, path: Path) -> str:
    """Convert a local path back into a ``/``-separated relative path.

    Args:
        root: Local root directory the path lives under.
        path: Path below ``root``.

    Returns:
        Repository-relative path string.
    """
    return path.relative_to(root).as_posix()


def canonical(path: Path | str) -> str:
    """Return the canonical identity string for a local file.

    Both the synchronizer and the sweep key their bookkeeping on this
    value, so a file reached through different spellings of the same
    path is still one entry.

    Args:
        path: Local file path.

    Returns:
        Absolute, normalized path string.
    """
    return os.path.normpath(os.path.abspath(path))


def ensure_dir(path: Path, mode: int = DEFAULT_DIRMODE) -> Path:
    """Create a directory and any missing parents with the given mode.

    Unlike ``Path.mkdir(parents=True)``, every directory created here
    receives ``mode`` (subject to the process umask), not only the leaf.

    Args:
        path: Directory path to create.
        mode: Permission bits for newly created directories.

    Returns:
        The created/existing directory path.

    Raises:
        OSError: If a directory cannot be created.
    """
    missing: list[Path] = []
    current = path
    while not current.is_dir():
        missing.append(current)
        if current.parent == current:
            break
        current = current.parent

    for directory in reversed(missing):
        try:
            directory.mkdir(mode=mode)
        except FileExistsError:
            if not directory.is_dir():
                raise
    return path


def is_writable_dir(path: Path) -> bool:
    """Check that a path is an existing directory the process can write to.

    Args:
        path: Directory to check.

    Returns:
        True if the directory exists and is writable.
    """
    return path.is_dir() and os.access(path, os.W_OK)
