"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules. The
builders and the in-memory remote themselves live in fakes.py.
"""

import gzip
from collections.abc import Callable
from pathlib import Path

import pytest
from fakes import FakeRemote, make_index_bytes, make_tarball_bytes


@pytest.fixture
def make_index() -> Callable[[list[tuple[str, str, str]]], bytes]:
    """Builder for gzip package index content."""
    return make_index_bytes


@pytest.fixture
def make_tarball() -> Callable[[dict[str, bytes]], bytes]:
    """Builder for tar.gz archive content."""
    return make_tarball_bytes


@pytest.fixture
def remote() -> FakeRemote:
    """Empty in-memory remote repository."""
    return FakeRemote()


@pytest.fixture
def publish_indices(remote: FakeRemote) -> Callable[[list[tuple[str, str, str]]], None]:
    """Publish the three repository indices for the given package entries."""

    def _publish(entries: list[tuple[str, str, str]]) -> None:
        remote.publish("authors/01mailrc.txt.gz", gzip.compress(b'alias AUTHOR "An Author"\n'))
        remote.publish("modules/02packages.details.txt.gz", make_index_bytes(entries))
        remote.publish("modules/03modlist.data.gz", gzip.compress(b"1;\n"))

    return _publish


@pytest.fixture
def mirror_root(tmp_path: Path) -> Path:
    """Empty local mirror root."""
    root = tmp_path / "minicpan"
    root.mkdir()
    return root


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    """Empty derived source root."""
    root = tmp_path / "source"
    root.mkdir()
    return root


def write_file(root: Path, relative: str, content: bytes = b"") -> Path:
    """Create a file below root, including parents."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def touch() -> Callable[..., Path]:
    """Helper creating files below a root directory."""
    return write_file


@pytest.fixture(autouse=True)
def _isolated_config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real ~/.config."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
