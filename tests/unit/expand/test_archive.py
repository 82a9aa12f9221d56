"""Unit tests for tarball listing and member extraction."""

from collections.abc import Callable
from pathlib import Path

from cpanproc.expand.archive import TarArchive, list_archive
from cpanproc.expand.models import ExtractStatus

MakeTarball = Callable[[dict[str, bytes]], bytes]


class TestListArchive:
    """Tests for list_archive."""

    def test_lists_members_in_order(self, tmp_path: Path, make_tarball: MakeTarball) -> None:
        """All member names are returned in archive order."""
        archive = tmp_path / "Foo-1.0.tar.gz"
        archive.write_bytes(
            make_tarball({"Foo-1.0/Makefile.PL": b"", "Foo-1.0/lib/Foo.pm": b"package Foo;"})
        )

        listing = list_archive(archive)

        assert listing.ok
        assert listing.members == ("Foo-1.0/Makefile.PL", "Foo-1.0/lib/Foo.pm")

    def test_missing_archive_is_fatal(self, tmp_path: Path) -> None:
        """An archive that cannot be opened lists nothing."""
        listing = list_archive(tmp_path / "missing.tar.gz")

        assert listing.status == ExtractStatus.FATAL
        assert listing.members == ()

    def test_not_a_tarball_is_fatal(self, tmp_path: Path) -> None:
        """Garbage content is reported, not raised."""
        archive = tmp_path / "Foo-1.0.tar.gz"
        archive.write_bytes(b"this is not a tarball")

        listing = list_archive(archive)

        assert listing.status == ExtractStatus.FATAL
        assert listing.message is not None

    def test_truncated_archive_is_not_ok(self, tmp_path: Path, make_tarball: MakeTarball) -> None:
        """A truncated download never lists as complete."""
        content = make_tarball({f"Foo-1.0/lib/Foo{i}.pm": bytes(4096) for i in range(20)})
        archive = tmp_path / "Foo-1.0.tar.gz"
        archive.write_bytes(content[: len(content) // 2])

        listing = list_archive(archive)

        assert not listing.ok
        assert listing.status in (ExtractStatus.WARNING, ExtractStatus.FATAL)


class TestTarArchive:
    """Tests for TarArchive extraction."""

    def test_extract_member(self, tmp_path: Path, make_tarball: MakeTarball) -> None:
        """A member is copied to an explicit destination with its mtime."""
        archive = tmp_path / "Foo-1.0.tar.gz"
        archive.write_bytes(make_tarball({"Foo-1.0/lib/Foo.pm": b"package Foo;\n1;\n"}))
        destination = tmp_path / "out" / "Foo.pm"
        destination.parent.mkdir()

        with TarArchive(archive) as tar:
            assert tar.open().ok
            result = tar.extract_member("Foo-1.0/lib/Foo.pm", destination)

        assert result.ok
        assert destination.read_bytes() == b"package Foo;\n1;\n"
        assert int(destination.stat().st_mtime) == 1_700_000_000

    def test_missing_member_is_warning(self, tmp_path: Path, make_tarball: MakeTarball) -> None:
        """Unknown member names produce a WARNING."""
        archive = tmp_path / "Foo-1.0.tar.gz"
        archive.write_bytes(make_tarball({"Foo-1.0/lib/Foo.pm": b""}))

        with TarArchive(archive) as tar:
            tar.open()
            result = tar.extract_member("Foo-1.0/lib/Bar.pm", tmp_path / "Bar.pm")

        assert result.status == ExtractStatus.WARNING
        assert "No such member" in (result.message or "")

    def test_open_failure_is_fatal(self, tmp_path: Path) -> None:
        """An unreadable archive cannot be opened."""
        archive = tmp_path / "Foo-1.0.tar.gz"
        archive.write_bytes(b"garbage")

        with TarArchive(archive) as tar:
            result = tar.open()

        assert result.status == ExtractStatus.FATAL

    def test_extract_before_open_is_fatal(self, tmp_path: Path) -> None:
        """Extraction requires an opened archive."""
        result = TarArchive(tmp_path / "Foo-1.0.tar.gz").extract_member("x", tmp_path / "x")

        assert result.status == ExtractStatus.FATAL

    def test_missing_destination_directory_is_warning(
        self, tmp_path: Path, make_tarball: MakeTarball
    ) -> None:
        """The destination's parent must exist."""
        archive = tmp_path / "Foo-1.0.tar.gz"
        archive.write_bytes(make_tarball({"Foo-1.0/lib/Foo.pm": b"x"}))

        with TarArchive(archive) as tar:
            tar.open()
            result = tar.extract_member("Foo-1.0/lib/Foo.pm", tmp_path / "nope" / "Foo.pm")

        assert result.status == ExtractStatus.WARNING
