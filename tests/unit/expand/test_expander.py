"""Unit tests for ArchiveExpander."""

import io
import tarfile
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cpanproc.core.errors import ExpansionError
from cpanproc.core.filters import FilterSpec, MemberFilter
from cpanproc.expand.expander import ArchiveExpander
from cpanproc.expand.models import ExtractResult, ExtractStatus, ListingResult

MakeTarball = Callable[[dict[str, bytes]], bytes]

ARCHIVE = "authors/id/F/FO/FOO/Foo-1.0.tar.gz"


class RecordingReport:
    """Report sink collecting lines in memory."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def write_line(self, line: str) -> None:
        self.lines.append(line)


@pytest.fixture
def publish_archive(
    mirror_root: Path, touch: Callable[..., Path], make_tarball: MakeTarball
) -> Callable[[dict[str, bytes]], Path]:
    """Write a tarball at ARCHIVE below the mirror root."""

    def _publish(files: dict[str, bytes]) -> Path:
        return touch(mirror_root, ARCHIVE, make_tarball(files))

    return _publish


class TestExpand:
    """Tests for expanding a single archive."""

    def test_extracts_processable_members(
        self,
        mirror_root: Path,
        source_root: Path,
        publish_archive: Callable[[dict[str, bytes]], Path],
    ) -> None:
        """Only .pm, .pl, and .t members are extracted, normalized to 0644."""
        publish_archive(
            {
                "Foo-1.0/README": b"readme",
                "Foo-1.0/lib/Foo.pm": b"package Foo;",
                "Foo-1.0/t/basic.t": b"ok 1",
                "Foo-1.0/script/foo.pl": b"print 1",
            }
        )
        expander = ArchiveExpander(mirror_root, source_root)

        assert expander.expand(ARCHIVE)

        derived = source_root / ARCHIVE
        assert (derived / "Foo-1.0/lib/Foo.pm").read_bytes() == b"package Foo;"
        assert (derived / "Foo-1.0/t/basic.t").is_file()
        assert (derived / "Foo-1.0/script/foo.pl").is_file()
        assert not (derived / "Foo-1.0/README").exists()
        assert (derived / "Foo-1.0/lib/Foo.pm").stat().st_mode & 0o777 == 0o644
        assert expander.expanded == 1

    def test_file_filters_are_conjunctive(
        self,
        mirror_root: Path,
        source_root: Path,
        publish_archive: Callable[[dict[str, bytes]], Path],
    ) -> None:
        """A member needs a processable suffix and no file filter match."""
        publish_archive({"Acme/Foo.pm": b"a", "Bar/Baz.pm": b"b"})
        member_filter = MemberFilter(file_filters=FilterSpec.from_patterns(["Acme"]))
        expander = ArchiveExpander(mirror_root, source_root, member_filter=member_filter)

        expander.expand(ARCHIVE)

        assert not (source_root / ARCHIVE / "Acme/Foo.pm").exists()
        assert (source_root / ARCHIVE / "Bar/Baz.pm").is_file()

    def test_no_survivors_creates_empty_marker(
        self, mirror_root: Path, source_root: Path
    ) -> None:
        """Zero wanted members leave an empty directory and extract nothing."""
        lister = MagicMock(return_value=ListingResult(members=("Foo-1.0/README",)))
        archive_factory = MagicMock()
        expander = ArchiveExpander(
            mirror_root, source_root, lister=lister, archive_factory=archive_factory
        )

        assert expander.expand(ARCHIVE)

        derived = source_root / ARCHIVE
        assert derived.is_dir()
        assert list(derived.iterdir()) == []
        archive_factory.assert_not_called()
        assert not expander.needs_expansion(ARCHIVE)

    def test_listing_failure_is_soft(self, mirror_root: Path, source_root: Path) -> None:
        """An unreadable archive is reported and left for the next run."""
        lister = MagicMock(
            return_value=ListingResult(status=ExtractStatus.FATAL, message="not a gzip file")
        )
        report = RecordingReport()
        expander = ArchiveExpander(
            mirror_root, source_root, lister=lister, warning_report=report
        )

        assert expander.expand(ARCHIVE)

        assert not (source_root / ARCHIVE).exists()
        assert report.lines == [ARCHIVE, "not a gzip file"]
        assert expander.needs_expansion(ARCHIVE)

    def test_partial_listing_is_soft_failure(self, mirror_root: Path, source_root: Path) -> None:
        """A WARNING listing is not expanded."""
        lister = MagicMock(
            return_value=ListingResult(
                members=("Foo-1.0/lib/Foo.pm",),
                status=ExtractStatus.WARNING,
                message="Damaged archive",
            )
        )
        archive_factory = MagicMock()
        expander = ArchiveExpander(
            mirror_root, source_root, lister=lister, archive_factory=archive_factory
        )

        assert expander.expand(ARCHIVE)

        archive_factory.assert_not_called()
        assert not (source_root / ARCHIVE).exists()

    def test_empty_listing_is_soft_failure(self, mirror_root: Path, source_root: Path) -> None:
        """An archive without members is not expanded."""
        expander = ArchiveExpander(
            mirror_root, source_root, lister=MagicMock(return_value=ListingResult())
        )

        assert expander.expand(ARCHIVE)
        assert not (source_root / ARCHIVE).exists()

    def test_failed_member_removed_others_continue(
        self, mirror_root: Path, source_root: Path
    ) -> None:
        """A member that fails is deleted and the rest are still extracted."""
        members = ("Foo-1.0/lib/A.pm", "Foo-1.0/lib/B.pm", "Foo-1.0/lib/C.pm")

        def extract_member(name: str, destination: Path) -> ExtractResult:
            destination.write_bytes(b"partial" if name.endswith("B.pm") else b"ok")
            if name.endswith("B.pm"):
                return ExtractResult(ExtractStatus.WARNING, "checksum error")
            return ExtractResult()

        archive = MagicMock()
        archive.__enter__.return_value = archive
        archive.open.return_value = ExtractResult()
        archive.extract_member.side_effect = extract_member
        report = RecordingReport()
        expander = ArchiveExpander(
            mirror_root,
            source_root,
            lister=MagicMock(return_value=ListingResult(members=members)),
            archive_factory=MagicMock(return_value=archive),
            warning_report=report,
        )

        assert expander.expand(ARCHIVE)

        derived = source_root / ARCHIVE / "Foo-1.0/lib"
        assert (derived / "A.pm").is_file()
        assert not (derived / "B.pm").exists()
        assert (derived / "C.pm").is_file()
        assert report.lines == [ARCHIVE, "checksum error"]
        assert archive.extract_member.call_count == 3

    def test_failed_directory_member_keeps_extracted_files(
        self, mirror_root: Path, source_root: Path, touch: Callable[..., Path]
    ) -> None:
        """A directory member named like a module never removes files below it."""
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            inner = tarfile.TarInfo("Foo-1.0/lib/Odd.pm/Inner.pm")
            inner.size = len(b"package Inner;")
            tar.addfile(inner, io.BytesIO(b"package Inner;"))
            directory = tarfile.TarInfo("Foo-1.0/lib/Odd.pm")
            directory.type = tarfile.DIRTYPE
            directory.mode = 0o755
            tar.addfile(directory)
        touch(mirror_root, ARCHIVE, buffer.getvalue())
        report = RecordingReport()
        expander = ArchiveExpander(mirror_root, source_root, warning_report=report)

        assert expander.expand(ARCHIVE)

        derived = source_root / ARCHIVE / "Foo-1.0/lib/Odd.pm"
        assert (derived / "Inner.pm").read_bytes() == b"package Inner;"
        assert report.lines[0] == ARCHIVE

    def test_open_failure_is_soft(self, mirror_root: Path, source_root: Path) -> None:
        """An archive that lists but cannot be opened is reported."""
        archive = MagicMock()
        archive.__enter__.return_value = archive
        archive.open.return_value = ExtractResult(ExtractStatus.FATAL, "Cannot open")
        expander = ArchiveExpander(
            mirror_root,
            source_root,
            lister=MagicMock(return_value=ListingResult(members=("Foo-1.0/lib/Foo.pm",))),
            archive_factory=MagicMock(return_value=archive),
        )

        assert expander.expand(ARCHIVE)

        archive.extract_member.assert_not_called()

    def test_unsafe_member_name_skipped(self, mirror_root: Path, source_root: Path) -> None:
        """Members climbing out of the derived directory are not written."""
        archive = MagicMock()
        archive.__enter__.return_value = archive
        archive.open.return_value = ExtractResult()
        expander = ArchiveExpander(
            mirror_root,
            source_root,
            lister=MagicMock(return_value=ListingResult(members=("../../evil.pm",))),
            archive_factory=MagicMock(return_value=archive),
        )

        assert expander.expand(ARCHIVE)

        archive.extract_member.assert_not_called()

    def test_non_archive_is_ignored(self, mirror_root: Path, source_root: Path) -> None:
        """Files that are not tarballs need no expansion."""
        lister = MagicMock()
        expander = ArchiveExpander(mirror_root, source_root, lister=lister)

        assert expander.expand("authors/id/F/FO/FOO/CHECKSUMS")
        lister.assert_not_called()

    def test_missing_makefile_report(
        self,
        mirror_root: Path,
        source_root: Path,
        publish_archive: Callable[[dict[str, bytes]], Path],
    ) -> None:
        """Archives with only a Build.PL are recorded."""
        publish_archive({"Foo-1.0/Build.PL": b"", "Foo-1.0/lib/Foo.pm": b""})
        report = RecordingReport()
        expander = ArchiveExpander(mirror_root, source_root, missing_makefile_report=report)

        expander.expand(ARCHIVE)

        assert report.lines == [ARCHIVE]


class TestHooks:
    """Tests for the mirror and clean hooks."""

    def test_on_file_mirrored_skips_expanded_archive(
        self, mirror_root: Path, source_root: Path
    ) -> None:
        """An archive with a derived directory is not expanded again."""
        (source_root / ARCHIVE).mkdir(parents=True)
        lister = MagicMock()
        expander = ArchiveExpander(mirror_root, source_root, lister=lister)

        assert expander.on_file_mirrored(ARCHIVE)
        lister.assert_not_called()

    def test_on_file_mirrored_expands_new_archive(
        self,
        mirror_root: Path,
        source_root: Path,
        publish_archive: Callable[[dict[str, bytes]], Path],
    ) -> None:
        """A new archive is expanded through the hook."""
        publish_archive({"Foo-1.0/lib/Foo.pm": b"x"})
        expander = ArchiveExpander(mirror_root, source_root)

        assert expander.on_file_mirrored(ARCHIVE)
        assert (source_root / ARCHIVE / "Foo-1.0/lib/Foo.pm").is_file()

    def test_on_file_mirrored_reports_directory_failure(
        self, mirror_root: Path, source_root: Path, touch: Callable[..., Path]
    ) -> None:
        """Failing to create the marker directory is fatal."""
        touch(source_root, "authors", b"a file where a directory belongs")
        lister = MagicMock(return_value=ListingResult(members=("Foo-1.0/README",)))
        expander = ArchiveExpander(mirror_root, source_root, lister=lister)

        assert expander.on_file_mirrored(ARCHIVE) is False

    def test_on_file_cleaned_removes_expansion(
        self, mirror_root: Path, source_root: Path, touch: Callable[..., Path]
    ) -> None:
        """Cleaning a mirror file drops its derived directory."""
        touch(source_root, f"{ARCHIVE}/Foo-1.0/lib/Foo.pm", b"x")
        expander = ArchiveExpander(mirror_root, source_root)

        expander.on_file_cleaned(ARCHIVE)

        assert not (source_root / ARCHIVE).exists()
        assert (source_root / "authors/id/F/FO/FOO").is_dir()

    def test_remove_expansion_without_directory(
        self, mirror_root: Path, source_root: Path
    ) -> None:
        """Removing a missing expansion is a no-op."""
        assert ArchiveExpander(mirror_root, source_root).remove_expansion(ARCHIVE)


class TestFlush:
    """Tests for discarding all expansions."""

    def test_flush_removes_authors_tree(
        self, mirror_root: Path, source_root: Path, touch: Callable[..., Path]
    ) -> None:
        """flush removes <source>/authors and nothing else."""
        touch(source_root, f"{ARCHIVE}/Foo-1.0/lib/Foo.pm", b"x")
        other = touch(source_root, "notes.txt", b"keep")

        ArchiveExpander(mirror_root, source_root).flush()

        assert not (source_root / "authors").exists()
        assert other.exists()

    def test_flush_without_tree(self, mirror_root: Path, source_root: Path) -> None:
        """Nothing to flush is not an error."""
        ArchiveExpander(mirror_root, source_root).flush()

    def test_flush_failure_raises(
        self, mirror_root: Path, source_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A tree that cannot be removed aborts the run."""
        (source_root / "authors").mkdir()
        expander = ArchiveExpander(mirror_root, source_root)
        failed = MagicMock(success=False, error="Permission denied")
        monkeypatch.setattr(expander._operator, "delete_path", MagicMock(return_value=failed))

        with pytest.raises(ExpansionError, match="Failed to remove previous expansion"):
            expander.flush()


class TestFindUnexpanded:
    """Tests for the expansion check scan."""

    def test_lists_archives_without_expansion(
        self, mirror_root: Path, source_root: Path, touch: Callable[..., Path]
    ) -> None:
        """Only tarballs lacking a derived directory are returned, sorted."""
        touch(mirror_root, "authors/id/Z/ZZ/ZED/Z-1.tar.gz")
        touch(mirror_root, "authors/id/A/AA/AAA/A-1.tar.gz")
        touch(mirror_root, ARCHIVE)
        touch(mirror_root, "authors/id/F/FO/FOO/CHECKSUMS")
        (source_root / ARCHIVE).mkdir(parents=True)

        pending = ArchiveExpander(mirror_root, source_root).find_unexpanded()

        assert pending == ["authors/id/A/AA/AAA/A-1.tar.gz", "authors/id/Z/ZZ/ZED/Z-1.tar.gz"]
