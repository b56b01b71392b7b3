"""Scenarios for the link reconciler shared by bunscript and wt."""

from __future__ import annotations

import os
from io import StringIO
from pathlib import Path
from unittest.mock import patch

import pytest

from devbin_links import (
    LinkResult,
    LinkState,
    classify,
    ensure_link,
    find_link_dirs,
    link_destination,
    remove_links,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def write_file(path: Path, content: str = "") -> None:
    """Create a file with content, making parent dirs as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def make_sources(tmp_path: Path, *names: str) -> Path:
    """Create <tmp>/scripts/<name>.ts for each name and return the scripts dir."""
    scripts = tmp_path / "scripts"
    for name in names:
        write_file(scripts / f"{name}.ts", f"// {name}\n")
    return scripts


def dir_listing(path: Path) -> list[str]:
    return sorted(entry.name for entry in path.iterdir())


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestClassify_1:
    def test_1_nothing_at_target(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        assert classify(scripts / "foo.ts", tmp_path / "bin" / "foo") is LinkState.NONE

    def test_2_link_to_source_is_valid(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        target = tmp_path / "foo"
        target.symlink_to(scripts / "foo.ts")

        assert classify(scripts / "foo.ts", target) is LinkState.VALID

    def test_3_link_elsewhere_is_other(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo", "bar")
        target = tmp_path / "foo"
        target.symlink_to(scripts / "bar.ts")

        assert classify(scripts / "foo.ts", target) is LinkState.OTHER

    def test_4_regular_file_is_other(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        write_file(tmp_path / "foo", "not a link")

        assert classify(scripts / "foo.ts", tmp_path / "foo") is LinkState.OTHER

    def test_5_directory_is_other(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        (tmp_path / "foo").mkdir()

        assert classify(scripts / "foo.ts", tmp_path / "foo") is LinkState.OTHER

    def test_6_destination_compared_as_recorded(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        target = tmp_path / "foo"
        # Same file, but recorded through a relative path
        target.symlink_to(Path("scripts") / "foo.ts")

        assert target.resolve() == (scripts / "foo.ts").resolve()
        assert classify(scripts / "foo.ts", target) is LinkState.OTHER

    def test_7_dangling_link_is_other(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        target = tmp_path / "foo"
        target.symlink_to(tmp_path / "gone.ts")

        assert classify(scripts / "foo.ts", target) is LinkState.OTHER


class TestEnsureLink_2:
    def test_1_creates_link_on_empty_target(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        source, target = scripts / "foo.ts", tmp_path / "foo"

        assert ensure_link(source, target) is LinkResult.CREATED
        assert classify(source, target) is LinkState.VALID
        assert os.access(source, os.X_OK)

    def test_2_second_call_skips(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        source, target = scripts / "foo.ts", tmp_path / "foo"

        results = [ensure_link(source, target), ensure_link(source, target)]

        assert results == [LinkResult.CREATED, LinkResult.SKIPPED]
        assert dir_listing(tmp_path) == ["foo", "scripts"]

    def test_3_existing_file_is_rejected_untouched(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        target = tmp_path / "foo"
        write_file(target, "precious")

        assert ensure_link(scripts / "foo.ts", target) is LinkResult.REJECTED
        assert not target.is_symlink()
        assert target.read_text() == "precious"

    def test_4_foreign_link_is_rejected_untouched(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo", "bar")
        target = tmp_path / "foo"
        target.symlink_to(scripts / "bar.ts")

        assert ensure_link(scripts / "foo.ts", target) is LinkResult.REJECTED
        assert os.readlink(target) == str(scripts / "bar.ts")

    def test_5_non_executable_link_leaves_mode_alone(self, tmp_path: Path) -> None:
        source = tmp_path / "shared" / ".env"
        write_file(source, "TOKEN=1\n")
        source.chmod(0o600)

        assert ensure_link(source, tmp_path / ".env", executable=False) is LinkResult.CREATED
        assert source.stat().st_mode & 0o777 == 0o600


class TestRemoveLinks_3:
    def test_1_removes_only_links_into_source_dir(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo", "bar")
        elsewhere = tmp_path / "elsewhere"
        write_file(elsewhere / "foo.ts")
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        (bin_dir / "foo").symlink_to(scripts / "foo.ts")
        (bin_dir / "bar").symlink_to(scripts / "bar.ts")
        (bin_dir / "foo-copy").symlink_to(elsewhere / "foo.ts")
        write_file(bin_dir / "plain", "regular file")

        removed = remove_links([bin_dir], scripts)

        assert sorted(link.name for link, _dest in removed) == ["bar", "foo"]
        assert dir_listing(bin_dir) == ["foo-copy", "plain"]

    def test_2_name_filter_uses_destination_stem(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo", "bar")
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        (bin_dir / "f").symlink_to(scripts / "foo.ts")
        (bin_dir / "foo-again").symlink_to(scripts / "foo.ts")
        (bin_dir / "bar").symlink_to(scripts / "bar.ts")

        removed = remove_links([bin_dir], scripts, "foo")

        assert len(removed) == 2
        assert {dest for _link, dest in removed} == {scripts / "foo.ts"}
        assert dir_listing(bin_dir) == ["bar"]

    def test_3_matching_name_outside_source_dir_survives(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        impostor = tmp_path / "impostor" / "foo.ts"
        write_file(impostor)
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        (bin_dir / "foo").symlink_to(impostor)

        assert remove_links([bin_dir], scripts, "foo") == []
        assert (bin_dir / "foo").is_symlink()

    def test_4_scans_every_directory(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        first, second = tmp_path / "bin", tmp_path / ".local" / "bin"
        first.mkdir()
        second.mkdir(parents=True)
        (first / "foo").symlink_to(scripts / "foo.ts")
        (second / "foo").symlink_to(scripts / "foo.ts")

        removed = remove_links([first, second], scripts)

        assert [link for link, _dest in removed] == [first / "foo", second / "foo"]

    def test_5_relative_destinations_resolve_against_link_dir(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        (bin_dir / "foo").symlink_to(Path("..") / "scripts" / "foo.ts")

        assert link_destination(bin_dir / "foo") == scripts / "foo.ts"
        assert len(remove_links([bin_dir], scripts)) == 1

    def test_6_nothing_to_remove_is_not_an_error(self, tmp_path: Path) -> None:
        scripts = make_sources(tmp_path, "foo")
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()

        assert remove_links([bin_dir], scripts) == []


class TestFindLinkDirs_4:
    def _find(self, environ: dict[str, str]) -> tuple[list[Path], str]:
        stderr = StringIO()
        with patch("sys.stderr", stderr):
            dirs = find_link_dirs("TOOL_BIN_DIR", environ, prog="tool")
        return dirs, stderr.getvalue()

    def test_1_preference_order(self, tmp_path: Path) -> None:
        override = tmp_path / "custom"
        for d in (override, tmp_path / "bin", tmp_path / ".local" / "bin"):
            d.mkdir(parents=True)

        dirs, stderr = self._find({"HOME": str(tmp_path), "TOOL_BIN_DIR": str(override)})

        assert dirs == [override, tmp_path / "bin", tmp_path / ".local" / "bin"]
        assert stderr == ""

    def test_2_only_existing_directories_qualify(self, tmp_path: Path) -> None:
        (tmp_path / ".local" / "bin").mkdir(parents=True)

        dirs, _stderr = self._find({"HOME": str(tmp_path)})

        assert dirs == [tmp_path / ".local" / "bin"]
        assert not (tmp_path / "bin").exists()

    def test_3_relative_override_is_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "bin").mkdir()

        dirs, stderr = self._find({"HOME": str(tmp_path), "TOOL_BIN_DIR": "relative/bin"})

        assert dirs == [tmp_path / "bin"]
        assert "tool: WARNING: $TOOL_BIN_DIR is set to a relative path; ignoring" in stderr

    def test_4_missing_override_is_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "bin").mkdir()

        dirs, stderr = self._find({"HOME": str(tmp_path), "TOOL_BIN_DIR": str(tmp_path / "nope")})

        assert dirs == [tmp_path / "bin"]
        assert "no such directory exists" in stderr

    def test_5_no_candidates_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="could not find a directory suitable for script links"):
            self._find({"HOME": str(tmp_path)})

    def test_6_missing_home_warns(self, tmp_path: Path) -> None:
        override = tmp_path / "custom"
        override.mkdir()

        dirs, stderr = self._find({"TOOL_BIN_DIR": str(override)})

        assert dirs == [override]
        assert "$HOME isn't set" in stderr
