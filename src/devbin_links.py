"""devbin: reconcile symlinks in a bin directory with the files they expose."""

from __future__ import annotations

import enum
import os
import stat
import sys
from pathlib import Path


class LinkState(enum.Enum):
    NONE = "none"  # nothing at the target
    VALID = "valid"  # a link to exactly the expected source
    OTHER = "other"  # a file, a directory or a link to something else


class LinkResult(enum.Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    REJECTED = "rejected"


def classify(source: Path, target: Path) -> LinkState:
    """Inspect target and report how it relates to source.

    Link destinations are compared as recorded, without resolving them.
    """
    if target.is_symlink():
        if os.readlink(target) == str(source):
            return LinkState.VALID
        return LinkState.OTHER
    if target.exists():
        return LinkState.OTHER
    return LinkState.NONE


def ensure_link(source: Path, target: Path, *, executable: bool = True) -> LinkResult:
    """Make target a symlink to source unless something else is already there."""
    state = classify(source, target)
    if state is LinkState.OTHER:
        return LinkResult.REJECTED
    if state is LinkState.VALID:
        return LinkResult.SKIPPED

    target.symlink_to(source)
    if executable and target.exists():
        # chmod follows the link, like `chmod +x <link>`
        mode = target.stat().st_mode
        target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return LinkResult.CREATED


def link_destination(link: Path) -> Path:
    """Return the recorded destination of link, anchored at the link's directory if relative."""
    dest = os.readlink(link)
    if os.path.isabs(dest):
        return Path(dest)
    return Path(os.path.normpath(link.parent / dest))


def remove_links(link_dirs: list[Path], source_dir: Path, name: str | None = None) -> list[tuple[Path, Path]]:
    """Delete the links in link_dirs that point into source_dir.

    A link is only considered ours when its destination sits directly in
    source_dir. If name is given, the destination's stem must also match.
    Returns (link, destination) for every removed link.
    """
    removed: list[tuple[Path, Path]] = []
    for link_dir in link_dirs:
        for entry in sorted(link_dir.iterdir()):
            if not entry.is_symlink():
                continue
            dest = link_destination(entry)
            if dest.parent != source_dir:
                continue
            if name and dest.stem != name:
                continue
            entry.unlink()
            removed.append((entry, dest))
    return removed


def find_link_dirs(env_var: str, environ: dict[str, str] | None = None, *, prog: str = "devbin") -> list[Path]:
    """Return the usable bin directories, most preferred first.

    Candidates: $<env_var>, $HOME/bin, $HOME/.local/bin. Only directories that
    already exist qualify. Raises FileNotFoundError when none do.
    """
    env = os.environ if environ is None else environ
    dirs: list[Path] = []

    override = env.get(env_var)
    if override:
        override_dir = Path(override)
        if not override_dir.is_absolute():
            print(f"{prog}: WARNING: ${env_var} is set to a relative path; ignoring", file=sys.stderr)
        elif override_dir.is_dir():
            dirs.append(override_dir)
        else:
            print(
                f"{prog}: WARNING: ${env_var} is set to {override} but no such directory exists; ignoring",
                file=sys.stderr,
            )

    home = env.get("HOME")
    if home:
        for candidate in (Path(home) / "bin", Path(home) / ".local" / "bin"):
            if candidate.is_dir() and candidate not in dirs:
                dirs.append(candidate)
    else:
        print(f"{prog}: WARNING: $HOME isn't set", file=sys.stderr)

    if not dirs:
        raise FileNotFoundError("could not find a directory suitable for script links")
    return dirs
