"""devbin: clone git repos into a worktree-per-branch layout and share files between worktrees.

Layout of a wt root:

    <root>/.base/   the actual clone, checked out on an empty detached commit
    <root>/.git     symlink to .base/.git
    <root>/.wt      JSON config (base branch, files shared across worktrees)
    <root>/<branch> one git worktree per branch
"""

from __future__ import annotations

import argparse
import json
import os
import shutil
import sys
from pathlib import Path

import devbin_links
import devbin_shell
from devbin_links import LinkResult

PROG = "wt"
CONFIG_FILE = ".wt"
BASE_DIR = ".base"
DEFAULT_BRANCHES = ("main", "master")
WT_PREFIX = "wt:"
FILE_PREFIX = "file:"


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def read_config(root: Path) -> dict:
    with open(root / CONFIG_FILE) as f:
        config = json.load(f)
    config.setdefault("sharedFiles", {})
    return config


def write_config(root: Path, config: dict) -> None:
    with open(root / CONFIG_FILE, "w") as f:
        json.dump(config, f, indent=2, sort_keys=True)
        f.write("\n")


def find_root(start: Path) -> Path:
    """Return the closest directory at or above start holding a .wt config."""
    for candidate in (start, *start.parents):
        if (candidate / CONFIG_FILE).is_file():
            return candidate
    raise FileNotFoundError(f"no {CONFIG_FILE} config found in {start} or any parent directory")


def current_worktree(root: Path, cwd: Path) -> Path | None:
    """Return the worktree containing cwd, or None when cwd is not inside one.

    Linked worktrees carry a `.git` file (not a directory) at their top level.
    """
    for candidate in (cwd, *cwd.parents):
        if candidate == root:
            return None
        if (candidate / ".git").is_file():
            return candidate
    return None


# ---------------------------------------------------------------------------
# git
# ---------------------------------------------------------------------------


def git(args: list[str], cwd: Path) -> str:
    return devbin_shell.run(["git", *args], cwd=cwd)


def branch_exists(root: Path, branch: str) -> bool:
    return devbin_shell.succeeds(["git", "rev-parse", "--verify", "--quiet", branch], cwd=root)


def repo_name_from_url(url: str) -> str:
    """'git@github.com:me/tool.git' -> 'tool'"""
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise ValueError(f"cannot derive a directory name from {url!r}")
    return name


def clone(url: str, dest: Path | None, base_dir: Path) -> int:
    """Clone url into a fresh wt root and add a worktree for its default branch."""
    if dest is None:
        root = base_dir / repo_name_from_url(url)
        print(f"{PROG}: cloning {url} to ./{root.name}")
        root.mkdir()
    else:
        root = base_dir / dest
        print(f"{PROG}: cloning {url} to {dest}")
        root.mkdir(parents=True, exist_ok=True)
    root = root.resolve()

    git(["clone", url, BASE_DIR], cwd=root)

    # Park .base on a commit with an empty tree so every branch is free for a worktree
    base = root / BASE_DIR
    empty_tree = git(["hash-object", "-t", "tree", os.devnull], cwd=base)
    empty_commit = git(["commit-tree", empty_tree, "-m", "wt: empty base"], cwd=base)
    git(["checkout", "--quiet", empty_commit], cwd=base)

    (root / ".git").symlink_to(Path(BASE_DIR) / ".git")

    branch = next((b for b in DEFAULT_BRANCHES if branch_exists(root, b)), None)
    if branch is None:
        print(f"{PROG}: no default branch could be found", file=sys.stderr)
        return 1

    git(["worktree", "add", branch, branch], cwd=root)
    write_config(root, {"baseBranch": branch, "sharedFiles": {}})
    print(f"{PROG}: created worktree {branch} at {root / branch}")
    return 0


def add_worktree(root: Path, branch: str) -> int:
    """Create a worktree for branch and replay the shared files into it."""
    config = read_config(root)
    worktree = root / branch
    if worktree.exists():
        print(f"{PROG}: {worktree} already exists", file=sys.stderr)
        return 1

    if branch_exists(root, branch) or branch_exists(root, f"refs/remotes/origin/{branch}"):
        git(["worktree", "add", branch, branch], cwd=root)
    else:
        git(["worktree", "add", "-b", branch, branch, config["baseBranch"]], cwd=root)
    print(f"{PROG}: created worktree {branch} at {worktree}")

    return apply_shared_files(root, worktree, config["sharedFiles"])


# ---------------------------------------------------------------------------
# Shared files
# ---------------------------------------------------------------------------


def parse_source(raw: str, cwd: Path) -> str:
    """Normalize a SRC argument to 'wt:<worktree>' or 'file:<absolute path>'."""
    if raw.startswith(WT_PREFIX):
        if not raw[len(WT_PREFIX) :]:
            raise ValueError(f"missing worktree name in {raw!r}")
        return raw
    if raw.startswith(FILE_PREFIX):
        raw = raw[len(FILE_PREFIX) :]
    return FILE_PREFIX + str((cwd / raw).resolve())


def check_dest(dest: str) -> str:
    path = Path(dest)
    if not path.parts or path.is_absolute() or ".." in path.parts:
        raise ValueError(f"destination must be a relative path inside the worktree: {dest!r}")
    return dest


def source_path(root: Path, source: str, dest: str) -> Path:
    if source.startswith(WT_PREFIX):
        return root / source[len(WT_PREFIX) :] / dest
    if source.startswith(FILE_PREFIX):
        return Path(source[len(FILE_PREFIX) :])
    raise ValueError(f"unknown shared file source {source!r}")


def share_file(root: Path, worktree: Path, dest: str, entry: dict) -> bool:
    """Copy or link one shared file into worktree. Returns False if refused."""
    src = source_path(root, entry["source"], dest)
    target = worktree / dest

    if src == target:
        print(f"{PROG}: skipped {dest}: {worktree.name} is its own source")
        return True
    if not src.exists():
        print(f"{PROG}: failed to share {dest}: {src} does not exist", file=sys.stderr)
        return False

    target.parent.mkdir(parents=True, exist_ok=True)

    if entry.get("link"):
        result = devbin_links.ensure_link(src, target, executable=False)
        if result is LinkResult.REJECTED:
            print(f"{PROG}: failed to link {dest}: {target} already exists", file=sys.stderr)
            return False
        if result is LinkResult.SKIPPED:
            print(f"{PROG}: skipped {dest}: link already exists")
        else:
            print(f"{PROG}: linked {dest} to {src}")
        return True

    if target.exists() or target.is_symlink():
        print(f"{PROG}: failed to copy {dest}: {target} already exists", file=sys.stderr)
        return False
    if src.is_dir():
        shutil.copytree(src, target, symlinks=True)
    else:
        shutil.copy2(src, target)
    print(f"{PROG}: copied {dest} from {src}")
    return True


def apply_shared_files(root: Path, worktree: Path, shared: dict[str, dict]) -> int:
    exit_code = 0
    for dest, entry in sorted(shared.items()):
        if not share_file(root, worktree, dest, entry):
            exit_code = 1
    return exit_code


def copy_shared(root: Path, cwd: Path, pairs: list[tuple[str, str]], *, link: bool, once: bool) -> int:
    """Share files into the current worktree and, unless once, record them in .wt."""
    config = read_config(root)
    worktree = current_worktree(root, cwd)
    if worktree is None and once:
        print(f"{PROG}: --once only makes sense inside a worktree", file=sys.stderr)
        return 1

    exit_code = 0
    for raw_src, dest in pairs:
        entry = {"link": link, "source": parse_source(raw_src, cwd)}
        if worktree is not None and not share_file(root, worktree, dest, entry):
            exit_code = 1
        if not once:
            config["sharedFiles"][dest] = entry
            print(f"{PROG}: recorded {dest} for new worktrees")

    if not once:
        write_config(root, config)
    return exit_code


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=PROG, description="Set up and manage git repos as a set of worktrees.")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    clone_cmd = commands.add_parser("clone", help="Clone git repo and set it up for worktrees")
    clone_cmd.add_argument("url", help="Repository to clone.")
    clone_cmd.add_argument("dest", nargs="?", default=None, help="Target directory. Defaults to the repo name.")

    add_cmd = commands.add_parser("add", help="Add a worktree for a branch and copy shared files into it")
    add_cmd.add_argument("branch")

    cp_cmd = commands.add_parser(
        "cp",
        help="Share files across worktrees",
        description=(
            "SRC is either wt:<worktree> (the same relative path inside another worktree) "
            "or a plain path. DEST must be relative to the worktree root."
        ),
    )
    cp_cmd.add_argument("-o", "--once", action="store_true", help="Only apply to the current worktree.")
    cp_cmd.add_argument("-l", "--link", action="store_true", help="Symlink instead of copying.")
    cp_cmd.add_argument("paths", nargs="*", metavar="SRC DEST")

    return parser


def _pairs(parser: argparse.ArgumentParser, paths: list[str]) -> list[tuple[str, str]]:
    if not paths or len(paths) % 2:
        parser.error("cp expects one or more SRC DEST pairs")
    pairs = list(zip(paths[::2], paths[1::2]))
    for _src, dest in pairs:
        try:
            check_dest(dest)
        except ValueError as exc:
            parser.error(str(exc))
    return pairs


def main(argv: list[str] | None = None) -> int:
    """Entry point for the wt command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.error("a command is required")
    pairs = _pairs(parser, args.paths) if args.command == "cp" else []

    cwd = Path.cwd()
    try:
        if args.command == "clone":
            return clone(args.url, Path(args.dest) if args.dest else None, cwd)
        root = find_root(cwd)
        if args.command == "add":
            return add_worktree(root, args.branch)
        return copy_shared(root, cwd, pairs, link=args.link, once=args.once)
    except (devbin_shell.CommandError, OSError, ValueError) as exc:
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
