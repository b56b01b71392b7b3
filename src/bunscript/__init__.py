"""devbin: create bun scripts and link them into a bin directory on $PATH."""

from __future__ import annotations

import argparse
import os
import shlex
import sys
from pathlib import Path

import devbin_links
import devbin_shell
from bunscript import manifest
from devbin_links import LinkResult

PROG = "bunscript"
HOME_VAR = "BUNSCRIPT_HOME"
BIN_DIR_VAR = "BUNSCRIPT_BIN_DIR"
SHEBANG_VAR = "BUNSCRIPT_SHEBANG"
DEFAULT_SHEBANG = "#!/usr/bin/env bun"
DEFAULT_HOME_NAME = ".bunscript"
SCRIPTS_DIR = "scripts"
SCRIPT_SUFFIX = ".ts"

_TEMPLATES_DIR = Path(__file__).parent / "templates"

EPILOG = f"""\
Scripts live in <home>/{SCRIPTS_DIR}, where <home> is --home, ${HOME_VAR} or
$HOME/{DEFAULT_HOME_NAME}. If <home>/{manifest.MANIFEST_FILE} exists, its "bin" map is
kept in sync with the scripts and re-published with `bun link`.

The location into which scripts will be linked will be chosen from the
following list, in order of preference:
  - ${BIN_DIR_VAR}
  - $HOME/bin
  - $HOME/.local/bin
If none of those directories exist, linking will fail.

The shebang of new scripts can be controlled using ${SHEBANG_VAR}. If not
set, it defaults to `{DEFAULT_SHEBANG}`.
"""


def _load_template(name: str, **replacements: str) -> str:
    """Load a template file, optionally substituting placeholders."""
    content = (_TEMPLATES_DIR / name).read_text()
    for key, value in replacements.items():
        content = content.replace(key, value)
    return content


def render_script() -> str:
    shebang = os.environ.get(SHEBANG_VAR) or DEFAULT_SHEBANG
    return _load_template("script.ts.template", **{"$SHEBANG": shebang})


def resolve_home(cli_home: str | None) -> Path:
    if cli_home:
        return Path(cli_home).resolve()
    env_home = os.environ.get(HOME_VAR)
    if env_home:
        return Path(env_home).resolve()
    user_home = os.environ.get("HOME")
    if not user_home:
        raise FileNotFoundError(f"$HOME isn't set; set ${HOME_VAR} to choose where scripts live")
    return (Path(user_home) / DEFAULT_HOME_NAME).resolve()


def script_path(home: Path, name: str) -> Path:
    return home / SCRIPTS_DIR / f"{name}{SCRIPT_SUFFIX}"


def list_scripts(home: Path) -> list[Path]:
    scripts_dir = home / SCRIPTS_DIR
    if not scripts_dir.is_dir():
        return []
    return sorted(p for p in scripts_dir.iterdir() if p.suffix == SCRIPT_SUFFIX and p.is_file())


def find_link_dirs() -> list[Path]:
    return devbin_links.find_link_dirs(BIN_DIR_VAR, prog=PROG)


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


def link_script(link_dir: Path, script: Path) -> bool:
    """Link one script into link_dir. Returns False if the link was refused."""
    name = script.stem
    target = link_dir / name
    result = devbin_links.ensure_link(script, target)

    if result is LinkResult.REJECTED:
        print(f"{PROG}: failed to link {name}: {target} already exists", file=sys.stderr)
        return False
    if result is LinkResult.SKIPPED:
        print(f"{PROG}: skipped {name}: link already exists")
    else:
        print(f"{PROG}: linked {name} as {target}")
    return True


def sync_manifest(home: Path, update) -> None:
    if manifest.sync(home, update):
        print(f"{PROG}: updated {manifest.MANIFEST_FILE} and re-published bin links")


def link_scripts(home: Path) -> int:
    """Link every script. Returns 1 if any link was refused."""
    exit_code = 0
    link_dir = find_link_dirs()[0]

    # Links record the path inside the scripts dir, never its realpath, so unlink can claim them.
    scripts = list_scripts(home)
    for script in scripts:
        if not link_script(link_dir, script):
            exit_code = 1

    names = [script.stem for script in scripts]
    sync_manifest(home, lambda data: manifest.mirror_scripts(data, names))
    return exit_code


def unlink_scripts(home: Path, name: str | None = None) -> int:
    """Remove our links from every bin directory, optionally only name's."""
    removed = devbin_links.remove_links(find_link_dirs(), home / SCRIPTS_DIR, name)
    for _link, dest in removed:
        print(f"{PROG}: unlinked link to script {dest.stem}")
    if not removed:
        print(f"{PROG}: no links to remove")

    sync_manifest(home, lambda data: manifest.drop_scripts(data, name))
    return 0


# ---------------------------------------------------------------------------
# Script lifecycle
# ---------------------------------------------------------------------------


def create_script(home: Path, name: str, *, edit: bool = False, link: bool = True) -> int:
    script = script_path(home, name)
    if name == manifest.SELF_NAME or script.exists():
        print(f"{PROG}: script {name} already exists", file=sys.stderr)
        return 1

    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text(render_script())
    print(f"{PROG}: created new script {name} at {script}")

    if edit:
        editor = os.environ.get("EDITOR")
        if editor:
            devbin_shell.run([*shlex.split(editor), str(script)], capture=False)
        else:
            print(f"{PROG}: WARNING: $EDITOR isn't set; not opening {script}", file=sys.stderr)

    if not link:
        return 0

    if not link_script(find_link_dirs()[0], script):
        return 1
    names = [s.stem for s in list_scripts(home)]
    sync_manifest(home, lambda data: manifest.mirror_scripts(data, names))
    return 0


def remove_script(home: Path, name: str) -> int:
    script = script_path(home, name)
    if not script.is_file():
        print(f"{PROG}: couldn't find script {name}", file=sys.stderr)
        return 1

    unlink_scripts(home, name)
    script.unlink()
    print(f"{PROG}: removed script {name}")
    return 0


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def script_name(value: str) -> str:
    if not value or "/" in value or value.startswith("."):
        raise argparse.ArgumentTypeError(f"invalid script name: {value!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Create bun scripts and link them into $PATH.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--home",
        default=None,
        help=f"Scripts home directory. Defaults to ${HOME_VAR}, then $HOME/{DEFAULT_HOME_NAME}.",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    new = commands.add_parser("new", help="Create a new bun script with the given name")
    new.add_argument("name", type=script_name)
    new.add_argument("--edit", action="store_true", help="Open the new script in $EDITOR.")
    new.add_argument("--no-link", dest="link", action="store_false", help="Do not link the new script.")

    rm = commands.add_parser("rm", help="Remove an existing script")
    rm.add_argument("name", type=script_name)

    commands.add_parser("link", help="Link existing scripts into $PATH")

    unlink = commands.add_parser("unlink", help="Unlink scripts from $PATH (only the named script if provided)")
    unlink.add_argument("name", nargs="?", type=script_name, default=None)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the bunscript command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.error("a command is required")

    try:
        home = resolve_home(args.home)
        if args.command == "new":
            return create_script(home, args.name, edit=args.edit, link=args.link)
        if args.command == "rm":
            return remove_script(home, args.name)
        if args.command == "link":
            return link_scripts(home)
        return unlink_scripts(home, args.name)
    except (devbin_shell.CommandError, OSError, ValueError) as exc:
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return 1
