"""Keep the scripts home's package.json bin-map in step with the linked scripts."""

from __future__ import annotations

import json
import stat
import sys
from pathlib import Path

import devbin_shell

MANIFEST_FILE = "package.json"
SELF_NAME = "bunscript"
SELF_ENTRY = "bin/bunscript"

LAUNCHER = """\
#!/bin/sh
exec "{python}" -m bunscript "$@"
"""


def script_entry(name: str) -> str:
    return f"scripts/{name}.ts"


def load_manifest(path: Path) -> dict:
    with open(path) as f:
        return json.load(f)


def save_manifest(path: Path, manifest: dict) -> None:
    with open(path, "w") as f:
        json.dump(manifest, f, indent=2)
        f.write("\n")


def write_launcher(package_root: Path) -> Path:
    """Make sure the file our own bin entry names exists and runs this bunscript.

    The launcher is rewritten only when its content changed (e.g. another
    interpreter installed the tool).
    """
    launcher = package_root / SELF_ENTRY
    content = LAUNCHER.format(python=sys.executable)
    if not launcher.is_file() or launcher.read_text() != content:
        launcher.parent.mkdir(parents=True, exist_ok=True)
        launcher.write_text(content)
    launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return launcher


def mirror_scripts(manifest: dict, script_names: list[str]) -> dict:
    """Replace the bin-map with one entry per script, plus our own entry."""
    bin_map = {SELF_NAME: SELF_ENTRY}
    for name in sorted(script_names):
        if name != SELF_NAME:
            bin_map[name] = script_entry(name)
    manifest["bin"] = bin_map
    return manifest


def drop_scripts(manifest: dict, name: str | None = None) -> dict:
    """Remove one script's entry, or every script entry when name is None.

    Our own entry always survives.
    """
    bin_map = dict(manifest.get("bin") or {})
    if name is None:
        bin_map = {}
    else:
        bin_map.pop(name, None)
    bin_map[SELF_NAME] = SELF_ENTRY
    manifest["bin"] = bin_map
    return manifest


def publish(package_root: Path) -> None:
    """Re-expose the package's bin entries with `bun link`.

    Raises CommandError carrying bun's stderr if it fails. The manifest has
    already been written by then and is left as is.
    """
    devbin_shell.run(["bun", "link"], cwd=package_root)


def sync(package_root: Path, update) -> bool:
    """Apply update to the manifest, save it and publish.

    Returns False without doing anything when the package has no manifest.
    """
    path = package_root / MANIFEST_FILE
    if not path.is_file():
        return False
    manifest = update(load_manifest(path))
    write_launcher(package_root)
    save_manifest(path, manifest)
    publish(package_root)
    return True
