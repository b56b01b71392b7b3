"""devbin: run external tools (git, bun, $EDITOR) and surface their failures."""

from __future__ import annotations

import subprocess
from pathlib import Path


class CommandError(RuntimeError):
    """An external command exited non-zero."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        message = f"`{' '.join(cmd)}` exited with status {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)


def run(cmd: list[str], cwd: Path | None = None, *, capture: bool = True) -> str:
    """Run cmd to completion and return its stdout.

    With capture=False the command inherits the terminal (used for editors);
    stdout is then empty.
    """
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=capture,
        text=True,
    )
    if result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stderr if capture else "")
    return result.stdout.strip() if capture else ""


def succeeds(cmd: list[str], cwd: Path | None = None) -> bool:
    """Return True if cmd exits 0. Output is discarded."""
    result = subprocess.run(cmd, cwd=cwd, capture_output=True)
    return result.returncode == 0
