"""Nox sessions for devbin: scenario suites, a console-script smoke run, and ruff."""

from __future__ import annotations

import nox

nox.options.default_venv_backend = "uv"
nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = ["tests", "smoke", "lint", "format_check"]

PYTHON_VERSIONS = ["3.10", "3.11", "3.12", "3.13"]
CONSOLE_SCRIPTS = ["wt", "bunscript"]
RUFF_PATHS = ["src", "tests", "noxfile.py"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the wt and bunscript scenario suites (git-backed wt scenarios skip without git)."""
    session.install(".[test]")
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def smoke(session: nox.Session) -> None:
    """Install the distribution and check both console scripts and `python -m bunscript` start."""
    session.install(".")
    for script in CONSOLE_SCRIPTS:
        session.run(script, "--help", silent=True)
    session.run("python", "-m", "bunscript", "--help", silent=True)


@nox.session
def lint(session: nox.Session) -> None:
    session.install("ruff")
    session.run("ruff", "check", *RUFF_PATHS)


@nox.session
def format_check(session: nox.Session) -> None:
    session.install("ruff")
    session.run("ruff", "format", "--check", *RUFF_PATHS)
