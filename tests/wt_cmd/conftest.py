"""Regenerate SCENARIOS-wt.md from this suite's approved transcripts after each run.

approvaltests_config.json next to this file keeps approved/received files in approved_files/.
"""

from __future__ import annotations

from pathlib import Path

from tests.scenario_report import generate_report

SUITE_DIR = Path(__file__).parent


def pytest_sessionfinish(session, exitstatus):
    generate_report(
        title="wt scenarios",
        approved_dir=SUITE_DIR / "approved_files",
        output_path=SUITE_DIR.parents[1] / "SCENARIOS-wt.md",
    )
