# tests/test_contracts.py
"""Run and backup contracts: defaults, parsing and JSON round-trips."""

from __future__ import annotations

import json
import re

from codesweep.core.contracts import (
    BackupManifest,
    Checkpoint,
    RunOptions,
    RunReport,
    RunSummary,
    Snapshot,
    StepResult,
    StepStatus,
    filename_timestamp,
    utc_timestamp,
)


def test_run_options_defaults_to_protected_dry_run() -> None:
    opts = RunOptions()
    assert opts.dry_run is True
    assert opts.use_backup is True and opts.use_git is True
    assert opts.log_file == "cleanup-orchestrator.log"
    assert opts.protected is False
    assert RunOptions(dry_run=False).protected is True
    assert RunOptions(dry_run=False, use_backup=False).protected is False


def test_skip_steps_accepts_csv_and_lists() -> None:
    assert RunOptions(skip_steps="Manage Assets, Detect Dead Code,").skip_steps == [
        "Manage Assets",
        "Detect Dead Code",
    ]
    assert RunOptions(skip_steps=["A", " ", "B "]).skip_steps == ["A", "B"]
    assert RunOptions(skip_steps="").skip_steps == []


def test_timestamps_have_millisecond_utc_format() -> None:
    ts = utc_timestamp()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", ts)
    assert filename_timestamp("2025-01-02T03:04:05.678Z") == "2025-01-02T03-04-05-678Z"


def test_format_rate() -> None:
    assert RunSummary.format_rate(0, 0) == "0%"
    assert RunSummary.format_rate(5, 7) == "71.43%"
    assert RunSummary.format_rate(3, 3) == "100.00%"


def test_report_statuses_uses_last_entry_per_step() -> None:
    report = RunReport(
        timestamp=utc_timestamp(),
        status="completed",
        steps=[
            StepResult(name="A", status=StepStatus.STARTED),
            StepResult(name="A", status=StepStatus.COMPLETED),
            StepResult(name="B", status=StepStatus.SKIPPED),
        ],
    )
    assert report.statuses() == {"A": StepStatus.COMPLETED, "B": StepStatus.SKIPPED}
    dumped = json.loads(report.model_dump_json())
    assert dumped["steps"][1]["status"] == "completed"


def test_manifest_tolerates_extra_keys_and_round_trips() -> None:
    manifest = BackupManifest(
        id="1-abc",
        method="filesystem",
        branch="cleanup-backup-1-abc",
        path="/tmp/x",
        checkpoints=[Checkpoint(name="Step", method="filesystem", files=["a"], success=True)],
    )
    raw = json.loads(manifest.model_dump_json())
    raw["unknown"] = 1
    again = BackupManifest.model_validate(raw)
    assert again.checkpoints[0].files == ["a"]
    assert again.id == "1-abc"


def test_snapshot_locator_depends_on_method() -> None:
    git = Snapshot(id="1", method="git", branch="cleanup-backup-1")
    fs = Snapshot(id="1", method="filesystem", path="/b/1")
    assert git.locator == "cleanup-backup-1"
    assert fs.locator == "/b/1"
