# tests/test_step_runner.py
"""
Step runner lifecycle: skip, checkpoint, work, validate, fail and roll back.

Protected runs use a real filesystem-mode store under ``tmp_path``; the
rollback-failure case uses a MagicMock store.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from codesweep.backup import BackupStore
from codesweep.core.contracts import Checkpoint, RunOptions, StepStatus
from codesweep.core.errors import RollbackError, ToolError
from codesweep.core.result import Fatal, Result, StepFailed, failed, fatal, ok
from codesweep.core.runlog import RunLog, read_entries
from codesweep.pipeline.runner import StepRunner, type_check_validator
from conftest import FakeToolRunner, out

APPLY = RunOptions(dry_run=False)


@pytest.fixture  # type: ignore[misc]
def log(tmp_path: Path, quiet_console: Console) -> RunLog:
    return RunLog(tmp_path / "run.log", console=quiet_console)


@pytest.fixture  # type: ignore[misc]
def store(tmp_path: Path, no_git_runner: FakeToolRunner) -> BackupStore:
    return BackupStore(tmp_path, runner=no_git_runner)


def boom() -> Any:
    raise ValueError("boom")


def statuses(runner: StepRunner, name: str) -> list[StepStatus]:
    return [s.status for s in runner.steps if s.name == name]


def test_skipped_step_never_runs_or_checkpoints(log: RunLog, store: BackupStore) -> None:
    options = RunOptions(dry_run=False, skip_steps="Manage Assets")
    runner = StepRunner(options, log, store=store)
    work = MagicMock()

    result = runner.execute_step("Manage Assets", work, files_to_backup=["assets/"])

    assert result.is_ok() and result.unwrap() == {"skipped": True}
    work.assert_not_called()
    assert statuses(runner, "Manage Assets") == [StepStatus.SKIPPED]
    assert runner.summary.skipped_steps == 1 and runner.summary.total_steps == 0
    assert store.checkpoints == {}
    assert not (store.path / "checkpoints").exists()


def test_successful_step_records_payload(log: RunLog) -> None:
    runner = StepRunner(RunOptions(), log)

    result = runner.execute_step("Analyze", lambda: {"unused": 2})

    assert result.unwrap() == {"unused": 2}
    assert statuses(runner, "Analyze") == [StepStatus.STARTED, StepStatus.COMPLETED]
    assert runner.steps[-1].details == {"unused": 2}
    assert runner.summary.completed_steps == 1 and runner.summary.total_steps == 1


def test_required_failure_is_fatal(log: RunLog) -> None:
    runner = StepRunner(RunOptions(), log)

    result = runner.execute_step("Setup Analysis Tools", boom, required=True)

    assert isinstance(result, Fatal)
    assert result.reason() == "Required step 'Setup Analysis Tools' failed: boom"
    assert runner.errors[0].required is True
    assert runner.steps[-1].details["type"] == "ValueError"
    assert "Traceback" in runner.steps[-1].details["traceback"]


def test_non_required_failure_continues(log: RunLog, tmp_path: Path) -> None:
    runner = StepRunner(RunOptions(), log)

    result = runner.execute_step("Detect Dead Code", boom)

    assert isinstance(result, StepFailed) and result.reason() == "boom"
    assert runner.summary.failed_steps == 1
    assert runner.errors[0].checkpoint is None
    log.close()
    levels = [e["level"] for e in read_entries(tmp_path / "run.log")]
    assert "warning" in levels


def test_failed_result_from_work_is_a_failure(log: RunLog) -> None:
    runner = StepRunner(RunOptions(), log)
    result = runner.execute_step("Validate", lambda: failed("tsc errors"))
    assert isinstance(result, StepFailed)
    assert runner.errors[0].message == "tsc errors"


def test_fatal_from_non_required_work_is_passed_through(log: RunLog) -> None:
    runner = StepRunner(RunOptions(), log)
    result = runner.execute_step("Step", lambda: fatal("disk full"))
    assert isinstance(result, Fatal) and result.reason() == "disk full"


def test_protected_failure_restores_checkpointed_file(
    log: RunLog, store: BackupStore, tmp_path: Path
) -> None:
    target = tmp_path / "a.txt"
    target.write_text("v1", encoding="utf-8")

    def mutate_then_fail() -> None:
        target.write_text("v2", encoding="utf-8")
        raise RuntimeError("step broke")

    runner = StepRunner(APPLY, log, store=store)
    result = runner.execute_step("Edit", mutate_then_fail, files_to_backup=["a.txt"])

    assert result.is_failed()
    assert target.read_text(encoding="utf-8") == "v1"
    assert runner.errors[0].checkpoint is True
    assert runner.errors[0].rolled_back is True


def test_dry_run_never_checkpoints(log: RunLog, store: BackupStore) -> None:
    runner = StepRunner(RunOptions(dry_run=True), log, store=store)
    runner.execute_step("Step", boom, files_to_backup=["package.json"])
    assert store.checkpoints == {}
    assert runner.errors[0].checkpoint is None


def test_validator_failure_rolls_back(log: RunLog, store: BackupStore, tmp_path: Path) -> None:
    target = tmp_path / "tsconfig.json"
    target.write_text("{}", encoding="utf-8")

    def rewrite() -> dict[str, bool]:
        target.write_text('{"strict": true}', encoding="utf-8")
        return {"changed": True}

    def reject(step: str, payload: Any) -> Result[Any]:
        assert payload == {"changed": True}
        return failed(f"TypeScript compilation failed after {step}")

    runner = StepRunner(APPLY, log, store=store, validator=reject)
    result = runner.execute_step("Setup", rewrite, files_to_backup=["tsconfig.json"])

    assert result.is_failed()
    assert "Step validation failed" in result.reason()
    assert target.read_text(encoding="utf-8") == "{}"


def test_raising_validator_fails_and_rolls_back(
    log: RunLog, store: BackupStore, tmp_path: Path
) -> None:
    target = tmp_path / "a.txt"
    target.write_text("v1", encoding="utf-8")

    def rewrite() -> str:
        target.write_text("v2", encoding="utf-8")
        return "rewritten"

    def timeout(step: str, payload: Any) -> Result[Any]:
        raise ToolError("pnpm tsc --noEmit", "timed out after 5s")

    runner = StepRunner(APPLY, log, store=store, validator=timeout)
    result = runner.execute_step("Step", rewrite, files_to_backup=["a.txt"])

    assert result.is_failed()
    assert result.reason() == "Step validation failed: pnpm tsc --noEmit: timed out after 5s"
    assert statuses(runner, "Step") == [StepStatus.STARTED, StepStatus.FAILED]
    assert runner.errors[0].rolled_back is True
    assert target.read_text(encoding="utf-8") == "v1"


def test_raising_validator_on_required_step_is_fatal(log: RunLog, store: BackupStore) -> None:
    validator = MagicMock(side_effect=RuntimeError("tsc crashed"))
    runner = StepRunner(APPLY, log, store=store, validator=validator)

    result = runner.execute_step("Setup", lambda: 1, required=True)

    assert isinstance(result, Fatal)
    assert result.reason() == "Required step 'Setup' failed: Step validation failed: tsc crashed"


def test_validator_skipped_without_checkpoint(log: RunLog) -> None:
    validator = MagicMock(return_value=failed("nope"))
    runner = StepRunner(RunOptions(), log, validator=validator)
    assert runner.execute_step("Step", lambda: 1).is_ok()
    validator.assert_not_called()


def test_rollback_failure_is_logged_not_raised(log: RunLog) -> None:
    store = MagicMock(spec=BackupStore)
    store.create_checkpoint.return_value = Checkpoint(name="Step", method="git", success=True)
    store.rollback_to_checkpoint.side_effect = RollbackError("reset failed")

    runner = StepRunner(APPLY, log, store=store)
    result = runner.execute_step("Step", boom)

    assert result.is_failed()
    store.rollback_to_checkpoint.assert_called_once_with("Step")
    assert runner.errors[0].rolled_back is False
    assert runner.errors[0].rollback_error == "reset failed"


def test_checkpoint_exception_runs_step_unprotected(log: RunLog) -> None:
    store = MagicMock(spec=BackupStore)
    store.create_checkpoint.side_effect = OSError("disk full")

    runner = StepRunner(APPLY, log, store=store)
    result = runner.execute_step("Step", lambda: ok("done"))

    assert result.unwrap() == "done"
    store.rollback_to_checkpoint.assert_not_called()


def test_type_check_validator(tmp_path: Path) -> None:
    passing = type_check_validator(tmp_path, FakeToolRunner(), "pnpm")
    assert passing("Step", None).is_ok()

    failing_runner = FakeToolRunner(
        {"pnpm tsc": out("src/a.ts(1,1): error TS2304: Cannot find name 'x'.", exit_code=2)}
    )
    verdict = type_check_validator(tmp_path, failing_runner, "pnpm")("Analyze", None)
    assert verdict.is_failed()
    assert verdict.reason() == "TypeScript compilation failed after Analyze"
    assert failing_runner.calls == ["pnpm tsc --noEmit"]
