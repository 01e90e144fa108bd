"""
Step runner: execute one named cleanup step under checkpoint protection.

Lifecycle of ``execute_step(name, work, ...)``
-----------------------------------------------
1. **Skip**: a name listed in ``options.skip_steps`` is recorded ``skipped``
   and returns ``Ok({"skipped": True})``. No checkpoint is taken and ``work``
   is never called.
2. **Start**: record ``started`` and count the step.
3. **Checkpoint**: on a protected run (backup enabled, not a dry run) ask the
   store for a checkpoint covering ``files_to_backup``. An error here is a
   warning; the step then runs unprotected.
4. **Work**: call ``work()``. It may return a :class:`Result` or any plain
   payload (treated as ``Ok``); a raised exception becomes ``StepFailed``.
   After a success on a checkpointed, non-dry run the validator runs (default:
   the project still type-checks). A validator that rejects or raises fails
   the step like failed work.
5. **Success**: record ``completed`` with the payload.
6. **Failure**: record ``failed``, append a :class:`StepError`, roll back to
   the checkpoint when one was taken (a rollback error is logged and recorded,
   never raised). Required steps return ``Fatal``; others log a warning and
   return the ``StepFailed``.

The runner owns the append-only :class:`StepResult` trail and the counters
that end up in the run report.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from codesweep.backup.store import BackupStore
from codesweep.core.contracts import (
    Checkpoint,
    RunOptions,
    RunSummary,
    StepError,
    StepResult,
    StepStatus,
)
from codesweep.core.errors import CodesweepError
from codesweep.core.result import Fatal, Ok, Result, failed, fatal, ok
from codesweep.core.runlog import RunLog
from codesweep.core.tools import ToolRunner
from codesweep.tasks.typescript import check_types

StepWork = Callable[[], Any]
Validator = Callable[[str, Any], Result[Any]]

_STATUS_MARKS: dict[StepStatus, str] = {
    StepStatus.STARTED: "->",
    StepStatus.COMPLETED: "ok",
    StepStatus.FAILED: "!!",
    StepStatus.SKIPPED: "--",
}


def type_check_validator(
    root: Path, runner: ToolRunner, package_manager: str = "pnpm"
) -> Validator:
    """Default validator: the step passes if ``tsc --noEmit`` still succeeds."""

    def validate(step: str, _payload: Any) -> Result[Any]:
        report = check_types(root, runner, package_manager)
        if report.passed:
            return ok(None)
        return failed(f"TypeScript compilation failed after {step}")

    return validate


def _error_details(exc: BaseException) -> dict[str, Any]:
    return {
        "type": type(exc).__name__,
        "message": str(exc),
        "traceback": "".join(traceback.format_exception(exc)),
    }


class StepRunner:
    """Runs steps one at a time and records their outcomes."""

    def __init__(
        self,
        options: RunOptions,
        log: RunLog,
        store: BackupStore | None = None,
        validator: Validator | None = None,
    ) -> None:
        self.options = options
        self.log = log
        self.store = store
        self.validator = validator
        self.steps: list[StepResult] = []
        self.errors: list[StepError] = []
        self.summary = RunSummary()

    @property
    def protected(self) -> bool:
        return self.store is not None and self.options.protected

    # ------------------------------------------------------------------ audit

    def update_progress(self, name: str, status: StepStatus, details: Any = None) -> StepResult:
        """Append one audit entry and bump the matching counter."""
        entry = StepResult(name=name, status=status, details=details)
        self.steps.append(entry)
        if status is StepStatus.COMPLETED:
            self.summary.completed_steps += 1
        elif status is StepStatus.FAILED:
            self.summary.failed_steps += 1
        elif status is StepStatus.SKIPPED:
            self.summary.skipped_steps += 1
        self.log.info(f"{_STATUS_MARKS[status]} {name}: {status.value}", details)
        return entry

    # ---------------------------------------------------------------- execute

    def execute_step(
        self,
        name: str,
        work: StepWork,
        required: bool = False,
        files_to_backup: Sequence[str] = (),
        validate: Validator | None = None,
    ) -> Result[Any]:
        if name in self.options.skip_steps:
            self.update_progress(name, StepStatus.SKIPPED, "Skipped by user request")
            return ok({"skipped": True})

        self.update_progress(name, StepStatus.STARTED)
        self.summary.total_steps += 1

        checkpoint = self._checkpoint(name, files_to_backup)

        outcome, details = self._run_work(work)
        if outcome.is_ok() and checkpoint is not None:
            check = validate or self.validator
            if check is not None:
                outcome, details = self._run_validator(check, name, outcome, details)

        if isinstance(outcome, Ok):
            self.update_progress(name, StepStatus.COMPLETED, outcome.value)
            return outcome
        return self._fail(name, outcome, details, required, checkpoint)

    def _checkpoint(self, name: str, files: Sequence[str]) -> Checkpoint | None:
        if self.store is None or not self.options.protected:
            return None
        try:
            checkpoint = self.store.create_checkpoint(name, list(files))
        except (CodesweepError, OSError) as e:
            self.log.warning(f"Failed to create checkpoint for {name}: {e}")
            return None
        if checkpoint.success:
            self.log.info(f"Checkpoint created for {name}")
        else:
            self.log.warning(f"Checkpoint for {name} incomplete: {checkpoint.error}")
        return checkpoint

    @staticmethod
    def _run_work(work: StepWork) -> tuple[Result[Any], dict[str, Any] | None]:
        try:
            value = work()
        except Exception as e:
            return failed(str(e) or type(e).__name__), _error_details(e)
        if isinstance(value, Result):
            if value.is_err():
                return value, {"message": value.reason()}
            return value, None
        return ok(value), None

    @staticmethod
    def _run_validator(
        check: Validator, name: str, outcome: Result[Any], details: dict[str, Any] | None
    ) -> tuple[Result[Any], dict[str, Any] | None]:
        """Turn a rejecting or raising validator into ``StepFailed``."""
        try:
            verdict = check(name, outcome.unwrap(None))
        except Exception as e:
            message = f"Step validation failed: {str(e) or type(e).__name__}"
            return failed(message), {**_error_details(e), "message": message}
        if verdict.is_err():
            message = f"Step validation failed: {verdict.reason()}"
            return failed(message), {"message": message}
        return outcome, details

    def _fail(
        self,
        name: str,
        outcome: Result[Any],
        details: dict[str, Any] | None,
        required: bool,
        checkpoint: Checkpoint | None,
    ) -> Result[Any]:
        reason = outcome.reason() or "unknown error"
        details = details or {"message": reason}
        self.update_progress(name, StepStatus.FAILED, details)
        error = StepError(
            step=name,
            message=reason,
            required=required,
            checkpoint=checkpoint.success if checkpoint is not None else None,
        )
        self.errors.append(error)

        if checkpoint is not None and self.store is not None:
            try:
                self.store.rollback_to_checkpoint(name)
                error.rolled_back = True
                self.log.info(f"Rolled back {name} due to failure")
            except (CodesweepError, OSError) as e:
                error.rollback_error = str(e)
                self.log.error(f"Rollback failed for {name}: {e}")

        if required:
            return fatal(f"Required step '{name}' failed: {reason}")
        if not isinstance(outcome, Fatal):
            self.log.warning(f"Non-critical step '{name}' failed, continuing...")
        return outcome


__all__ = ["StepRunner", "StepWork", "Validator", "type_check_validator"]
