"""
Cleanup orchestrator: walk the pipeline, keep the backup, write the report.

State machine
-------------
``idle -> running -> completed | aborted``

- A real, protected run (``--apply`` with backups on) takes a snapshot first.
  If that fails the run is aborted before any step executes.
- Steps run strictly in order through :class:`StepRunner`. A ``Fatal`` result
  (a required step failed) aborts the walk; the remaining steps never start.
- Whatever the outcome, a :class:`RunReport` is built, written to
  ``cleanup-report-<timestamp>.json`` and summarised on the console.
- After a protected run the backup is dropped when every step succeeded, and
  kept (with a hint to run ``codesweep rollback``) otherwise.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codesweep.backup.store import BackupStore
from codesweep.core.contracts import (
    RunOptions,
    RunReport,
    RunStatus,
    Snapshot,
    filename_timestamp,
    utc_timestamp,
)
from codesweep.core.errors import BackupError
from codesweep.core.runlog import RunLog
from codesweep.core.settings import load_settings
from codesweep.core.tools import SubprocessToolRunner, ToolRunner
from codesweep.pipeline.runner import StepRunner, type_check_validator
from codesweep.pipeline.steps import Step, StepContext, build_steps

ROLLBACK_HINT = "codesweep rollback"


@dataclass
class OrchestrationOutcome:
    """What :meth:`Orchestrator.run` hands back to the caller."""

    success: bool
    report: RunReport
    report_path: Path | None = None
    error: str | None = None


class Orchestrator:
    """Drives one cleanup run over ``root``.

    Parameters
    ----------
    options:
        Run configuration; defaults to a dry run.
    steps:
        Pipeline to execute. Defaults to :func:`build_steps` for ``root``.
    store:
        Backup store; built from settings when backups are enabled and none
        is given.
    runner:
        Tool runner shared by the store, the default steps and the default
        validator.
    """

    def __init__(
        self,
        options: RunOptions | None = None,
        *,
        steps: Sequence[Step] | None = None,
        store: BackupStore | None = None,
        runner: ToolRunner | None = None,
        root: str | Path | None = None,
        console: Console | None = None,
    ) -> None:
        cfg = load_settings()
        self.options = options or RunOptions()
        self.root = Path(root) if root is not None else Path.cwd()
        self.console = console or Console()
        self.runner: ToolRunner = runner or SubprocessToolRunner(cwd=self.root)

        self.log = RunLog(
            self.root / self.options.log_file, verbose=self.options.verbose, console=self.console
        )
        self.log.info("Cleanup orchestrator initialized")
        self.log.info("Options", self.options)

        self.store: BackupStore | None = None
        if self.options.use_backup:
            self.store = store or BackupStore(
                self.root, use_git=self.options.use_git, runner=self.runner
            )

        ctx = StepContext(self.root, self.runner, self.options, cfg.package_manager)
        self.steps: list[Step] = list(steps) if steps is not None else build_steps(ctx)
        self.step_runner = StepRunner(
            self.options,
            self.log,
            store=self.store,
            validator=type_check_validator(self.root, self.runner, cfg.package_manager),
        )
        self.status: str = "idle"

    # -------------------------------------------------------------------- run

    def run(self) -> OrchestrationOutcome:
        """Execute the pipeline once and persist the report."""
        self.status = "running"
        started = utc_timestamp()
        snapshot: Snapshot | None = None
        error: str | None = None
        self.log.info("Starting project cleanup...")

        try:
            if self.store is not None and self.options.protected:
                try:
                    snapshot = self.store.create_snapshot()
                    self.log.success(f"Backup created: {snapshot.method}", snapshot)
                except BackupError as e:
                    error = f"Backup failed: {e}"
                    self.log.error(error)

            if error is None:
                for step in self.steps:
                    result = self.step_runner.execute_step(
                        step.name, step.work, required=step.required, files_to_backup=step.files
                    )
                    if result.is_fatal():
                        error = result.reason()
                        break

            status: RunStatus = "aborted" if error else "completed"
            self.status = status
            if error:
                self.log.error("Cleanup orchestration failed", {"error": error})

            report = self._build_report(started, status, snapshot)
            report_path = self._write_report(report)
            self.print_summary(report)
            self.log.success(f"Full report saved to: {report_path}")
            self._finish_backup(snapshot, report)
        finally:
            self.log.close()

        return OrchestrationOutcome(
            success=status == "completed", report=report, report_path=report_path, error=error
        )

    def close(self) -> None:
        """Close the run log (used on interrupt)."""
        self.log.close()

    # ---------------------------------------------------------------- helpers

    def _build_report(
        self, started: str, status: RunStatus, snapshot: Snapshot | None
    ) -> RunReport:
        summary = self.step_runner.summary.model_copy()
        summary.success_rate = summary.format_rate(summary.completed_steps, summary.total_steps)
        summary.finished_at = utc_timestamp()
        warnings = [
            f"{e.step}: rollback failed: {e.rollback_error}"
            for e in self.step_runner.errors
            if e.rollback_error
        ]
        return RunReport(
            timestamp=started,
            status=status,
            steps=list(self.step_runner.steps),
            summary=summary,
            errors=list(self.step_runner.errors),
            warnings=warnings,
            backup=snapshot,
            options=self.options,
        )

    def _write_report(self, report: RunReport) -> Path:
        path = self.root / f"cleanup-report-{filename_timestamp()}.json"
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        return path

    def _finish_backup(self, snapshot: Snapshot | None, report: RunReport) -> None:
        if self.store is None or snapshot is None:
            return
        keep = report.status == "aborted" or report.summary.failed_steps > 0
        try:
            self.store.cleanup(keep_backup=keep)
        except OSError as e:
            self.log.warning(f"Could not finalize backup: {e}")
        if keep:
            self.log.info("Backup preserved due to failures")
            self.log.info(f"To roll back all changes, run: {ROLLBACK_HINT}")
        else:
            self.log.info("Backup cleaned up")

    def print_summary(self, report: RunReport) -> None:
        s = report.summary
        table = Table(show_header=False, box=None)
        table.add_row("Started", report.timestamp)
        table.add_row("Finished", s.finished_at or "")
        table.add_row("Status", report.status)
        table.add_row("Total steps", str(s.total_steps))
        table.add_row("Completed", f"[green]{s.completed_steps}[/green]")
        table.add_row("Failed", f"[red]{s.failed_steps}[/red]")
        table.add_row("Skipped", str(s.skipped_steps))
        table.add_row("Success rate", s.success_rate)
        self.console.print(Panel(table, title="Cleanup summary", expand=False))

        if self.options.dry_run:
            self.console.print(
                "[cyan]DRY RUN - no changes were made. Use --apply to execute.[/cyan]"
            )
        for i, err in enumerate(report.errors, 1):
            self.console.print(f"[red]{i}. {err.step}: {err.message}[/red]", highlight=False)
        for i, warning in enumerate(report.warnings, 1):
            self.console.print(f"[yellow]{i}. {warning}[/yellow]", highlight=False)


__all__ = ["Orchestrator", "OrchestrationOutcome", "ROLLBACK_HINT"]
