"""Run contracts: StepResult, StepError, RunSummary, RunReport.

This module defines the audit trail of an orchestration run:

- :class:`StepResult` entries are appended (never edited) as steps move through
  ``started`` → ``completed`` / ``failed`` (or straight to ``skipped``).
- :class:`RunReport` aggregates them once the walk is over. It is written to
  ``cleanup-report-<timestamp>.json`` and never mutated afterwards.

Versioning
----------
Field names are snake_case; the report is consumed by people and by the
``codesweep`` CLI only, so no external schema is pinned.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import Field

from .backup import Snapshot
from .base import Record, utc_timestamp
from .options import RunOptions

RunStatus = Literal["completed", "aborted"]


class StepStatus(str, Enum):
    """Lifecycle status of a step entry."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(Record):
    """One append-only audit entry."""

    name: str
    status: StepStatus
    details: Any = None
    timestamp: str = Field(default_factory=utc_timestamp)


class StepError(Record):
    """Failure record for the report's error list."""

    step: str
    message: str
    required: bool = False
    checkpoint: bool | None = Field(
        default=None, description="Checkpoint success flag, or None if none was taken"
    )
    rolled_back: bool = False
    rollback_error: str | None = None


class RunSummary(Record):
    """Step tallies for one run."""

    total_steps: int = 0
    completed_steps: int = 0
    failed_steps: int = 0
    skipped_steps: int = 0
    success_rate: str = "0%"
    finished_at: str | None = None

    @staticmethod
    def format_rate(completed: int, total: int) -> str:
        """Return ``"NN.NN%"`` or ``"0%"`` when nothing ran."""
        if total <= 0:
            return "0%"
        return f"{completed / total * 100:.2f}%"


class RunReport(Record):
    """Persisted summary of all step outcomes for one run."""

    timestamp: str
    status: RunStatus
    steps: list[StepResult] = Field(default_factory=list)
    summary: RunSummary = Field(default_factory=RunSummary)
    errors: list[StepError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    backup: Snapshot | None = None
    options: RunOptions = Field(default_factory=RunOptions)

    def statuses(self) -> dict[str, StepStatus]:
        """Return the final status per step name (last entry wins)."""
        out: dict[str, StepStatus] = {}
        for entry in self.steps:
            out[entry.name] = entry.status
        return out


__all__ = ["StepStatus", "StepResult", "StepError", "RunSummary", "RunReport", "RunStatus"]
