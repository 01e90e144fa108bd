from __future__ import annotations

from .backup import BackupManifest, Checkpoint, RollbackRecord, Snapshot
from .base import BackupMethod, Record, filename_timestamp, utc_timestamp
from .options import DEFAULT_LOG_FILE, RunOptions
from .run import RunReport, RunStatus, RunSummary, StepError, StepResult, StepStatus

__all__ = [
    "BackupManifest",
    "BackupMethod",
    "Checkpoint",
    "DEFAULT_LOG_FILE",
    "Record",
    "RollbackRecord",
    "RunOptions",
    "RunReport",
    "RunStatus",
    "RunSummary",
    "Snapshot",
    "StepError",
    "StepResult",
    "StepStatus",
    "filename_timestamp",
    "utc_timestamp",
]
