"""Exception hierarchy for codesweep.

Expected failures inside a step are converted into
:class:`~codesweep.core.result.StepFailed` values at the step-runner boundary;
these exceptions are how the lower layers (tool runner, backup store,
collaborators) report them.
"""

from __future__ import annotations


class CodesweepError(Exception):
    """Base class for all errors raised by codesweep."""


class ToolError(CodesweepError):
    """An external tool could not be launched or returned unusable output."""

    def __init__(self, command: str, message: str, exit_code: int | None = None) -> None:
        super().__init__(f"{command}: {message}")
        self.command = command
        self.exit_code = exit_code


class ConfigFileError(CodesweepError):
    """A project file is missing or cannot be parsed."""


class BackupError(CodesweepError):
    """The backup store could not create or load a backup."""


class CheckpointNotFoundError(BackupError):
    """Rollback was requested for a step that has no checkpoint."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Checkpoint '{name}' not found")
        self.name = name


class RollbackError(BackupError):
    """Restoring a checkpoint or the initial snapshot failed."""


__all__ = [
    "CodesweepError",
    "ToolError",
    "ConfigFileError",
    "BackupError",
    "CheckpointNotFoundError",
    "RollbackError",
]
