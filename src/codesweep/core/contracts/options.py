"""RunOptions: the explicit configuration record for one orchestration run."""

from __future__ import annotations

from pydantic import Field, field_validator

from .base import Record

DEFAULT_LOG_FILE = "cleanup-orchestrator.log"


class RunOptions(Record):
    """Every option the orchestrator recognizes, with its default.

    Fields
    ------
    dry_run : bool
        Preview only. No snapshot, no checkpoints, no writes. Default ``True``.
    verbose : bool
        Echo structured log payloads to the console.
    skip_steps : list[str]
        Step names to mark ``skipped`` without running them.
    log_file : str
        Path of the JSON-lines run log.
    use_backup : bool
        Enable the backup/rollback store.
    use_git : bool
        Prefer a git snapshot when inside a repository.
    """

    dry_run: bool = True
    verbose: bool = False
    skip_steps: list[str] = Field(default_factory=list)
    log_file: str = DEFAULT_LOG_FILE
    use_backup: bool = True
    use_git: bool = True

    @field_validator("skip_steps", mode="before")
    @classmethod
    def _split_csv(cls, v: object) -> object:
        """Accept ``"A,B"`` as well as ``["A", "B"]``; blank names are dropped."""
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, list | tuple):
            return [str(x).strip() for x in v if str(x).strip()]
        return v

    @property
    def protected(self) -> bool:
        """True when checkpoints and snapshots should be taken."""
        return self.use_backup and not self.dry_run


__all__ = ["RunOptions", "DEFAULT_LOG_FILE"]
