"""Backup contracts: Snapshot, Checkpoint, RollbackRecord, BackupManifest.

These models are what the backup store persists in
``<backup_dir>/<id>/backup-manifest.json`` (live state, rewritten after every
mutation) and in ``backup-manifest-<id>.json`` (final summary written by
``cleanup()``).

Contract notes
--------------
- A :class:`Checkpoint` in git mode carries ``commit`` only if the tree was
  dirty when it was taken; without a commit, rolling back is a no-op.
- A filesystem :class:`Checkpoint` lists in ``files`` only the protected paths
  that existed and were copied.
- ``success=False`` plus ``error`` records a failure that was *caught*, not raised.
"""

from __future__ import annotations

from pydantic import Field

from .base import BackupMethod, Record, utc_timestamp


class Snapshot(Record):
    """Whole-run backup taken before any step executes."""

    id: str
    method: BackupMethod
    branch: str | None = Field(default=None, description="Snapshot branch (git mode)")
    original_branch: str | None = None
    stashed: bool = False
    path: str | None = Field(default=None, description="Backup directory (filesystem mode)")
    files: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_timestamp)

    @property
    def locator(self) -> str:
        """Branch name in git mode, directory path in filesystem mode."""
        return (self.branch if self.method == "git" else self.path) or ""


class Checkpoint(Record):
    """Per-step backup taken immediately before that step runs."""

    name: str
    method: BackupMethod
    commit: str | None = None
    path: str | None = None
    files: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_timestamp)
    success: bool = False
    error: str | None = None


class RollbackRecord(Record):
    """One performed (or attempted) rollback."""

    name: str
    method: BackupMethod | None = None
    commit: str | None = None
    branch: str | None = None
    files: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_timestamp)
    success: bool = False
    error: str | None = None


class BackupManifest(Record):
    """Aggregate state of one backup store instance."""

    id: str
    created_at: str = Field(default_factory=utc_timestamp)
    method: BackupMethod
    branch: str
    path: str
    original_branch: str | None = None
    stashed: bool = False
    files: list[str] = Field(default_factory=list)
    checkpoints: list[Checkpoint] = Field(default_factory=list)
    rollbacks: list[RollbackRecord] = Field(default_factory=list)
    success: bool = False


__all__ = ["Snapshot", "Checkpoint", "RollbackRecord", "BackupManifest"]
