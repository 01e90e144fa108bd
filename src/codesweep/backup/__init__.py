"""Backup/rollback store for cleanup runs (git branch or filesystem copy)."""

from __future__ import annotations

from .store import MANIFEST_NAME, BackupStore, new_backup_id

__all__ = ["BackupStore", "MANIFEST_NAME", "new_backup_id"]
