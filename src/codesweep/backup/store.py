"""
Backup/rollback store: run snapshots and per-step checkpoints.

The store produces and restores point-in-time copies of the project tree,
using git when available and a recursive directory copy otherwise.

Methods
-------
git
    The snapshot is a branch (``<prefix>-<id>``) created from HEAD after any
    uncommitted work was stashed. Checkpoints are commits on the current
    branch (only made when the tree is dirty). Rolling back resets the tree.
filesystem
    The snapshot is a copy of :data:`~codesweep.backup.fs.IMPORTANT_PATHS`
    under ``<backup_dir>/<id>/``. Checkpoints copy the caller's protected paths
    under ``<backup_dir>/<id>/checkpoints/<step>/``.

Persistence
-----------
The live manifest ``<backup_dir>/<id>/backup-manifest.json`` is rewritten
after every snapshot, checkpoint and rollback, so a later process can resume
the store with :meth:`BackupStore.load_latest` (this is how the ``rollback``
command finds the previous run). ``cleanup()`` writes the final
``backup-manifest-<id>.json`` into the project root. ``<backup_dir>`` carries a
``.gitignore`` of ``*`` so the store never shows up in ``git status``.

Every operation touches the real repository or filesystem; dry runs are
enforced by callers not invoking the store at all.
"""

from __future__ import annotations

import json
import secrets
import string
import time
from pathlib import Path
from typing import Any

from codesweep.backup.fs import (
    IMPORTANT_PATHS,
    copy_items,
    copy_recursive,
    mirror_recursive,
    remove_tree,
    safe_dirname,
)
from codesweep.backup.git import GitClient
from codesweep.core.contracts.backup import (
    BackupManifest,
    Checkpoint,
    RollbackRecord,
    Snapshot,
)
from codesweep.core.contracts.base import BackupMethod
from codesweep.core.errors import (
    BackupError,
    CheckpointNotFoundError,
    CodesweepError,
    RollbackError,
)
from codesweep.core.settings import get_logger, load_settings
from codesweep.core.tools import SubprocessToolRunner, ToolRunner

logger = get_logger("codesweep.backup")

MANIFEST_NAME = "backup-manifest.json"
CHECKPOINT_MANIFEST_NAME = "checkpoint.json"
STASH_MESSAGE = "Pre-cleanup stash"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_backup_id() -> str:
    """Return ``<epoch-ms>-<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


class BackupStore:
    """Snapshot / checkpoint / rollback for one project root."""

    def __init__(
        self,
        root: str | Path | None = None,
        *,
        use_git: bool = True,
        backup_dir: str | None = None,
        branch_prefix: str | None = None,
        runner: ToolRunner | None = None,
        manifest: BackupManifest | None = None,
    ) -> None:
        cfg = load_settings()
        self.root = Path(root) if root is not None else Path.cwd()
        self.use_git = use_git
        self.backup_root = self.root / (backup_dir or cfg.backup_dir)
        self.runner: ToolRunner = runner or SubprocessToolRunner(cwd=self.root)
        self.git = GitClient(self.runner, self.root)
        self._is_git_repo: bool | None = None

        if manifest is None:
            backup_id = new_backup_id()
            manifest = BackupManifest(
                id=backup_id,
                method="git" if use_git else "filesystem",
                branch=f"{branch_prefix or cfg.branch_prefix}-{backup_id}",
                path=str(self.backup_root / backup_id),
            )
        self.manifest = manifest
        self.checkpoints: dict[str, Checkpoint] = {c.name: c for c in manifest.checkpoints}

    # ------------------------------------------------------------------ props

    @property
    def id(self) -> str:
        return self.manifest.id

    @property
    def branch(self) -> str:
        return self.manifest.branch

    @property
    def path(self) -> Path:
        return Path(self.manifest.path)

    @property
    def method(self) -> BackupMethod:
        return self.manifest.method

    @property
    def is_git_repo(self) -> bool:
        """Whether the root is inside a git repository (checked once, lazily)."""
        if self._is_git_repo is None:
            self._is_git_repo = self.git.is_repo()
        return self._is_git_repo

    def _git_mode(self) -> bool:
        return self.method == "git" and self.is_git_repo

    # --------------------------------------------------------------- snapshot

    def create_snapshot(self) -> Snapshot:
        """Take the whole-run backup.

        Git failures fall back to a filesystem snapshot. A filesystem failure
        raises :class:`BackupError`: without a backup the run must not proceed.
        """
        logger.info("Creating initial backup...")
        if self.use_git and self.is_git_repo:
            try:
                return self._create_git_snapshot()
            except CodesweepError as e:
                logger.warning("Git backup failed (%s), falling back to filesystem backup", e)
        return self._create_filesystem_snapshot()

    def _create_git_snapshot(self) -> Snapshot:
        original = self.git.current_branch()
        if not original:
            raise BackupError("HEAD is detached; no branch to return to")

        self.manifest.original_branch = original
        if self.git.is_dirty():
            logger.info("Uncommitted changes detected, stashing...")
            self.git.stash_push(STASH_MESSAGE)
            self.manifest.stashed = True

        try:
            self.git.create_branch(self.branch)
            logger.info("Created backup branch: %s", self.branch)
            self.git.checkout(original)
        except CodesweepError:
            self._abandon_git_snapshot(original)
            raise

        self.manifest.method = "git"
        self.manifest.success = True
        self._persist()
        return self.snapshot()

    def _abandon_git_snapshot(self, original: str) -> None:
        """Return to ``original`` and give back any stashed work before falling back."""
        try:
            self.git.checkout(original)
        except CodesweepError as e:
            logger.warning("Could not return to branch %s: %s", original, e)
        if self.manifest.stashed:
            self._restore_stash()

    def _restore_stash(self) -> None:
        """Pop the pre-cleanup stash; a failure leaves it recorded for a later rollback."""
        try:
            self.git.stash_pop()
        except CodesweepError as e:
            logger.warning("Could not restore stash: %s", e)
            return
        self.manifest.stashed = False

    def _create_filesystem_snapshot(self) -> Snapshot:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            self.manifest.method = "filesystem"
            self.manifest.files = copy_items(IMPORTANT_PATHS, self.root, self.path)
            self.manifest.success = True
            self._persist()
        except OSError as e:
            raise BackupError(f"Filesystem backup failed: {e}") from e
        logger.info("Created filesystem backup: %s", self.path)
        return self.snapshot()

    def snapshot(self) -> Snapshot:
        """Return the current snapshot view of the manifest."""
        git = self.manifest.method == "git"
        return Snapshot(
            id=self.id,
            method=self.manifest.method,
            branch=self.branch if git else None,
            original_branch=self.manifest.original_branch,
            stashed=self.manifest.stashed,
            path=None if git else str(self.path),
            files=list(self.manifest.files),
            created_at=self.manifest.created_at,
        )

    # ------------------------------------------------------------- checkpoint

    def create_checkpoint(self, name: str, files: list[str] | tuple[str, ...] = ()) -> Checkpoint:
        """Back up the state guarded by step ``name``.

        Failures are recorded on the returned checkpoint (``success=False``),
        never raised. A later checkpoint with the same name replaces this one.
        """
        logger.info("Creating checkpoint for step: %s", name)
        checkpoint = Checkpoint(name=name, method=self.method)

        if self._git_mode():
            try:
                if self.git.is_dirty():
                    checkpoint.commit = self.git.commit_all(f"Checkpoint: {name}")
                checkpoint.success = True
            except CodesweepError as e:
                checkpoint.error = str(e)
        else:
            target = self.path / "checkpoints" / safe_dirname(name)
            try:
                target.mkdir(parents=True, exist_ok=True)
                checkpoint.files = copy_items(files, self.root, target)
                checkpoint.path = str(target)
                checkpoint.success = True
                (target / CHECKPOINT_MANIFEST_NAME).write_text(
                    checkpoint.model_dump_json(indent=2), encoding="utf-8"
                )
            except OSError as e:
                checkpoint.success = False
                checkpoint.error = str(e)

        self.checkpoints[name] = checkpoint
        self.manifest.checkpoints.append(checkpoint)
        self._persist_quietly()
        return checkpoint

    # --------------------------------------------------------------- rollback

    def rollback_to_checkpoint(self, name: str) -> RollbackRecord:
        """Restore the state captured by checkpoint ``name``.

        In filesystem mode each protected directory is mirrored from its copy:
        files the step added inside it are deleted. A protected path that did
        not exist when the checkpoint was taken is not in the copy and is left
        as the step made it.

        Raises :class:`CheckpointNotFoundError` (touching nothing) if there is
        no such checkpoint and :class:`RollbackError` if restoring fails.
        """
        checkpoint = self.checkpoints.get(name)
        if checkpoint is None:
            raise CheckpointNotFoundError(name)

        logger.info("Rolling back to checkpoint: %s", name)
        record = RollbackRecord(name=name, method=checkpoint.method)
        try:
            if checkpoint.method == "git":
                if checkpoint.commit:
                    self.git.reset_hard(checkpoint.commit)
                    record.commit = checkpoint.commit
            elif checkpoint.path and Path(checkpoint.path).exists():
                source = Path(checkpoint.path)
                for item in checkpoint.files:
                    if (source / item).exists():
                        mirror_recursive(source / item, self.root / item)
                record.files = list(checkpoint.files)
            else:
                raise RollbackError("No valid rollback data found")
            record.success = True
        except (CodesweepError, OSError) as e:
            record.error = str(e)
            self.manifest.rollbacks.append(record)
            self._persist_quietly()
            raise RollbackError(f"Rollback failed: {e}") from e

        self.manifest.rollbacks.append(record)
        self._persist_quietly()
        logger.info("Successfully rolled back to checkpoint: %s", name)
        return record

    def rollback_to_initial(self) -> RollbackRecord:
        """Restore the whole-run snapshot.

        In git mode a failing ``git stash pop`` is logged and ignored: the
        tree is already back at the snapshot and the stash stays available.
        A filesystem snapshot taken after an abandoned git snapshot may still
        record a stash; it is popped after the files are restored.
        """
        logger.info("Rolling back to initial backup state...")
        record = RollbackRecord(name="initial", method=self.method)
        try:
            if self._git_mode():
                original = self.manifest.original_branch
                if not original:
                    raise RollbackError("original branch unknown; no git snapshot was taken")
                self.git.checkout(self.branch)
                self.git.checkout(original)
                self.git.reset_hard(self.branch)
                if self.manifest.stashed:
                    self._restore_stash()
                record.branch = self.branch
            else:
                for item in self.manifest.files:
                    source = self.path / item
                    if source.exists():
                        copy_recursive(source, self.root / item)
                record.files = list(self.manifest.files)
                if self.manifest.stashed and self.is_git_repo:
                    self._restore_stash()
            record.success = True
        except (CodesweepError, OSError) as e:
            record.error = str(e)
            self.manifest.rollbacks.append(record)
            self._persist_quietly()
            raise RollbackError(f"Initial rollback failed: {e}") from e

        self.manifest.rollbacks.append(record)
        self._persist_quietly()
        logger.info("Successfully rolled back to initial state")
        return record

    # ---------------------------------------------------------------- cleanup

    def cleanup(self, keep_backup: bool = False) -> Path:
        """Drop the backup unless ``keep_backup``; always write the final manifest."""
        logger.info("Cleaning up backup system...")
        if not keep_backup:
            if self._git_mode() and self.manifest.original_branch:
                try:
                    self.git.delete_branch(self.branch)
                    logger.info("Removed backup branch: %s", self.branch)
                except CodesweepError as e:
                    logger.warning("Could not remove backup branch: %s", e)
            if self.path.exists():
                try:
                    remove_tree(self.path)
                    logger.info("Removed backup directory: %s", self.path)
                except OSError as e:
                    logger.warning("Could not remove backup directory: %s", e)

        manifest_path = self.root / f"backup-manifest-{self.id}.json"
        manifest_path.write_text(self.manifest.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Backup manifest saved: %s", manifest_path)
        return manifest_path

    def info(self) -> dict[str, Any]:
        """Summary of the store for display."""
        return {
            "id": self.id,
            "method": self.method,
            "branch": self.branch,
            "path": str(self.path),
            "checkpoints": list(self.checkpoints),
            "manifest": self.manifest.model_dump(mode="json"),
        }

    # ------------------------------------------------------------ persistence

    def _persist(self) -> None:
        self.backup_root.mkdir(parents=True, exist_ok=True)
        ignore = self.backup_root / ".gitignore"
        if not ignore.exists():
            ignore.write_text("*\n", encoding="utf-8")
        self.path.mkdir(parents=True, exist_ok=True)
        (self.path / MANIFEST_NAME).write_text(
            self.manifest.model_dump_json(indent=2), encoding="utf-8"
        )

    def _persist_quietly(self) -> None:
        try:
            self._persist()
        except OSError as e:
            logger.warning("Could not persist backup manifest: %s", e)

    @classmethod
    def load_latest(
        cls,
        root: str | Path | None = None,
        *,
        backup_dir: str | None = None,
        runner: ToolRunner | None = None,
    ) -> BackupStore:
        """Resume the most recent store persisted under ``<root>/<backup_dir>``."""
        base = Path(root) if root is not None else Path.cwd()
        backup_root = base / (backup_dir or load_settings().backup_dir)
        candidates: list[BackupManifest] = []
        for path in backup_root.glob(f"*/{MANIFEST_NAME}"):
            try:
                candidates.append(
                    BackupManifest.model_validate(json.loads(path.read_text(encoding="utf-8")))
                )
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable manifest %s: %s", path, e)
        if not candidates:
            raise BackupError(f"No backup found under {backup_root}")

        latest = max(candidates, key=lambda m: (m.created_at, m.id))
        return cls(
            base,
            use_git=latest.method == "git",
            backup_dir=backup_dir,
            runner=runner,
            manifest=latest,
        )


__all__ = ["BackupStore", "new_backup_id", "MANIFEST_NAME"]
