# tests/test_backup_git.py
"""
Backup store in git mode, driven through a fake runner.

The fake models a repository on ``main`` whose working tree is dirty until a
commit (or stash) happens; assertions are on the exact git command sequence.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from codesweep.backup import BackupStore
from codesweep.core.tools import ToolOutput
from conftest import FakeToolRunner, out


class GitRepo:
    """Minimal mutable state behind the fake git commands."""

    def __init__(self, dirty: bool = True, branch: str = "main") -> None:
        self.dirty = dirty
        self.branch = branch

    def status(self, _line: str) -> ToolOutput:
        return out(" M package.json\n" if self.dirty else "")

    def clean(self, _line: str) -> ToolOutput:
        self.dirty = False
        return out()

    def runner(self) -> FakeToolRunner:
        return FakeToolRunner(
            {
                "git rev-parse --git-dir": out(".git\n"),
                "git rev-parse HEAD": out("abc123\n"),
                "git branch --show-current": out(f"{self.branch}\n"),
                "git status --porcelain": self.status,
                "git stash push": self.clean,
                "git commit": self.clean,
            }
        )


@pytest.fixture  # type: ignore[misc]
def repo() -> GitRepo:
    return GitRepo()


def test_snapshot_stashes_branches_and_returns(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, runner=runner, branch_prefix="bk")

    snapshot = store.create_snapshot()

    assert snapshot.method == "git"
    assert snapshot.branch == f"bk-{store.id}"
    assert snapshot.original_branch == "main"
    assert snapshot.stashed is True
    assert runner.git_mutations() == [
        "git stash push -m Pre-cleanup stash",
        f"git checkout -b bk-{store.id}",
        "git checkout main",
    ]


def test_clean_tree_is_not_stashed(tmp_path: Path) -> None:
    runner = GitRepo(dirty=False).runner()
    snapshot = BackupStore(tmp_path, runner=runner).create_snapshot()
    assert snapshot.stashed is False
    assert runner.called("git stash") == []


def test_git_failure_falls_back_to_filesystem(tmp_path: Path, repo: GitRepo) -> None:
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    runner = repo.runner()
    runner.responses["git checkout -b"] = out(exit_code=128, stderr="fatal: cannot lock ref")

    snapshot = BackupStore(tmp_path, runner=runner).create_snapshot()

    assert snapshot.method == "filesystem"
    assert snapshot.files == ["package.json"]


def test_fallback_gives_back_stashed_work(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    runner.responses["git checkout -b"] = out(exit_code=128, stderr="fatal: cannot lock ref")
    store = BackupStore(tmp_path, runner=runner)

    snapshot = store.create_snapshot()

    assert snapshot.method == "filesystem"
    assert snapshot.stashed is False
    assert runner.git_mutations() == [
        "git stash push -m Pre-cleanup stash",
        f"git checkout -b {store.branch}",
        "git checkout main",
        "git stash pop",
    ]


def test_stash_left_by_fallback_is_popped_on_rollback(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    runner.responses["git checkout -b"] = out(exit_code=128, stderr="fatal: cannot lock ref")
    runner.responses["git stash pop"] = out(exit_code=1, stderr="conflict")
    store = BackupStore(tmp_path, runner=runner)

    snapshot = store.create_snapshot()
    assert snapshot.method == "filesystem" and snapshot.stashed is True

    runner.responses["git stash pop"] = out()
    runner.calls.clear()
    record = store.rollback_to_initial()

    assert record.success is True
    assert runner.git_mutations() == ["git stash pop"]
    assert store.manifest.stashed is False


def test_detached_head_falls_back_to_filesystem(tmp_path: Path) -> None:
    runner = GitRepo(branch="").runner()
    snapshot = BackupStore(tmp_path, runner=runner).create_snapshot()
    assert snapshot.method == "filesystem"
    assert runner.git_mutations() == []


def test_use_git_false_never_touches_git_state(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, use_git=False, runner=runner)
    store.create_snapshot()
    store.create_checkpoint("Step", [])
    assert store.method == "filesystem"
    assert runner.git_mutations() == []


def test_checkpoint_commits_dirty_tree(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, runner=runner)

    checkpoint = store.create_checkpoint("Analyze Dependencies", ["package.json"])

    assert checkpoint.success and checkpoint.commit == "abc123"
    assert runner.git_mutations() == [
        "git add .",
        "git commit -m Checkpoint: Analyze Dependencies",
    ]


def test_clean_checkpoint_has_no_commit_and_rollback_is_noop(tmp_path: Path) -> None:
    runner = GitRepo(dirty=False).runner()
    store = BackupStore(tmp_path, runner=runner)

    checkpoint = store.create_checkpoint("Step", [])
    record = store.rollback_to_checkpoint("Step")

    assert checkpoint.success and checkpoint.commit is None
    assert record.success and record.commit is None
    assert runner.called("git reset") == []


def test_rollback_to_checkpoint_resets_hard(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, runner=runner)
    store.create_checkpoint("Step", [])

    store.rollback_to_checkpoint("Step")

    assert runner.called("git reset") == ["git reset --hard abc123"]


def test_failed_commit_is_recorded_not_raised(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    runner.responses["git commit"] = out(exit_code=1, stderr="hook rejected")
    checkpoint = BackupStore(tmp_path, runner=runner).create_checkpoint("Step", [])
    assert checkpoint.success is False
    assert "hook rejected" in (checkpoint.error or "")


def test_rollback_to_initial_sequence(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, runner=runner)
    store.create_snapshot()
    runner.calls.clear()

    record = store.rollback_to_initial()

    assert record.success and record.branch == store.branch
    assert runner.git_mutations() == [
        f"git checkout {store.branch}",
        "git checkout main",
        f"git reset --hard {store.branch}",
        "git stash pop",
    ]


def test_stash_pop_failure_is_tolerated(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, runner=runner)
    store.create_snapshot()
    runner.responses["git stash pop"] = out(exit_code=1, stderr="conflict")

    record = store.rollback_to_initial()

    assert record.success is True


def test_cleanup_deletes_backup_branch(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, runner=runner)
    store.create_snapshot()

    store.cleanup()

    assert runner.called("git branch -D") == [f"git branch -D {store.branch}"]
    assert (tmp_path / f"backup-manifest-{store.id}.json").exists()


def test_cleanup_keep_leaves_branch(tmp_path: Path, repo: GitRepo) -> None:
    runner = repo.runner()
    store = BackupStore(tmp_path, runner=runner)
    store.create_snapshot()
    store.cleanup(keep_backup=True)
    assert runner.called("git branch -D") == []
