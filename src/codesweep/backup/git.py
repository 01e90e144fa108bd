"""Thin git client on top of a :class:`~codesweep.core.tools.ToolRunner`.

Each method maps to exactly one git invocation. Read-only queries return
values; mutating commands raise :class:`~codesweep.core.errors.ToolError` on a
non-zero exit.
"""

from __future__ import annotations

from pathlib import Path

from codesweep.core.tools import ToolOutput, ToolRunner


class GitClient:
    """git commands scoped to one working directory."""

    def __init__(self, runner: ToolRunner, cwd: Path) -> None:
        self.runner = runner
        self.cwd = cwd

    def _git(self, *args: str) -> ToolOutput:
        return self.runner.run("git", list(args), cwd=self.cwd)

    # ----- queries -----------------------------------------------------------
    def is_repo(self) -> bool:
        return self._git("rev-parse", "--git-dir").ok

    def is_dirty(self) -> bool:
        return bool(self._git("status", "--porcelain").check().stdout.strip())

    def current_branch(self) -> str:
        return self._git("branch", "--show-current").check().stdout.strip()

    def head(self) -> str:
        return self._git("rev-parse", "HEAD").check().stdout.strip()

    # ----- mutations ---------------------------------------------------------
    def stash_push(self, message: str) -> None:
        self._git("stash", "push", "-m", message).check()

    def stash_pop(self) -> None:
        self._git("stash", "pop").check()

    def create_branch(self, name: str) -> None:
        self._git("checkout", "-b", name).check()

    def checkout(self, ref: str) -> None:
        self._git("checkout", ref).check()

    def commit_all(self, message: str) -> str:
        """Stage everything, commit, and return the new HEAD."""
        self._git("add", ".").check()
        self._git("commit", "-m", message).check()
        return self.head()

    def reset_hard(self, ref: str) -> None:
        self._git("reset", "--hard", ref).check()

    def delete_branch(self, name: str) -> None:
        self._git("branch", "-D", name).check()


__all__ = ["GitClient"]
