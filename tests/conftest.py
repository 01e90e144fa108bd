# tests/conftest.py
"""
Shared fixtures.

``FakeToolRunner`` stands in for :class:`~codesweep.core.tools.SubprocessToolRunner`:
it records every invocation as a single string (``"git checkout -b x"``) and
answers from a table of command prefixes. The longest matching prefix wins; an
unmatched command succeeds with empty output. A response may be a
:class:`ToolOutput` or a callable taking the full command line, which lets a
test model state (e.g. a tree that is dirty until it is committed).
"""

from __future__ import annotations

import io
import json
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from codesweep.core.settings import load_settings
from codesweep.core.tools import ToolOutput

Response = ToolOutput | Callable[[str], ToolOutput]


def out(stdout: str = "", exit_code: int = 0, stderr: str = "") -> ToolOutput:
    """Build a ToolOutput without caring about the command label."""
    return ToolOutput("fake", exit_code, stdout, stderr)


class FakeToolRunner:
    """In-memory :class:`~codesweep.core.tools.ToolRunner`."""

    def __init__(self, responses: dict[str, Response] | None = None) -> None:
        self.responses: dict[str, Response] = dict(responses or {})
        self.calls: list[str] = []

    def run(self, command: str, args: Sequence[str] = (), cwd: Path | None = None) -> ToolOutput:
        line = " ".join([command, *args])
        self.calls.append(line)
        matches = [key for key in self.responses if line == key or line.startswith(key + " ")]
        if not matches:
            return ToolOutput(line, 0, "", "")
        response = self.responses[max(matches, key=len)]
        result = response(line) if callable(response) else response
        return ToolOutput(line, result.exit_code, result.stdout, result.stderr)

    def called(self, prefix: str) -> list[str]:
        return [c for c in self.calls if c == prefix or c.startswith(prefix + " ")]

    def git_mutations(self) -> list[str]:
        read_only = ("git rev-parse", "git status", "git branch --show-current")
        return [c for c in self.calls if c.startswith("git ") and not c.startswith(read_only)]


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate tests from the developer's environment and the settings cache."""
    for name in (
        "CODESWEEP_BACKUP_DIR",
        "CODESWEEP_BRANCH_PREFIX",
        "CODESWEEP_PACKAGE_MANAGER",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture  # type: ignore[misc]
def fake_runner() -> FakeToolRunner:
    return FakeToolRunner()


@pytest.fixture  # type: ignore[misc]
def no_git_runner() -> FakeToolRunner:
    """A runner for a directory that is not a git repository."""
    return FakeToolRunner({"git rev-parse --git-dir": out(exit_code=128, stderr="not a git repo")})


@pytest.fixture  # type: ignore[misc]
def quiet_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=120)


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path
