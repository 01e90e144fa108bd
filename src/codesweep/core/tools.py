"""External tool runner.

Every external CLI (git, tsc, depcheck, knip, ts-prune, unimported, expo,
pnpm, ...) is launched through the small :class:`ToolRunner` protocol:

    run(command, args, cwd=None) -> ToolOutput(exit_code, stdout, stderr)

A non-zero exit code is *not* an exception: several analysis tools exit
non-zero when they find issues but still print a usable JSON report. Callers
decide what a failure means; :meth:`ToolOutput.check` is the strict helper.
Only a tool that cannot be launched at all yields exit code 127.

Tests substitute a fake runner instead of spawning processes.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from codesweep.core.errors import ToolError
from codesweep.core.settings import get_logger

logger = get_logger("codesweep.tools")

NOT_FOUND_EXIT_CODE = 127


@dataclass(frozen=True, slots=True)
class ToolOutput:
    """Captured result of one tool invocation."""

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def check(self) -> ToolOutput:
        """Return ``self`` on success, raise :class:`ToolError` otherwise."""
        if not self.ok:
            detail = (self.stderr or self.stdout).strip() or "no output"
            raise ToolError(self.command, detail, exit_code=self.exit_code)
        return self


class ToolRunner(Protocol):
    """Capability interface for launching external commands."""

    def run(
        self, command: str, args: Sequence[str] = (), cwd: Path | None = None
    ) -> ToolOutput: ...


class SubprocessToolRunner:
    """:class:`ToolRunner` backed by :func:`subprocess.run`."""

    def __init__(self, cwd: Path | None = None, timeout: float | None = None) -> None:
        self.cwd = cwd
        self.timeout = timeout

    def run(
        self, command: str, args: Sequence[str] = (), cwd: Path | None = None
    ) -> ToolOutput:
        argv = [command, *args]
        label = " ".join(argv)
        logger.debug("exec: %s", label)
        try:
            proc = subprocess.run(
                argv,
                cwd=cwd or self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            return ToolOutput(label, NOT_FOUND_EXIT_CODE, "", str(e))
        except subprocess.TimeoutExpired as e:
            raise ToolError(label, f"timed out after {self.timeout}s") from e
        return ToolOutput(label, proc.returncode, proc.stdout or "", proc.stderr or "")


def package_tool(
    runner: ToolRunner, package_manager: str, tool: str, *args: str, cwd: Path | None = None
) -> ToolOutput:
    """Run a project-local tool through the package manager (``pnpm <tool> ...``)."""
    return runner.run(package_manager, [tool, *args], cwd=cwd)


__all__ = [
    "ToolOutput",
    "ToolRunner",
    "SubprocessToolRunner",
    "package_tool",
    "NOT_FOUND_EXIT_CODE",
]
