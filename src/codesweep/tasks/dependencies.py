"""
Dependency scanner: unused / missing npm dependencies.

Runs ``depcheck --json`` through the package manager and cross-checks the
"unused" verdict against dynamic ``require()`` / ``import()`` calls found in
the source tree. depcheck cannot see those, so any unused dependency that is
loaded dynamically is moved to ``should_keep``.

depcheck exits non-zero whenever it finds something; its stdout is parsed
regardless of the exit code. Unparseable output yields an empty analysis.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.tools import ToolRunner, package_tool

from ._scan import (
    DYNAMIC_IMPORT_PATTERNS,
    logger,
    package_name,
    parse_json_output,
    read_text,
    source_files,
)


class DepcheckResult(BaseModel):
    """The parts of depcheck's JSON we use."""

    dependencies: list[str] = Field(default_factory=list)
    dev_dependencies: list[str] = Field(default_factory=list)
    missing: dict[str, list[str]] = Field(default_factory=dict)
    invalid_files: dict[str, Any] = Field(default_factory=dict)
    invalid_dirs: dict[str, Any] = Field(default_factory=dict)


class DependencyReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    unused_dependencies: list[str] = Field(default_factory=list)
    unused_dev_dependencies: list[str] = Field(default_factory=list)
    missing: dict[str, list[str]] = Field(default_factory=dict)
    dynamic_imports: list[str] = Field(default_factory=list)
    safe_to_remove: list[str] = Field(default_factory=list)
    should_keep: list[str] = Field(default_factory=list)
    invalid_files: dict[str, Any] = Field(default_factory=dict)
    invalid_dirs: dict[str, Any] = Field(default_factory=dict)

    @property
    def total_unused(self) -> int:
        return len(self.unused_dependencies) + len(self.unused_dev_dependencies)


def run_depcheck(root: Path, runner: ToolRunner, package_manager: str = "pnpm") -> DepcheckResult:
    """Run depcheck and parse its JSON, whatever the exit code."""
    out = package_tool(runner, package_manager, "depcheck", "--json", cwd=root)
    data = parse_json_output(out.stdout)
    if not isinstance(data, dict):
        logger.error("Error running depcheck: %s", (out.stderr or "no JSON output").strip())
        return DepcheckResult()
    return DepcheckResult(
        dependencies=list(data.get("dependencies") or []),
        dev_dependencies=list(data.get("devDependencies") or []),
        missing=dict(data.get("missing") or {}),
        invalid_files=dict(data.get("invalidFiles") or {}),
        invalid_dirs=dict(data.get("invalidDirs") or {}),
    )


def scan_dynamic_imports(root: Path) -> list[str]:
    """Package names loaded through literal ``require()`` / ``import()`` calls."""
    found: set[str] = set()
    for path in source_files(root):
        content = read_text(path)
        if content is None:
            continue
        for pattern in DYNAMIC_IMPORT_PATTERNS:
            for match in pattern.finditer(content):
                name = package_name(match.group(1))
                if name:
                    found.add(name)
    return sorted(found)


def split_removable(
    candidates: list[str], dynamic_imports: list[str]
) -> tuple[list[str], list[str]]:
    """Split ``candidates`` into (safe_to_remove, should_keep)."""
    dynamic = set(dynamic_imports)
    safe = [d for d in candidates if d not in dynamic]
    keep = [d for d in candidates if d in dynamic]
    for dep in keep:
        logger.info("Keeping %s - found in dynamic imports", dep)
    return safe, keep


def scan_dependencies(
    root: Path, runner: ToolRunner, package_manager: str = "pnpm"
) -> DependencyReport:
    """Build the full dependency report for ``root``."""
    logger.info("Scanning dependencies in %s", root)
    depcheck = run_depcheck(root, runner, package_manager)
    dynamic = scan_dynamic_imports(root)
    safe, keep = split_removable([*depcheck.dependencies, *depcheck.dev_dependencies], dynamic)
    report = DependencyReport(
        unused_dependencies=depcheck.dependencies,
        unused_dev_dependencies=depcheck.dev_dependencies,
        missing=depcheck.missing,
        dynamic_imports=dynamic,
        safe_to_remove=safe,
        should_keep=keep,
        invalid_files=depcheck.invalid_files,
        invalid_dirs=depcheck.invalid_dirs,
    )
    logger.info(
        "Dependencies: %d unused, %d safe to remove, %d missing",
        report.total_unused,
        len(safe),
        len(report.missing),
    )
    return report


__all__ = [
    "DepcheckResult",
    "DependencyReport",
    "run_depcheck",
    "scan_dynamic_imports",
    "split_removable",
    "scan_dependencies",
]
