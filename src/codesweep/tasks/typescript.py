"""TypeScript checks: ``tsc --noEmit`` and the strict ``tsconfig.json`` options."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.errors import ConfigFileError
from codesweep.core.tools import ToolRunner, package_tool

from ._scan import load_json, logger, write_json

STRICT_OPTIONS: dict[str, bool] = {
    "strict": True,
    "noUnusedLocals": True,
    "noUnusedParameters": True,
    "exactOptionalPropertyTypes": True,
    "noFallthroughCasesInSwitch": True,
    "noImplicitReturns": True,
}


class TypeCheckReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    passed: bool = False
    errors: list[str] = Field(default_factory=list)


class StrictConfigReport(BaseModel):
    changed_options: list[str] = Field(default_factory=list)
    tsconfig_updated: bool = False
    compilation_passed: bool = False
    compilation_errors: list[str] = Field(default_factory=list)


def check_types(root: Path, runner: ToolRunner, package_manager: str = "pnpm") -> TypeCheckReport:
    """Run ``tsc --noEmit``; compiler diagnostics become ``errors``."""
    out = package_tool(runner, package_manager, "tsc", "--noEmit", cwd=root)
    if out.ok:
        return TypeCheckReport(passed=True)
    lines = [ln for ln in (out.stdout or out.stderr).splitlines() if ln.strip()]
    return TypeCheckReport(passed=False, errors=lines or [f"exit code {out.exit_code}"])


def strict_mode_issues(config: dict[str, Any]) -> list[str]:
    """Options from :data:`STRICT_OPTIONS` that are missing or set differently."""
    options = config.get("compilerOptions") or {}
    issues: list[str] = []
    for name, expected in STRICT_OPTIONS.items():
        if name not in options:
            issues.append(f"missing: {name}")
        elif options[name] != expected:
            issues.append(f"{name}: expected {expected}, got {options[name]}")
    return issues


def apply_strict_config(
    root: Path, runner: ToolRunner, dry_run: bool = True, package_manager: str = "pnpm"
) -> StrictConfigReport:
    """Merge the strict compiler options into ``tsconfig.json`` and type-check.

    The file is only written when not ``dry_run`` and something changed. A
    missing ``tsconfig.json`` is created with just the strict options.
    """
    path = root / "tsconfig.json"
    config: dict[str, Any] = {}
    if path.exists():
        loaded = load_json(path)
        if not isinstance(loaded, dict):
            raise ConfigFileError("tsconfig.json must contain a JSON object")
        config = loaded

    options = dict(config.get("compilerOptions") or {})
    changed = [k for k, v in STRICT_OPTIONS.items() if options.get(k) != v]
    report = StrictConfigReport(changed_options=changed)
    if changed and not dry_run:
        options.update(STRICT_OPTIONS)
        config["compilerOptions"] = options
        write_json(path, config)
        report.tsconfig_updated = True
        logger.info("Updated tsconfig.json: %s", ", ".join(changed))

    check = check_types(root, runner, package_manager)
    report.compilation_passed = check.passed
    report.compilation_errors = check.errors
    return report


__all__ = [
    "STRICT_OPTIONS",
    "TypeCheckReport",
    "StrictConfigReport",
    "check_types",
    "strict_mode_issues",
    "apply_strict_config",
]
