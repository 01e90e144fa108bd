"""
The standard cleanup pipeline.

Order matters: tooling is configured first, analyses run on the untouched
tree, config/script rewrites come next, and validation runs last. Only the
first and last steps are required.

| # | Step                   | Required | Protected paths                           |
|---|------------------------|----------|-------------------------------------------|
| 1 | Setup Analysis Tools   | yes      | tsconfig.json                             |
| 2 | Analyze Dependencies   | no       | package.json                              |
| 3 | Detect Dead Code       | no       |                                           |
| 4 | Manage Assets          | no       | assets/                                   |
| 5 | Cleanup Configurations | no       | Expo, EAS and Firebase config files       |
| 6 | Organize Scripts       | no       | scripts/, package.json                    |
| 7 | Validate Cleanup       | yes      |                                           |
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from codesweep.core.contracts import RunOptions
from codesweep.core.errors import CodesweepError
from codesweep.core.result import Result, failed, ok
from codesweep.core.tools import ToolRunner, package_tool
from codesweep.tasks import (
    analyze_assets,
    apply_strict_config,
    check_types,
    clean_expo_config,
    clean_package_scripts,
    detect_dead_code,
    normalize_firebase_config,
    optimize_eas_config,
    organize_debug_scripts,
    scan_dependencies,
)

VALIDATION_OUTPUT_DIR = "dist/validation"


@dataclass(frozen=True)
class Step:
    """One pipeline entry: what to call and how to protect it."""

    name: str
    work: Callable[[], Any]
    required: bool = False
    files: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StepContext:
    """Everything the standard steps need to reach the project."""

    root: Path
    runner: ToolRunner
    options: RunOptions
    package_manager: str = "pnpm"


def _isolated(fn: Callable[[], BaseModel]) -> dict[str, Any]:
    """Run one sub-task; its failure is reported, not raised."""
    try:
        report = fn()
    except (CodesweepError, OSError, ValueError) as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "report": report.model_dump(mode="json")}


def setup_analysis_tools(ctx: StepContext) -> dict[str, Any]:
    report = apply_strict_config(
        ctx.root, ctx.runner, dry_run=ctx.options.dry_run, package_manager=ctx.package_manager
    )
    return report.model_dump(mode="json")


def analyze_dependencies(ctx: StepContext) -> dict[str, Any]:
    report = scan_dependencies(ctx.root, ctx.runner, ctx.package_manager)
    return {
        "unused_dependencies": report.total_unused,
        "safe_to_remove": len(report.safe_to_remove),
        "should_keep": len(report.should_keep),
        "missing_dependencies": len(report.missing),
        "report": report.model_dump(mode="json"),
    }


def find_dead_code(ctx: StepContext) -> dict[str, Any]:
    report = detect_dead_code(ctx.root, ctx.runner, ctx.package_manager)
    return {**report.summary(), "report": report.model_dump(mode="json")}


def manage_assets(ctx: StepContext) -> dict[str, Any]:
    report = analyze_assets(ctx.root, remove=False, dry_run=ctx.options.dry_run)
    return {
        "total_assets": len(report.all_assets),
        "unused_assets": len(report.unused_assets),
        "unused_size": report.formatted_total_unused_size,
        "report": report.model_dump(mode="json"),
    }


def cleanup_configurations(ctx: StepContext) -> dict[str, Any]:
    dry = ctx.options.dry_run
    return {
        "expo": _isolated(lambda: clean_expo_config(ctx.root, dry_run=dry, remove_unused=True)),
        "eas": _isolated(lambda: optimize_eas_config(ctx.root, dry_run=dry)),
        "firebase": _isolated(lambda: normalize_firebase_config(ctx.root, dry_run=dry)),
    }


def organize_scripts(ctx: StepContext) -> dict[str, Any]:
    dry = ctx.options.dry_run
    return {
        "debug": _isolated(lambda: organize_debug_scripts(ctx.root, dry_run=dry)),
        "package_scripts": _isolated(
            lambda: clean_package_scripts(
                ctx.root, ctx.runner, dry_run=dry, package_manager=ctx.package_manager
            )
        ),
    }


def validate_cleanup(ctx: StepContext) -> Result[dict[str, Any]]:
    """Type-check, then (real runs only) reinstall and export the web build.

    Fails when any check fails; the payload lists every error found.
    """
    pm = ctx.package_manager
    results: dict[str, Any] = {"typescript": False, "dependencies": None, "build": None}
    errors: list[str] = []

    types = check_types(ctx.root, ctx.runner, pm)
    results["typescript"] = types.passed
    if not types.passed:
        errors.append("TypeScript validation failed: " + "; ".join(types.errors[:5]))

    if not ctx.options.dry_run:
        install = ctx.runner.run(pm, ["install", "--frozen-lockfile"], cwd=ctx.root)
        results["dependencies"] = install.ok
        if not install.ok:
            detail = (install.stderr or install.stdout).strip()
            errors.append(f"Dependency validation failed: {detail}")

        build = package_tool(
            ctx.runner, pm, "expo", "export", "--platform", "web",
            "--output-dir", VALIDATION_OUTPUT_DIR, cwd=ctx.root,
        )  # fmt: skip
        results["build"] = build.ok
        if not build.ok:
            detail = (build.stderr or build.stdout).strip()
            errors.append(f"Build validation failed: {detail}")

    results["errors"] = errors
    if errors:
        return failed("; ".join(errors))
    return ok(results)


def build_steps(ctx: StepContext) -> list[Step]:
    """Return the standard seven-step pipeline bound to ``ctx``."""
    return [
        Step("Setup Analysis Tools", lambda: setup_analysis_tools(ctx), True, ("tsconfig.json",)),
        Step("Analyze Dependencies", lambda: analyze_dependencies(ctx), False, ("package.json",)),
        Step("Detect Dead Code", lambda: find_dead_code(ctx)),
        Step("Manage Assets", lambda: manage_assets(ctx), False, ("assets/",)),
        Step(
            "Cleanup Configurations",
            lambda: cleanup_configurations(ctx),
            False,
            ("app.json", "app.config.js", "eas.json", "firebase.json", "firebaseConfig.ts"),
        ),
        Step(
            "Organize Scripts", lambda: organize_scripts(ctx), False, ("scripts/", "package.json")
        ),
        Step("Validate Cleanup", lambda: validate_cleanup(ctx), True),
    ]


STEP_NAMES: tuple[str, ...] = (
    "Setup Analysis Tools",
    "Analyze Dependencies",
    "Detect Dead Code",
    "Manage Assets",
    "Cleanup Configurations",
    "Organize Scripts",
    "Validate Cleanup",
)


__all__ = [
    "Step",
    "StepContext",
    "STEP_NAMES",
    "build_steps",
    "setup_analysis_tools",
    "analyze_dependencies",
    "find_dead_code",
    "manage_assets",
    "cleanup_configurations",
    "organize_scripts",
    "validate_cleanup",
]
