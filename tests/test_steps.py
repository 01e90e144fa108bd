# tests/test_steps.py
"""Standard step bodies: sub-task isolation and the final validation step."""

from __future__ import annotations

from pathlib import Path

from codesweep.core.contracts import RunOptions
from codesweep.pipeline.steps import (
    VALIDATION_OUTPUT_DIR,
    StepContext,
    cleanup_configurations,
    organize_scripts,
    validate_cleanup,
)
from conftest import FakeToolRunner, out, write_json


def _ctx(root: Path, runner: FakeToolRunner, dry_run: bool = True) -> StepContext:
    return StepContext(root=root, runner=runner, options=RunOptions(dry_run=dry_run))


def test_config_subtasks_fail_independently(tmp_path: Path) -> None:
    write_json(tmp_path / "app.json", {"expo": {"name": "Demo", "slug": "demo"}})

    payload = cleanup_configurations(_ctx(tmp_path, FakeToolRunner()))

    assert payload["expo"]["success"] is True
    assert payload["eas"] == {"success": False, "error": "eas.json not found"}
    assert payload["firebase"]["success"] is False


def test_script_subtasks_fail_independently(tmp_path: Path) -> None:
    payload = organize_scripts(_ctx(tmp_path, FakeToolRunner()))
    assert payload["debug"]["success"] is True
    assert payload["package_scripts"]["success"] is False


def test_validation_dry_run_only_type_checks(tmp_path: Path) -> None:
    runner = FakeToolRunner()

    result = validate_cleanup(_ctx(tmp_path, runner))

    assert result.is_ok()
    assert runner.calls == ["pnpm tsc --noEmit"]
    assert result.unwrap() == {
        "typescript": True,
        "dependencies": None,
        "build": None,
        "errors": [],
    }


def test_validation_real_run_installs_and_builds(tmp_path: Path) -> None:
    runner = FakeToolRunner()

    result = validate_cleanup(_ctx(tmp_path, runner, dry_run=False))

    assert result.is_ok()
    assert runner.calls == [
        "pnpm tsc --noEmit",
        "pnpm install --frozen-lockfile",
        f"pnpm expo export --platform web --output-dir {VALIDATION_OUTPUT_DIR}",
    ]


def test_validation_collects_every_failure(tmp_path: Path) -> None:
    runner = FakeToolRunner(
        {
            "pnpm tsc": out("a.ts(1,1): error TS2322\n", exit_code=2),
            "pnpm install": out(exit_code=1, stderr="lockfile out of date\n"),
        }
    )

    result = validate_cleanup(_ctx(tmp_path, runner, dry_run=False))

    assert result.is_failed()
    reason = result.reason()
    assert "TypeScript validation failed: a.ts(1,1): error TS2322" in reason
    assert "Dependency validation failed: lockfile out of date" in reason
    assert "Build validation failed" not in reason
