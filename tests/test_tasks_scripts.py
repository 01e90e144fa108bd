# tests/test_tasks_scripts.py
"""Debug script organizer, package.json script cleaner and TypeScript checks."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from codesweep.core.errors import ConfigFileError
from codesweep.tasks import (
    apply_strict_config,
    check_types,
    clean_package_scripts,
    organize_debug_scripts,
)
from codesweep.tasks.debug_scripts import rewrite_scripts
from codesweep.tasks.package_scripts import categorize, check_references
from codesweep.tasks.typescript import STRICT_OPTIONS, strict_mode_issues
from conftest import FakeToolRunner, out, write_json


def read(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


# ------------------------------------------------------------ debug scripts


@pytest.fixture  # type: ignore[misc]
def debug_project(tmp_path: Path) -> Path:
    (tmp_path / "debug-auth.ts").write_text("console.log('auth')\n", encoding="utf-8")
    (tmp_path / "debug-db.ts").write_text("console.log('db')\n", encoding="utf-8")
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "index.ts").write_text("import './../debug-db';\n", encoding="utf-8")
    write_json(
        tmp_path / "package.json",
        {"scripts": {"debug:auth": "tsx debug-auth.ts", "start": "expo start"}},
    )
    return tmp_path


def test_debug_dry_run_classifies_without_moving(debug_project: Path) -> None:
    report = organize_debug_scripts(debug_project, dry_run=True)

    assert report.used_files == ["debug-db.ts"]
    assert report.unused_files == ["debug-auth.ts"]
    assert report.moved_files == ["debug-auth.ts"]
    assert report.debug_files[1].used_by == ["app/index.ts"]
    assert (debug_project / "debug-auth.ts").exists()
    assert read(debug_project / "package.json")["scripts"]["debug:auth"] == "tsx debug-auth.ts"


def test_debug_apply_moves_and_rewrites_scripts(debug_project: Path) -> None:
    report = organize_debug_scripts(debug_project, dry_run=False)

    assert not (debug_project / "debug-auth.ts").exists()
    assert (debug_project / "tools" / "debug-auth.ts").exists()
    scripts = read(debug_project / "package.json")["scripts"]
    assert scripts["debug:auth"] == "tsx tools/debug-auth.ts"
    assert [u.action for u in report.script_updates] == ["updated"]


def test_debug_remove_flags_scripts_for_review(debug_project: Path) -> None:
    report = organize_debug_scripts(debug_project, dry_run=False, remove_unused=True)

    assert report.removed_files == ["debug-auth.ts"]
    assert not (debug_project / "debug-auth.ts").exists()
    assert [u.action for u in report.script_updates] == ["needs_manual_review"]


def test_no_debug_files_is_a_noop(tmp_path: Path) -> None:
    report = organize_debug_scripts(tmp_path, dry_run=False)
    assert report.debug_files == [] and report.script_updates == []


def test_rewrite_scripts_is_idempotent() -> None:
    scripts = {"a": "tsx tools/debug-x.ts"}
    out_scripts, updates = rewrite_scripts(scripts, ["debug-x.ts"], [])
    assert out_scripts == scripts and updates == []


# ---------------------------------------------------------- package scripts


@pytest.fixture  # type: ignore[misc]
def script_project(tmp_path: Path) -> Path:
    write_json(
        tmp_path / "package.json",
        {
            "scripts": {
                "start": "expo start",
                "seed": "node scripts/seed.js",
                "debug:auth": "tsx debug-auth.ts",
                "android": "cd android && gradlew.bat assembleRelease",
                "test": "jest --watchAll",
                "lint": "eslint .",
            },
            "dependencies": {"expo": "~51.0.0"},
            "devDependencies": {"jest": "^29", "typescript": "^5", "knip": "^5"},
        },
    )
    return tmp_path


@pytest.fixture  # type: ignore[misc]
def probe_runner() -> FakeToolRunner:
    missing = out(exit_code=127)
    return FakeToolRunner(
        {
            "eslint --version": missing,
            "depcheck --version": missing,
            "ts-prune --version": missing,
            "unimported --version": missing,
        }
    )


def test_package_scripts_dry_run(script_project: Path, probe_runner: FakeToolRunner) -> None:
    before = read(script_project / "package.json")

    report = clean_package_scripts(script_project, probe_runner, dry_run=True)

    removed = {c.name: c.reason for c in report.removed}
    assert set(removed) == {"seed", "debug:auth", "android"}
    assert removed["debug:auth"] == "References missing debug script: debug-auth"
    assert removed["seed"] == "Referenced file not found: scripts/seed.js"
    added = [c.name for c in report.added]
    assert "typecheck" in added and "analyze:dead-code" in added
    assert "analyze:deps" not in added and "analyze:unused-exports" not in added
    assert [(c.name, c.previous) for c in report.updated] == [("test", "jest --watchAll")]
    lint = next(c for c in report.checks if c.name == "lint")
    assert lint.issues == ["Command not found: eslint"]
    assert report.written is False
    assert read(script_project / "package.json") == before


def test_package_scripts_apply(script_project: Path, probe_runner: FakeToolRunner) -> None:
    report = clean_package_scripts(script_project, probe_runner, dry_run=False)

    scripts = read(script_project / "package.json")["scripts"]
    assert report.written is True
    assert "seed" not in scripts and "android" not in scripts
    assert scripts["lint"] == "eslint ."
    assert scripts["test"] == "jest"
    assert scripts["cleanup"] == "codesweep"
    assert scripts["deploy:web"] == "pnpm run build:web && firebase deploy --only hosting"
    assert probe_runner.called("eslint") == ["eslint --version"]


def test_package_scripts_require_package_json(tmp_path: Path) -> None:
    with pytest.raises(ConfigFileError):
        clean_package_scripts(tmp_path, FakeToolRunner())


def test_script_helpers(tmp_path: Path) -> None:
    (tmp_path / "scripts").mkdir()
    (tmp_path / "scripts" / "ok.ts").write_text("", encoding="utf-8")
    assert check_references(tmp_path, "tsx scripts/ok.ts") == []
    assert check_references(tmp_path, "cd ios && pod install") == ["Directory not found: ios"]
    assert categorize("build:web") == "build"
    assert categorize("weird") == "other"


# --------------------------------------------------------------- typescript


def test_check_types_collects_compiler_lines(tmp_path: Path) -> None:
    runner = FakeToolRunner({"pnpm tsc": out("a.ts(1,1): error TS1\n\nb.ts(2,2): error TS2\n", 2)})
    report = check_types(tmp_path, runner)
    assert report.passed is False
    assert report.errors == ["a.ts(1,1): error TS1", "b.ts(2,2): error TS2"]


def test_strict_config_dry_run_does_not_write(tmp_path: Path) -> None:
    path = write_json(tmp_path / "tsconfig.json", {"compilerOptions": {"strict": True}})
    runner = FakeToolRunner()

    report = apply_strict_config(tmp_path, runner, dry_run=True)

    assert "strict" not in report.changed_options
    assert "noUnusedLocals" in report.changed_options
    assert report.tsconfig_updated is False
    assert read(path) == {"compilerOptions": {"strict": True}}
    assert report.compilation_passed is True
    assert runner.calls == ["pnpm tsc --noEmit"]


def test_strict_config_apply_merges_options(tmp_path: Path) -> None:
    path = write_json(
        tmp_path / "tsconfig.json",
        {"extends": "expo/tsconfig.base", "compilerOptions": {"baseUrl": "."}},
    )

    report = apply_strict_config(tmp_path, FakeToolRunner(), dry_run=False)

    data = read(path)
    assert report.tsconfig_updated is True
    assert data["extends"] == "expo/tsconfig.base"
    assert data["compilerOptions"] == {"baseUrl": ".", **STRICT_OPTIONS}
    assert strict_mode_issues(data) == []


def test_tsconfig_with_comments_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "tsconfig.json").write_text('{\n  // comment\n  "compilerOptions": {}\n}')
    with pytest.raises(ConfigFileError):
        apply_strict_config(tmp_path, FakeToolRunner())
