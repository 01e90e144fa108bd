"""
Package script cleaner: validate ``package.json`` scripts, drop the broken
ones, and add the scripts every project of this kind should have.

Validation
----------
A script is *broken* when it references a ``.js``/``.ts``/``.mjs`` file or a
``cd`` target that does not exist. A base command that cannot be found is
reported but does not get the script removed (it may simply not be installed
on this machine). A script is *unused* when it runs a ``debug-*`` script that
is neither in the project root nor in ``tools/``.

Command lookup order: package-manager/shell builtins are always available;
known dev-tool binaries are available when their package is a dependency;
anything else is probed with ``<cmd> --version`` through the tool runner.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.errors import ConfigFileError
from codesweep.core.tools import ToolRunner

from ._scan import load_json, logger, write_json

ALWAYS_AVAILABLE: frozenset[str] = frozenset(
    {"npm", "pnpm", "yarn", "npx", "node", "tsx", "echo", "cd", "codesweep"}
)
TOOL_PACKAGES: dict[str, tuple[str, ...]] = {
    "expo": ("expo",),
    "jest": ("jest", "jest-expo"),
    "tsc": ("typescript",),
    "eslint": ("eslint",),
    "depcheck": ("depcheck",),
    "knip": ("knip",),
    "ts-prune": ("ts-prune",),
    "unimported": ("unimported",),
    "eas": ("@expo/cli", "eas-cli"),
    "firebase": ("firebase-tools",),
    "gradlew.bat": ("react-native",),
}
CATEGORIES: dict[str, tuple[str, ...]] = {
    "development": ("start", "dev", "serve"),
    "build": ("build", "compile", "bundle"),
    "test": ("test", "spec", "jest"),
    "lint": ("lint", "eslint", "format"),
    "deploy": ("deploy", "publish", "release"),
    "analysis": ("analyze", "check", "audit"),
    "cleanup": ("clean", "reset", "clear"),
    "migration": ("migrate", "migration"),
    "android": ("android",),
    "ios": ("ios",),
    "web": ("web",),
    "utility": ("prepare", "setup", "install"),
}

_FILE_REF = re.compile(r"""(?<![\w/.-])([\w@./-]+\.(?:mjs|js|ts))(?![\w])""")
_DEBUG_REF = re.compile(r"(debug-[\w-]+)")


class ScriptCheck(BaseModel):
    name: str
    command: str
    category: str = "other"
    issues: list[str] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    @property
    def has_broken_reference(self) -> bool:
        broken = ("Referenced file not found", "Directory not found")
        return any(i.startswith(broken) for i in self.issues)


class ScriptChange(BaseModel):
    name: str
    command: str
    previous: str | None = None
    reason: str | None = None


class PackageScriptReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    original_scripts: dict[str, str] = Field(default_factory=dict)
    checks: list[ScriptCheck] = Field(default_factory=list)
    removed: list[ScriptChange] = Field(default_factory=list)
    added: list[ScriptChange] = Field(default_factory=list)
    updated: list[ScriptChange] = Field(default_factory=list)
    written: bool = False

    @property
    def broken(self) -> list[ScriptCheck]:
        return [c for c in self.checks if not c.valid]


def recommended_scripts(package_manager: str = "pnpm") -> dict[str, str]:
    pm = package_manager
    return {
        "typecheck": "tsc --noEmit",
        "lint": "expo lint",
        "lint:fix": "expo lint --fix",
        "analyze:deps": "depcheck",
        "analyze:dead-code": "knip",
        "analyze:unused-exports": "ts-prune",
        "analyze:unimported": "unimported",
        "analyze:all": f"{pm} run typecheck && {pm} run analyze:deps && {pm} run analyze:dead-code",
        "cleanup": "codesweep",
        "cleanup:apply": "codesweep --apply",
        "build:web": "expo export --platform web",
        "deploy:web": f"{pm} run build:web && firebase deploy --only hosting",
        "test": "jest --watchAll",
        "test:ci": "jest --ci --coverage --watchAll=false",
    }


def improved_scripts(package_manager: str = "pnpm") -> dict[str, str]:
    pm = package_manager
    return {
        "test": "jest",
        "deploy": f"{pm} run build:web && firebase deploy",
        "deploy:android": f"{pm} run build:android:production && {pm} run submit:android",
        "deploy:web": f"{pm} run build:web && firebase deploy --only hosting",
        "build:android:preview": "eas build --platform android --profile preview",
        "build:android:production": "eas build --platform android --profile production",
    }


def categorize(name: str) -> str:
    lowered = name.lower()
    for category, keywords in CATEGORIES.items():
        if any(k in lowered for k in keywords):
            return category
    return "other"


class _CommandProbe:
    """Caches command lookups for one cleaning pass."""

    def __init__(self, root: Path, runner: ToolRunner, dependencies: dict[str, Any]) -> None:
        self.root = root
        self.runner = runner
        self.dependencies = dependencies
        self._cache: dict[str, bool] = {}

    def exists(self, command: str) -> bool:
        if command in ALWAYS_AVAILABLE:
            return True
        if command not in self._cache:
            packages = TOOL_PACKAGES.get(command)
            if packages and any(p in self.dependencies for p in packages):
                self._cache[command] = True
            else:
                self._cache[command] = self.runner.run(command, ["--version"], cwd=self.root).ok
        return self._cache[command]


def _base_command(part: str) -> str:
    tokens = [t for t in part.split() if "=" not in t or t.startswith("-")]
    return tokens[0] if tokens else ""


def check_references(root: Path, command: str) -> list[str]:
    """Missing files and directories referenced by ``command``."""
    issues: list[str] = []
    for ref in dict.fromkeys(_FILE_REF.findall(command)):
        if ref.startswith("http") or Path(ref).is_absolute():
            continue
        if not (root / ref).exists():
            issues.append(f"Referenced file not found: {ref}")

    parts = [p.strip() for p in command.split("&&")]
    for i, part in enumerate(parts):
        if not part.startswith("cd "):
            continue
        target = part[3:].strip()
        if not (root / target).exists():
            issues.append(f"Directory not found: {target}")
        elif i + 1 < len(parts):
            executable = _base_command(parts[i + 1])
            if executable == "gradlew.bat" and not (root / target / executable).exists():
                issues.append(f"Executable not found: {executable} in {target}")
    return issues


def validate_script(name: str, command: str, root: Path, probe: _CommandProbe) -> ScriptCheck:
    check = ScriptCheck(name=name, command=command, category=categorize(name))
    check.issues.extend(check_references(root, command))
    for part in command.split("&&"):
        base = _base_command(part)
        if base and not probe.exists(base):
            check.issues.append(f"Command not found: {base}")
    return check


def unused_reason(root: Path, command: str) -> str | None:
    for ref in _DEBUG_REF.findall(command):
        stem = ref.removesuffix(".ts")
        if not any((root / d / f"{stem}.ts").exists() for d in (".", "tools")):
            return f"References missing debug script: {stem}"
    return None


def clean_package_scripts(
    root: Path, runner: ToolRunner, dry_run: bool = True, package_manager: str = "pnpm"
) -> PackageScriptReport:
    """Validate, prune, complete and normalise the scripts in ``package.json``.

    Raises
    ------
    ConfigFileError
        If ``package.json`` is missing or malformed.
    """
    path = root / "package.json"
    data = load_json(path)
    if not isinstance(data, dict):
        raise ConfigFileError("package.json must contain a JSON object")

    scripts: dict[str, str] = dict(data.get("scripts") or {})
    deps = {**(data.get("dependencies") or {}), **(data.get("devDependencies") or {})}
    probe = _CommandProbe(root, runner, deps)
    report = PackageScriptReport(original_scripts=dict(scripts))

    for name, command in list(scripts.items()):
        check = validate_script(name, command, root, probe)
        report.checks.append(check)
        reason = unused_reason(root, command)
        if reason is None and check.has_broken_reference:
            reason = "; ".join(check.issues)
        if reason is not None:
            del scripts[name]
            report.removed.append(ScriptChange(name=name, command=command, reason=reason))
            logger.info("Removing script %s: %s", name, reason)

    for name, command in recommended_scripts(package_manager).items():
        if name in scripts:
            continue
        if name.startswith("analyze:") and not probe.exists(_base_command(command)):
            logger.info("Skipping %s - tool not available", name)
            continue
        scripts[name] = command
        report.added.append(ScriptChange(name=name, command=command))

    for name, command in improved_scripts(package_manager).items():
        if name in scripts and scripts[name] != command:
            report.updated.append(ScriptChange(name=name, command=command, previous=scripts[name]))
            scripts[name] = command

    if not dry_run and (report.removed or report.added or report.updated):
        data["scripts"] = scripts
        write_json(path, data)
        report.written = True
    logger.info(
        "Package scripts: %d broken, %d removed, %d added, %d updated",
        len(report.broken),
        len(report.removed),
        len(report.added),
        len(report.updated),
    )
    return report


__all__ = [
    "ScriptCheck",
    "ScriptChange",
    "PackageScriptReport",
    "recommended_scripts",
    "improved_scripts",
    "categorize",
    "check_references",
    "validate_script",
    "unused_reason",
    "clean_package_scripts",
]
