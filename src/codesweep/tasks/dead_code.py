"""
Dead-code detector: consolidate knip, ts-prune and unimported.

Each tool runs independently; a tool that fails or prints unusable output
contributes empty results instead of failing the analysis. Files and exports
that appear in a dynamic ``require()`` / ``import()`` reference are kept.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.tools import ToolRunner, package_tool

from ._scan import (
    DYNAMIC_IMPORT_PATTERNS,
    VARIABLE_IMPORT_PATTERNS,
    line_of,
    logger,
    parse_json_output,
    read_text,
    source_files,
)


class KnipResult(BaseModel):
    unused_files: list[str] = Field(default_factory=list)
    unused_dependencies: list[Any] = Field(default_factory=list)
    unused_dev_dependencies: list[Any] = Field(default_factory=list)
    unused_exports: list[Any] = Field(default_factory=list)
    duplicate_exports: list[Any] = Field(default_factory=list)
    unresolved: list[Any] = Field(default_factory=list)


class UnimportedResult(BaseModel):
    unimported: list[str] = Field(default_factory=list)
    unresolved: list[Any] = Field(default_factory=list)


class DynamicReference(BaseModel):
    file: str
    line: int
    reference: str
    full_match: str
    type: Literal["dynamic-import", "dynamic-require"]


class Removal(BaseModel):
    files: list[str] = Field(default_factory=list)
    exports: list[Any] = Field(default_factory=list)
    dependencies: list[Any] = Field(default_factory=list)


class DeadCodeReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    knip: KnipResult = Field(default_factory=KnipResult)
    ts_prune_exports: list[dict[str, Any]] = Field(default_factory=list)
    unimported: UnimportedResult = Field(default_factory=UnimportedResult)
    dynamic_references: list[DynamicReference] = Field(default_factory=list)
    unused_exports: list[Any] = Field(default_factory=list)
    unresolved: list[Any] = Field(default_factory=list)
    safe_to_remove: Removal = Field(default_factory=Removal)
    should_keep: Removal = Field(default_factory=Removal)

    def summary(self) -> dict[str, int]:
        return {
            "unused_files": len(self.knip.unused_files),
            "unused_exports": len(self.unused_exports),
            "dynamic_references": len(self.dynamic_references),
            "safe_to_remove_files": len(self.safe_to_remove.files),
            "safe_to_remove_exports": len(self.safe_to_remove.exports),
        }


def run_knip(root: Path, runner: ToolRunner, package_manager: str = "pnpm") -> KnipResult:
    out = package_tool(runner, package_manager, "knip", "--reporter", "json", cwd=root)
    data = parse_json_output(out.stdout)
    if not isinstance(data, dict):
        logger.warning("Knip analysis failed, continuing with empty results")
        return KnipResult()
    return KnipResult(
        unused_files=[str(f) for f in data.get("files") or []],
        unused_dependencies=list(data.get("dependencies") or []),
        unused_dev_dependencies=list(data.get("devDependencies") or []),
        unused_exports=list(data.get("exports") or []),
        duplicate_exports=list(data.get("duplicates") or []),
        unresolved=list(data.get("unresolved") or []),
    )


def parse_ts_prune(stdout: str) -> list[dict[str, Any]]:
    """Parse ts-prune output: JSON per line, or ``file - export`` lines."""
    exports: list[dict[str, Any]] = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            parsed = json.loads(line)
        except ValueError:
            if " - " in line:
                file, _, name = line.partition(" - ")
                exports.append({"file": file.strip(), "export": name.strip()})
            continue
        if isinstance(parsed, dict):
            exports.append(parsed)
    return exports


def run_ts_prune(
    root: Path, runner: ToolRunner, package_manager: str = "pnpm"
) -> list[dict[str, Any]]:
    out = package_tool(runner, package_manager, "ts-prune", "--json", cwd=root)
    if not out.ok:
        logger.warning("ts-prune analysis failed, continuing with empty results")
        return []
    return parse_ts_prune(out.stdout)


def run_unimported(
    root: Path, runner: ToolRunner, package_manager: str = "pnpm"
) -> UnimportedResult:
    out = package_tool(runner, package_manager, "unimported", "--json", cwd=root)
    data = parse_json_output(out.stdout)
    if not isinstance(data, dict):
        logger.warning("unimported analysis failed, continuing with empty results")
        return UnimportedResult()
    return UnimportedResult(
        unimported=[str(f) for f in data.get("unimported") or []],
        unresolved=list(data.get("unresolved") or []),
    )


def detect_dynamic_references(root: Path) -> list[DynamicReference]:
    """All ``require()`` / ``import()`` calls with file and line."""
    refs: list[DynamicReference] = []
    for path in source_files(root):
        content = read_text(path)
        if content is None:
            continue
        rel = path.relative_to(root).as_posix()
        for pattern in (*DYNAMIC_IMPORT_PATTERNS, *VARIABLE_IMPORT_PATTERNS):
            for match in pattern.finditer(content):
                full = match.group(0)
                refs.append(
                    DynamicReference(
                        file=rel,
                        line=line_of(content, match.start()),
                        reference=match.group(1).strip(),
                        full_match=full,
                        type="dynamic-import" if full.startswith("import") else "dynamic-require",
                    )
                )
    return refs


def _export_path(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("file", ""))
    return str(item)


def _is_referenced(path: str, refs: list[DynamicReference]) -> bool:
    if not path:
        return False
    return any(r.reference and (path in r.reference or r.reference in path) for r in refs)


def filter_safe_to_remove(
    unused_files: list[str], unused_exports: list[Any], refs: list[DynamicReference]
) -> tuple[Removal, Removal]:
    """Split files/exports into (safe_to_remove, should_keep)."""
    safe, keep = Removal(), Removal()
    for file in unused_files:
        (keep if _is_referenced(file, refs) else safe).files.append(file)
    for item in unused_exports:
        (keep if _is_referenced(_export_path(item), refs) else safe).exports.append(item)
    return safe, keep


def detect_dead_code(
    root: Path, runner: ToolRunner, package_manager: str = "pnpm"
) -> DeadCodeReport:
    """Run all dead-code tools against ``root`` and consolidate their findings."""
    logger.info("Detecting dead code in %s", root)
    knip = run_knip(root, runner, package_manager)
    ts_prune = run_ts_prune(root, runner, package_manager)
    unimported = run_unimported(root, runner, package_manager)
    refs = detect_dynamic_references(root)

    unused_exports = [*knip.unused_exports, *ts_prune]
    safe, keep = filter_safe_to_remove(knip.unused_files, unused_exports, refs)
    # Dependencies are judged by the dependency scanner.
    safe.dependencies = list(knip.unused_dependencies)

    report = DeadCodeReport(
        knip=knip,
        ts_prune_exports=ts_prune,
        unimported=unimported,
        dynamic_references=refs,
        unused_exports=unused_exports,
        unresolved=[*knip.unresolved, *unimported.unresolved],
        safe_to_remove=safe,
        should_keep=keep,
    )
    logger.info("Dead code summary: %s", report.summary())
    return report


__all__ = [
    "KnipResult",
    "UnimportedResult",
    "DynamicReference",
    "Removal",
    "DeadCodeReport",
    "run_knip",
    "parse_ts_prune",
    "run_ts_prune",
    "run_unimported",
    "detect_dynamic_references",
    "filter_safe_to_remove",
    "detect_dead_code",
]
