"""
Debug script organizer.

Ad-hoc ``debug-*.ts`` scripts accumulate in the project root. Each one that
nothing references is moved to ``tools/`` (or deleted with ``remove_unused``),
and ``package.json`` scripts pointing at a moved file are rewritten to the new
location. Scripts pointing at a deleted file are flagged for manual review.

A file counts as used when its name (with or without ``.ts``) appears in any
other source or JSON file. ``package.json`` is not searched: its scripts are
what gets rewritten.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp

from ._scan import load_json, logger, write_json

TOOLS_DIR = "tools"
SEARCH_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".json")
SKIP_DIRS: frozenset[str] = frozenset(
    {"node_modules", ".git", ".expo", "android", "ios", "dist", "build", ".config-backups"}
    | {TOOLS_DIR}
)
MAX_SEARCH_DEPTH = 10
MAX_FILE_SIZE = 1024 * 1024


class DebugFile(BaseModel):
    name: str
    size: int = 0
    used_by: list[str] = Field(default_factory=list)


class ScriptUpdate(BaseModel):
    script: str
    action: Literal["updated", "needs_manual_review"]
    original_command: str
    new_command: str | None = None
    reason: str | None = None


class DebugScriptReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    debug_files: list[DebugFile] = Field(default_factory=list)
    used_files: list[str] = Field(default_factory=list)
    unused_files: list[str] = Field(default_factory=list)
    moved_files: list[str] = Field(default_factory=list)
    removed_files: list[str] = Field(default_factory=list)
    script_updates: list[ScriptUpdate] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


def find_debug_files(root: Path) -> list[DebugFile]:
    return [
        DebugFile(name=p.name, size=p.stat().st_size)
        for p in sorted(root.glob("debug-*.ts"))
        if p.is_file()
    ]


def find_references(root: Path, needles: list[str], exclude: str) -> list[str]:
    """Relative paths of files mentioning any of ``needles`` (case-insensitive)."""
    lowered = [n.lower() for n in needles]
    hits: list[str] = []

    def search(directory: Path, depth: int) -> None:
        if depth > MAX_SEARCH_DEPTH:
            return
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            return
        for entry in entries:
            if depth == 0 and entry.name.startswith("."):
                continue
            if entry.is_dir():
                if entry.name not in SKIP_DIRS:
                    search(entry, depth + 1)
                continue
            if entry.name == exclude or not entry.name.endswith(SEARCH_EXTENSIONS):
                continue
            if depth == 0 and entry.name == "package.json":
                continue
            try:
                if entry.stat().st_size > MAX_FILE_SIZE:
                    continue
                content = entry.read_text(encoding="utf-8").lower()
            except (OSError, UnicodeDecodeError):
                continue
            if any(n in content for n in lowered):
                hits.append(entry.relative_to(root).as_posix())

    search(root, 0)
    return hits


def rewrite_scripts(
    scripts: dict[str, str], moved: list[str], removed: list[str]
) -> tuple[dict[str, str], list[ScriptUpdate]]:
    """Point scripts at ``tools/<file>`` for moved files; flag removed ones."""
    out = dict(scripts)
    updates: list[ScriptUpdate] = []
    for name, command in scripts.items():
        updated = command
        for file in moved:
            stem = file.removesuffix(".ts")
            if stem in command and f"{TOOLS_DIR}/{stem}" not in command:
                updated = updated.replace(stem, f"{TOOLS_DIR}/{stem}")
        for file in removed:
            if file.removesuffix(".ts") in command:
                updates.append(
                    ScriptUpdate(
                        script=name,
                        action="needs_manual_review",
                        original_command=command,
                        reason=f"References removed file {file}",
                    )
                )
        if updated != command:
            out[name] = updated
            updates.append(
                ScriptUpdate(
                    script=name, action="updated", original_command=command, new_command=updated
                )
            )
    return out, updates


def organize_debug_scripts(
    root: Path,
    dry_run: bool = True,
    move_to_tools: bool = True,
    remove_unused: bool = False,
) -> DebugScriptReport:
    """Find, classify and relocate root-level debug scripts.

    In dry-run mode the report lists what *would* be moved or removed and
    nothing on disk changes.
    """
    report = DebugScriptReport(debug_files=find_debug_files(root))
    if not report.debug_files:
        logger.info("No debug files found")
        return report

    for debug in report.debug_files:
        debug.used_by = find_references(
            root, [debug.name.removesuffix(".ts"), debug.name], exclude=debug.name
        )[:5]
        (report.used_files if debug.used_by else report.unused_files).append(debug.name)

    tools = root / TOOLS_DIR
    for name in report.unused_files:
        source = root / name
        try:
            if remove_unused:
                if not dry_run:
                    source.unlink()
                report.removed_files.append(name)
            elif move_to_tools:
                if not dry_run:
                    tools.mkdir(parents=True, exist_ok=True)
                    shutil.move(str(source), str(tools / name))
                report.moved_files.append(name)
        except OSError as e:
            report.errors.append(f"Error processing {name}: {e}")

    package_json = root / "package.json"
    if (report.moved_files or report.removed_files) and package_json.exists():
        data = load_json(package_json)
        scripts, report.script_updates = rewrite_scripts(
            data.get("scripts") or {}, report.moved_files, report.removed_files
        )
        if not dry_run and any(u.action == "updated" for u in report.script_updates):
            data["scripts"] = scripts
            write_json(package_json, data)
            logger.info("Updated package.json scripts")

    logger.info(
        "Debug scripts: %d unused, %d moved, %d removed",
        len(report.unused_files),
        len(report.moved_files),
        len(report.removed_files),
    )
    return report


__all__ = [
    "DebugFile",
    "ScriptUpdate",
    "DebugScriptReport",
    "find_debug_files",
    "find_references",
    "rewrite_scripts",
    "organize_debug_scripts",
]
