"""Filesystem helpers for the backup store.

``copy_recursive`` is a merge-copy: directories are created as needed, files
are overwritten, and files that exist only in the target are left alone.
``mirror_recursive`` also deletes what exists only in the target, so a restored
directory matches its copy exactly. Heavy or generated directories
(``node_modules``, ``.git``, ``.expo``, ``dist``, ``build``) are never
descended into, copied or deleted.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

SKIP_DIRS: frozenset[str] = frozenset({"node_modules", ".git", ".expo", "dist", "build"})

# Paths copied into a filesystem snapshot, relative to the project root.
IMPORTANT_PATHS: tuple[str, ...] = (
    "package.json",
    "tsconfig.json",
    "app.json",
    "app.config.js",
    "eas.json",
    "firebase.json",
    "firebaseConfig.ts",
    "firestore.rules",
    "firestore.indexes.json",
    ".eslintrc.js",
    "scripts/",
    "components/",
    "app/",
    "services/",
    "hooks/",
    "context/",
    "schemas/",
)


def copy_recursive(source: Path, target: Path, skip: Iterable[str] = SKIP_DIRS) -> None:
    """Copy ``source`` (file or directory) onto ``target``."""
    skip_set = frozenset(skip)
    if source.is_dir():
        target.mkdir(parents=True, exist_ok=True)
        for entry in sorted(source.iterdir()):
            if entry.name in skip_set:
                continue
            copy_recursive(entry, target / entry.name, skip_set)
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)


def mirror_recursive(source: Path, target: Path, skip: Iterable[str] = SKIP_DIRS) -> None:
    """Make ``target`` an exact copy of ``source``, skipped directories aside."""
    skip_set = frozenset(skip)
    if source.is_dir():
        if target.exists() and not target.is_dir():
            target.unlink()
        target.mkdir(parents=True, exist_ok=True)
        kept: set[str] = set()
        for entry in sorted(source.iterdir()):
            if entry.name in skip_set:
                continue
            kept.add(entry.name)
            mirror_recursive(entry, target / entry.name, skip_set)
        for entry in sorted(target.iterdir()):
            if entry.name not in kept and entry.name not in skip_set:
                remove_tree(entry)
    else:
        if target.is_dir():
            shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)


def copy_items(items: Iterable[str], src_root: Path, dst_root: Path) -> list[str]:
    """Copy each relative item that exists under ``src_root``; return those copied."""
    copied: list[str] = []
    for item in items:
        source = src_root / item
        if source.exists():
            copy_recursive(source, dst_root / item)
            copied.append(item)
    return copied


def remove_tree(path: Path) -> None:
    """Delete a file or directory tree if present."""
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def safe_dirname(name: str) -> str:
    """Make a step name usable as a single directory component."""
    cleaned = name.strip().replace("/", "_").replace("\\", "_")
    return cleaned or "_"


__all__ = [
    "SKIP_DIRS",
    "IMPORTANT_PATHS",
    "copy_recursive",
    "mirror_recursive",
    "copy_items",
    "remove_tree",
    "safe_dirname",
]
