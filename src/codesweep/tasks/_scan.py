"""Source-tree scanning shared by the analysis collaborators.

The scanners look at the same set of files: everything with a JS/TS extension
under the conventional source directories, plus JS/TS files at the project
root. Hidden directories and ``node_modules`` are never descended into.
"""

from __future__ import annotations

import json
import re
import shutil
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from codesweep.core.contracts.base import filename_timestamp
from codesweep.core.errors import ConfigFileError
from codesweep.core.settings import get_logger

logger = get_logger("codesweep.tasks")

SOURCE_EXTENSIONS: tuple[str, ...] = (".js", ".jsx", ".ts", ".tsx")
SOURCE_DIRS: tuple[str, ...] = (
    "app",
    "components",
    "services",
    "hooks",
    "context",
    "schemas",
    "scripts",
)

# Literal specifiers only: require("x"), import("x"), require(`x`).
DYNAMIC_IMPORT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"""require\s*\(\s*['"`]([^'"`]+)['"`]\s*\)"""),
    re.compile(r"""import\s*\(\s*['"`]([^'"`]+)['"`]\s*\)"""),
)
# Non-literal specifiers: require(name), import(path + ext).
VARIABLE_IMPORT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"""require\s*\(\s*([^'"`)\s][^)]*)\)"""),
    re.compile(r"""import\s*\(\s*([^'"`)\s][^)]*)\)"""),
)

CONFIG_BACKUP_DIR = ".config-backups"


def walk_files(directory: Path, extensions: Iterable[str] = SOURCE_EXTENSIONS) -> Iterator[Path]:
    """Yield files under ``directory`` with one of ``extensions``, depth first."""
    exts = tuple(extensions)
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        logger.warning("Could not read directory %s: %s", directory, e)
        return
    for entry in entries:
        if entry.is_dir():
            if entry.name.startswith(".") or entry.name == "node_modules":
                continue
            yield from walk_files(entry, exts)
        elif entry.is_file() and entry.name.endswith(exts):
            yield entry


def source_files(root: Path, directories: Iterable[str] = SOURCE_DIRS) -> list[Path]:
    """Return the files the scanners read, source directories first."""
    files: list[Path] = []
    for name in directories:
        path = root / name
        if path.is_dir():
            files.extend(walk_files(path))
    files.extend(
        p for p in sorted(root.iterdir()) if p.is_file() and p.name.endswith(SOURCE_EXTENSIONS)
    )
    return files


def read_text(path: Path) -> str | None:
    """Read a text file, logging (not raising) unreadable ones."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read file %s: %s", path, e)
        return None


def package_name(specifier: str) -> str | None:
    """Extract the npm package name from an import specifier.

    >>> package_name("@expo/vector-icons/Ionicons")
    '@expo/vector-icons'
    >>> package_name("lodash/merge")
    'lodash'
    >>> package_name("./local") is None
    True
    """
    spec = specifier.strip()
    if not spec or spec.startswith(("./", "../", "/")) or spec in (".", ".."):
        return None
    parts = spec.split("/")
    if spec.startswith("@"):
        return "/".join(parts[:2])
    return parts[0]


def line_of(content: str, index: int) -> int:
    """1-based line number of character ``index`` in ``content``."""
    return content.count("\n", 0, index) + 1


def load_json(path: Path) -> Any:
    """Load a JSON document or raise :class:`ConfigFileError`."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigFileError(f"{path.name} not found") from e
    except (OSError, ValueError) as e:
        raise ConfigFileError(f"Could not parse {path.name}: {e}") from e


def write_json(path: Path, data: Any) -> None:
    """Write JSON with two-space indentation and a trailing newline."""
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def backup_config_file(root: Path, source: Path, prefix: str) -> Path:
    """Copy ``source`` to ``.config-backups/<prefix>-<timestamp><suffix>``."""
    target_dir = root / CONFIG_BACKUP_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"{prefix}-{filename_timestamp()}{source.suffix}"
    shutil.copy2(source, target)
    logger.info("Backed up %s to %s", source.name, target)
    return target


def parse_json_output(stdout: str) -> Any | None:
    """Parse a tool's JSON stdout; ``None`` when it is empty or malformed."""
    text = stdout.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


__all__ = [
    "SOURCE_EXTENSIONS",
    "SOURCE_DIRS",
    "DYNAMIC_IMPORT_PATTERNS",
    "VARIABLE_IMPORT_PATTERNS",
    "walk_files",
    "source_files",
    "read_text",
    "package_name",
    "line_of",
    "load_json",
    "write_json",
    "parse_json_output",
    "CONFIG_BACKUP_DIR",
    "backup_config_file",
]
