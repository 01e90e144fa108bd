"""
Asset manager: find (and optionally delete) assets nothing references.

Every file under ``assets/`` with a known media/font extension is compared
against the asset paths referenced from source code, docs and the Expo/Metro
config files. References are normalised to ``assets/...`` (``./`` and ``@/``
prefixes and ``../`` hops are dropped) before comparison.
"""

from __future__ import annotations

import math
import re
from pathlib import Path

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.errors import ConfigFileError

from ._scan import logger, read_text, walk_files

ASSETS_DIR = "assets"
ASSET_EXTENSIONS: tuple[str, ...] = (
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ttf", ".otf",
    ".woff", ".woff2", ".mp3", ".mp4", ".webm", ".ico",
)  # fmt: skip
SCAN_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".json", ".md")
SCAN_DIRS: tuple[str, ...] = (
    "app", "components", "hooks", "context", "services", "schemas", "scripts", "docs",
)  # fmt: skip
EXTRA_FILES: tuple[str, ...] = ("app.json", "app.config.js", "metro.config.js")

_EXT = "|".join(e.lstrip(".") for e in ASSET_EXTENSIONS)
ASSET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"""require\(['"`]([^'"`]*assets[^'"`]*\.(?:{_EXT}))['"`]\)""", re.I),
    re.compile(rf"""import\s+[^'"`]*from\s+['"`]([^'"`]*assets[^'"`]*\.(?:{_EXT}))['"`]""", re.I),
    re.compile(rf"""import\(['"`]([^'"`]*assets[^'"`]*\.(?:{_EXT}))['"`]\)""", re.I),
    re.compile(rf"""['"`](\./assets[^'"`]*\.(?:{_EXT}))['"`]""", re.I),
    re.compile(rf"""['"`](assets/[^'"`]*\.(?:{_EXT}))['"`]""", re.I),
)


class UnusedAsset(BaseModel):
    path: str
    size: int = 0
    formatted_size: str = "0 B"


class AssetReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    all_assets: list[str] = Field(default_factory=list)
    referenced_assets: list[str] = Field(default_factory=list)
    unused_assets: list[UnusedAsset] = Field(default_factory=list)
    files_scanned: int = 0
    total_unused_size: int = 0
    formatted_total_unused_size: str = "0 B"
    removed: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


def format_size(num_bytes: int) -> str:
    """Human-readable size: ``0 B``, ``1.5 KB``, ``2 MB``..."""
    if num_bytes <= 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB")
    i = min(int(math.log(num_bytes, 1024)), len(units) - 1)
    value = round(num_bytes / 1024**i, 2)
    return f"{value:g} {units[i]}"


def normalize_asset_path(ref: str) -> str | None:
    """Map a reference to its ``assets/...`` path, or ``None`` if outside ``assets/``."""
    normalized = ref
    if normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized.startswith("@/"):
        normalized = normalized[2:]
    if "../assets/" in normalized:
        parts = normalized.split("/")
        normalized = "/".join(parts[parts.index(ASSETS_DIR) :])
    return normalized if normalized.startswith(f"{ASSETS_DIR}/") else None


def list_assets(root: Path) -> list[str]:
    assets_dir = root / ASSETS_DIR
    if not assets_dir.is_dir():
        raise ConfigFileError(f"Assets directory '{ASSETS_DIR}' does not exist")
    return sorted(
        p.relative_to(root).as_posix()
        for p in assets_dir.rglob("*")
        if p.is_file() and p.suffix.lower() in ASSET_EXTENSIONS
    )


def scan_asset_references(root: Path) -> tuple[set[str], int]:
    """Return (referenced asset paths, number of files scanned)."""
    files: list[Path] = []
    for name in SCAN_DIRS:
        if (root / name).is_dir():
            files.extend(walk_files(root / name, SCAN_EXTENSIONS))
    files.extend(root / f for f in EXTRA_FILES if (root / f).is_file())

    referenced: set[str] = set()
    for path in files:
        content = read_text(path)
        if content is None:
            continue
        for pattern in ASSET_PATTERNS:
            for match in pattern.finditer(content):
                normalized = normalize_asset_path(match.group(1))
                if normalized:
                    referenced.add(normalized)
    return referenced, len(files)


def analyze_assets(root: Path, remove: bool = False, dry_run: bool = True) -> AssetReport:
    """Report unused assets; delete them when ``remove`` and not ``dry_run``.

    Raises
    ------
    ConfigFileError
        If the project has no ``assets/`` directory.
    """
    all_assets = list_assets(root)
    referenced, scanned = scan_asset_references(root)
    report = AssetReport(
        all_assets=all_assets,
        referenced_assets=sorted(referenced),
        files_scanned=scanned,
    )

    unused: list[UnusedAsset] = []
    for asset in all_assets:
        if asset in referenced:
            continue
        try:
            size = (root / asset).stat().st_size
        except OSError as e:
            report.errors.append(f"Error getting size for {asset}: {e}")
            size = 0
        unused.append(UnusedAsset(path=asset, size=size, formatted_size=format_size(size)))
    unused.sort(key=lambda a: a.size, reverse=True)
    report.unused_assets = unused
    report.total_unused_size = sum(a.size for a in unused)
    report.formatted_total_unused_size = format_size(report.total_unused_size)

    if remove and not dry_run:
        for asset in unused:
            try:
                (root / asset.path).unlink()
                report.removed.append(asset.path)
            except OSError as e:
                report.errors.append(f"Error removing {asset.path}: {e}")

    logger.info(
        "Assets: %d total, %d unused (%s)",
        len(all_assets),
        len(unused),
        report.formatted_total_unused_size,
    )
    return report


__all__ = [
    "ASSET_EXTENSIONS",
    "UnusedAsset",
    "AssetReport",
    "format_size",
    "normalize_asset_path",
    "list_assets",
    "scan_asset_references",
    "analyze_assets",
]
