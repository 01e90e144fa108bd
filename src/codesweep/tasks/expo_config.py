"""
Expo config cleaner: validate ``app.json`` and drop keys an Android/web app
does not need.

``app.config.js`` cannot be edited safely as data; when it is the only config
present the result asks for manual review and nothing is touched.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.errors import ConfigFileError

from ._scan import backup_config_file, load_json, logger, write_json

# Dotted paths under "expo" that are often leftovers from the template.
POTENTIALLY_UNUSED_KEYS: tuple[str, ...] = (
    "ios",
    "privacy",
    "description",
    "keywords",
    "experiments.typedRoutes",
    "owner",
    "userInterfaceStyle",
    "newArchEnabled",
)
REMOVABLE_KEYS: tuple[str, ...] = (
    "privacy",
    "description",
    "keywords",
    "owner",
    "userInterfaceStyle",
    "newArchEnabled",
)


class ExpoConfigReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    config_type: str = "json"
    manual_review: bool = False
    unused_keys: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    removed_keys: list[str] = Field(default_factory=list)
    validation_issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    written: bool = False
    backup_path: str | None = None


def _has_path(node: dict[str, Any], dotted: str) -> bool:
    *parents, last = dotted.split(".")
    for key in parents:
        node = node.get(key)
        if not isinstance(node, dict):
            return False
    return last in node


def validate_expo(config: dict[str, Any]) -> list[str]:
    """Return human-readable problems with the required Expo settings."""
    expo = config.get("expo") or {}
    issues: list[str] = []
    for key in ("name", "slug", "version"):
        if not isinstance(expo.get(key), str) or not expo.get(key):
            issues.append(f'Missing or invalid "{key}" field')

    platforms = expo.get("platforms")
    if not isinstance(platforms, list):
        issues.append('Missing or invalid "platforms" array')
        platforms = []

    if "android" in platforms:
        android = expo.get("android") or {}
        if not android.get("package"):
            issues.append("Missing Android package identifier")
        code = android.get("versionCode")
        if not isinstance(code, int) or isinstance(code, bool) or not code:
            issues.append("Missing or invalid Android versionCode")
    if "web" in platforms and not (expo.get("web") or {}).get("bundler"):
        issues.append("Missing Web bundler configuration")
    if not ((expo.get("extra") or {}).get("eas") or {}).get("projectId"):
        issues.append("Missing EAS project ID")
    return issues


def find_unused_keys(config: dict[str, Any]) -> tuple[list[str], list[str]]:
    """Return (unused dotted keys, warnings)."""
    expo = config.get("expo") or {}
    platforms = expo.get("platforms") or []
    unused: list[str] = []
    warnings: list[str] = []

    if expo.get("ios") and "ios" not in platforms:
        warnings.append("iOS configuration found but iOS not in platforms array")
    for key in POTENTIALLY_UNUSED_KEYS:
        if _has_path(expo, key):
            unused.append(f"expo.{key}")
    if expo.get("privacy") == "public":
        warnings.append('Privacy set to "public" - consider if this is intentional')
    if expo.get("newArchEnabled") is False:
        warnings.append("newArchEnabled is false (default) - can be removed")
    return unused, warnings


def remove_unused_keys(config: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Return a cleaned deep copy of ``config`` and the removed dotted keys."""
    cleaned = copy.deepcopy(config)
    expo = cleaned.setdefault("expo", {})
    removed: list[str] = []

    if expo.get("ios") and "ios" not in (expo.get("platforms") or []):
        del expo["ios"]
        removed.append("expo.ios")
    for key in REMOVABLE_KEYS:
        if key in expo:
            del expo[key]
            removed.append(f"expo.{key}")
    experiments = expo.get("experiments")
    if isinstance(experiments, dict) and list(experiments) == ["typedRoutes"]:
        del expo["experiments"]
        removed.append("expo.experiments")
    return cleaned, removed


def clean_expo_config(
    root: Path, dry_run: bool = True, remove_unused: bool = False
) -> ExpoConfigReport:
    """Analyse (and, when asked, rewrite) the project's Expo config.

    Raises
    ------
    ConfigFileError
        If neither ``app.json`` nor ``app.config.js`` exists, or ``app.json``
        is not valid JSON.
    """
    app_json = root / "app.json"
    if not app_json.exists():
        if (root / "app.config.js").exists():
            logger.warning("app.config.js requires manual review")
            return ExpoConfigReport(
                config_type="js",
                manual_review=True,
                recommendations=["JavaScript config requires manual review"],
            )
        raise ConfigFileError("No Expo configuration file found (app.json or app.config.js)")

    config = load_json(app_json)
    if not isinstance(config, dict):
        raise ConfigFileError("app.json must contain a JSON object")

    report = ExpoConfigReport(validation_issues=validate_expo(config))
    report.unused_keys, report.warnings = find_unused_keys(config)
    cleaned, removed = remove_unused_keys(config) if remove_unused else (config, [])
    report.removed_keys = removed

    if report.unused_keys:
        report.recommendations.append(
            "Consider removing unused configuration keys to simplify setup"
        )
    if report.validation_issues:
        report.recommendations.append("Fix validation issues before deploying")

    if not dry_run and removed:
        report.backup_path = str(backup_config_file(root, app_json, "expo-config"))
        write_json(app_json, cleaned)
        report.written = True
        logger.info("Removed %d keys from app.json", len(removed))
    return report


__all__ = [
    "ExpoConfigReport",
    "validate_expo",
    "find_unused_keys",
    "remove_unused_keys",
    "clean_expo_config",
]
