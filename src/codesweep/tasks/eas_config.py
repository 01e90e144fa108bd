"""EAS config optimizer: check build profiles in ``eas.json`` and strip the
parts an Android/web project does not build (iOS, web, extra profiles)."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.errors import ConfigFileError

from ._scan import backup_config_file, load_json, logger, write_json

REQUIRED_PROFILES: tuple[str, ...] = ("development", "preview", "production")


class ProfileAnalysis(BaseModel):
    active_profiles: list[str] = Field(default_factory=list)
    unused_profiles: list[str] = Field(default_factory=list)
    missing_profiles: list[str] = Field(default_factory=list)
    optimizations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class EasConfigReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    analysis: ProfileAnalysis = Field(default_factory=ProfileAnalysis)
    changes: list[str] = Field(default_factory=list)
    validation_issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    written: bool = False
    backup_path: str | None = None


def analyze_profiles(config: dict[str, Any]) -> ProfileAnalysis:
    build: dict[str, Any] = config.get("build") or {}
    analysis = ProfileAnalysis()
    for profile in REQUIRED_PROFILES:
        target = analysis.active_profiles if profile in build else analysis.missing_profiles
        target.append(profile)

    for profile, cfg in build.items():
        if profile not in REQUIRED_PROFILES:
            analysis.unused_profiles.append(profile)
            analysis.warnings.append(f'Profile "{profile}" may not be needed for MVP')
        if not isinstance(cfg, dict):
            continue
        android = cfg.get("android")
        if isinstance(android, dict):
            if android.get("buildType") == "apk" and profile == "production":
                analysis.optimizations.append(
                    f"{profile}: Consider using app-bundle for production builds"
                )
            if android.get("gradleCommand") and profile != "development":
                analysis.optimizations.append(
                    f"{profile}: gradleCommand may not be needed for {profile} builds"
                )
        if cfg.get("ios"):
            analysis.optimizations.append(
                f"{profile}: iOS configuration can be removed (not required for MVP)"
            )
        if cfg.get("web"):
            analysis.optimizations.append(
                f"{profile}: Web configuration in EAS may not be necessary"
            )
    return analysis


def validate_eas(config: dict[str, Any]) -> list[str]:
    issues: list[str] = []
    if not (config.get("cli") or {}).get("version"):
        issues.append("Missing CLI version requirement")
    build = config.get("build") or {}
    if not build:
        issues.append("No build profiles defined")

    prod_android = (build.get("production") or {}).get("android")
    if prod_android and prod_android.get("buildType") != "app-bundle":
        issues.append("Production should use app-bundle for Google Play Store")
    dev_android = (build.get("development") or {}).get("android")
    if dev_android and dev_android.get("buildType") != "apk":
        issues.append("Development builds should use APK for faster testing")

    submit = ((config.get("submit") or {}).get("production") or {}).get("android")
    if submit:
        if not submit.get("serviceAccountKeyPath"):
            issues.append("Production submit missing service account key path")
        if not submit.get("track"):
            issues.append("Production submit missing track specification")
    return issues


def optimize(
    config: dict[str, Any], remove_unused: bool = False, remove_ios: bool = True
) -> tuple[dict[str, Any], list[str]]:
    """Return an optimized deep copy of ``config`` and the list of changes."""
    out = copy.deepcopy(config)
    changes: list[str] = []

    build = out.get("build")
    if isinstance(build, dict):
        for profile in list(build):
            cfg = build[profile]
            if remove_unused and profile not in REQUIRED_PROFILES:
                del build[profile]
                changes.append(f"Removed unused profile: {profile}")
                continue
            if not isinstance(cfg, dict):
                continue
            if remove_ios and "ios" in cfg:
                del cfg["ios"]
                changes.append(f"Removed iOS configuration from {profile} profile")
            if "web" in cfg:
                del cfg["web"]
                changes.append(f"Removed web configuration from {profile} profile")

    submit = out.get("submit")
    if isinstance(submit, dict):
        for profile in list(submit):
            cfg = submit[profile]
            if remove_unused and profile not in REQUIRED_PROFILES:
                del submit[profile]
                changes.append(f"Removed unused submit profile: {profile}")
                continue
            if remove_ios and isinstance(cfg, dict) and "ios" in cfg:
                del cfg["ios"]
                changes.append(f"Removed iOS submit configuration from {profile}")
        if not submit:
            del out["submit"]
            changes.append("Removed empty submit configuration")
    return out, changes


def optimize_eas_config(
    root: Path, dry_run: bool = True, remove_unused: bool = False, remove_ios: bool = True
) -> EasConfigReport:
    """Analyse ``eas.json`` and write the optimized version unless ``dry_run``."""
    path = root / "eas.json"
    config = load_json(path)
    if not isinstance(config, dict):
        raise ConfigFileError("eas.json must contain a JSON object")

    analysis = analyze_profiles(config)
    issues = validate_eas(config)
    optimized, changes = optimize(config, remove_unused=remove_unused, remove_ios=remove_ios)

    report = EasConfigReport(analysis=analysis, changes=changes, validation_issues=issues)
    if analysis.missing_profiles:
        report.recommendations.append(
            "Add missing required build profiles: " + ", ".join(analysis.missing_profiles)
        )
    if analysis.unused_profiles:
        report.recommendations.append(
            "Consider removing unused profiles to simplify configuration"
        )
    if analysis.optimizations:
        report.recommendations.append(
            "Apply suggested optimizations to improve build efficiency"
        )
    if issues:
        report.recommendations.append("Fix validation issues before running builds")

    if not dry_run and changes:
        report.backup_path = str(backup_config_file(root, path, "eas-config"))
        write_json(path, optimized)
        report.written = True
        logger.info("Applied %d changes to eas.json", len(changes))
    return report


__all__ = [
    "REQUIRED_PROFILES",
    "ProfileAnalysis",
    "EasConfigReport",
    "analyze_profiles",
    "validate_eas",
    "optimize",
    "optimize_eas_config",
]
