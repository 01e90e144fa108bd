"""
Firebase config normalizer.

Three independent checks:

- ``firebase.json``: which services are configured, whether hosting serves
  ``dist`` with an SPA rewrite; cleaning fixes both and can drop services the
  app does not deploy (functions, storage, database).
- ``firebaseConfig.ts``: heuristics on the SDK setup (hardcoded keys,
  commented-out emulators, a messaging instance that is always null); the
  optimizer can remove the dead messaging code and enable the emulators.
- Firestore rules vs indexes: collections matched in ``firestore.rules`` that
  have no composite index are reported as warnings.
"""

from __future__ import annotations

import copy
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.errors import ConfigFileError

from ._scan import backup_config_file, load_json, logger, read_text, write_json

REQUIRED_SERVICES: frozenset[str] = frozenset({"hosting"})
OPTIONAL_SERVICES: frozenset[str] = frozenset({"firestore", "storage", "functions", "emulators"})
REMOVABLE_SERVICES: tuple[str, ...] = ("functions", "storage", "database")
HOSTING_PUBLIC = "dist"
SPA_REWRITE: dict[str, str] = {"source": "**", "destination": "/index.html"}

_MESSAGING_IMPORT = re.compile(r"""import\s+{[^}]*getMessaging[^}]*}\s+from\s+['"][^'"]+['"];\s*""")
_SUPPORTED_IMPORT = re.compile(r"""import\s+{[^}]*isSupported[^}]*}\s+from\s+['"][^'"]+['"];\s*""")
_MESSAGING_BLOCK = re.compile(r"// Initialize Cloud Messaging[\s\S]*?export { messaging };")
_RULES_COLLECTION = re.compile(r"match\s+/(\w+)/")


class Analysis(BaseModel):
    active_services: list[str] = Field(default_factory=list)
    unused_services: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    optimizations: list[str] = Field(default_factory=list)


class FirestoreValidation(BaseModel):
    rules_exist: bool = False
    indexes_exist: bool = False
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class FirebaseConfigReport(BaseModel):
    timestamp: str = Field(default_factory=utc_timestamp)
    firebase_json: Analysis = Field(default_factory=Analysis)
    firebase_json_changes: list[str] = Field(default_factory=list)
    firebase_config: Analysis = Field(default_factory=Analysis)
    firebase_config_changes: list[str] = Field(default_factory=list)
    firestore: FirestoreValidation = Field(default_factory=FirestoreValidation)
    written: list[str] = Field(default_factory=list)
    backup_paths: list[str] = Field(default_factory=list)

    def totals(self) -> dict[str, int]:
        parts = (self.firebase_json, self.firebase_config, self.firestore)
        return {
            "issues": sum(len(p.issues) for p in parts),
            "warnings": sum(len(p.warnings) for p in parts),
            "changes": len(self.firebase_json_changes) + len(self.firebase_config_changes),
        }


def _has_spa_rewrite(hosting: dict[str, Any]) -> bool:
    rewrites = hosting.get("rewrites") or []
    return any(
        isinstance(r, dict) and r.get("source") == "**" and r.get("destination") == "/index.html"
        for r in rewrites
    )


def analyze_firebase_json(config: dict[str, Any]) -> Analysis:
    analysis = Analysis()
    for service in config:
        if service in REQUIRED_SERVICES:
            analysis.active_services.append(service)
        elif service in OPTIONAL_SERVICES:
            analysis.active_services.append(service)
            analysis.warnings.append(f'Service "{service}" is optional for MVP')
        else:
            analysis.unused_services.append(service)
            analysis.warnings.append(f'Service "{service}" may not be needed')

    hosting = config.get("hosting")
    if isinstance(hosting, dict):
        if hosting.get("public") != HOSTING_PUBLIC:
            analysis.warnings.append(
                'Hosting public directory should be "dist" for Expo web builds'
            )
        if not _has_spa_rewrite(hosting):
            analysis.issues.append("Missing SPA rewrite rule for client-side routing")
        if not hosting.get("headers"):
            analysis.warnings.append(
                "No caching headers configured - consider adding for better performance"
            )
    return analysis


def clean_firebase_json(
    config: dict[str, Any], remove_unused_services: bool = False
) -> tuple[dict[str, Any], list[str]]:
    out = copy.deepcopy(config)
    changes: list[str] = []
    if remove_unused_services:
        for service in REMOVABLE_SERVICES:
            if out.get(service):
                del out[service]
                changes.append(f"Removed unused service: {service}")

    hosting = out.get("hosting")
    if isinstance(hosting, dict):
        if hosting.get("public") != HOSTING_PUBLIC:
            hosting["public"] = HOSTING_PUBLIC
            changes.append('Updated hosting public directory to "dist"')
        rewrites = hosting.setdefault("rewrites", [])
        if not any(isinstance(r, dict) and r.get("source") == "**" for r in rewrites):
            rewrites.append(dict(SPA_REWRITE))
            changes.append("Added SPA rewrite rule for client-side routing")
    return out, changes


def analyze_firebase_config(content: str) -> Analysis:
    analysis = Analysis()
    if "getMessaging" in content and "messaging = null" in content:
        analysis.optimizations.append(
            "Messaging service imported but conditionally used - consider simplifying"
        )
    if "connectFirestoreEmulator" in content and "// Uncomment" in content:
        analysis.warnings.append(
            "Emulator connections are commented out - consider enabling for development"
        )
    if "apiKey:" in content and "process.env" not in content:
        analysis.warnings.append(
            "Firebase configuration is hardcoded - consider using environment variables"
        )
    return analysis


def optimize_firebase_config(
    content: str, remove_unused_imports: bool = False, enable_emulators: bool = False
) -> tuple[str, list[str]]:
    out = content
    changes: list[str] = []
    if (
        remove_unused_imports
        and "messaging = null" in content
        and "let messaging: any = null;" in content
    ):
        out = _MESSAGING_IMPORT.sub("", out)
        out = _SUPPORTED_IMPORT.sub("", out)
        out = _MESSAGING_BLOCK.sub("", out)
        changes.append("Removed unused messaging service imports and initialization")
    if enable_emulators and "// Uncomment these lines" in content:
        out = out.replace(
            "// connectFirestoreEmulator(db, 'localhost', 8080);",
            "connectFirestoreEmulator(db, 'localhost', 8080);",
            1,
        )
        out = out.replace(
            "// connectAuthEmulator(auth, 'http://localhost:9099');",
            "connectAuthEmulator(auth, 'http://localhost:9099');",
            1,
        )
        changes.append("Enabled Firebase emulators for development")
    return out, changes


def validate_firestore(root: Path) -> FirestoreValidation:
    rules = root / "firestore.rules"
    indexes = root / "firestore.indexes.json"
    v = FirestoreValidation(rules_exist=rules.exists(), indexes_exist=indexes.exists())
    if not v.rules_exist:
        v.issues.append("firestore.rules file is missing")
    if not v.indexes_exist:
        v.warnings.append(
            "firestore.indexes.json file is missing - may cause query performance issues"
        )
    if v.rules_exist and v.indexes_exist:
        try:
            rules_text = rules.read_text(encoding="utf-8")
            data = load_json(indexes)
        except (OSError, ConfigFileError) as e:
            v.issues.append(f"Error validating Firestore files consistency: {e}")
            return v
        indexed = {
            i.get("collectionGroup")
            for i in ((data.get("indexes") if isinstance(data, dict) else None) or [])
            if isinstance(i, dict)
        }
        for collection in dict.fromkeys(_RULES_COLLECTION.findall(rules_text)):
            if collection in ("databases", "documents"):
                continue
            if collection not in indexed:
                v.warnings.append(
                    f'Collection "{collection}" used in rules but has no indexes defined'
                )
    return v


def normalize_firebase_config(
    root: Path,
    dry_run: bool = True,
    remove_unused_services: bool = False,
    remove_unused_imports: bool = False,
    enable_emulators: bool = False,
) -> FirebaseConfigReport:
    """Analyse both Firebase config files; write the cleaned versions unless ``dry_run``.

    Raises
    ------
    ConfigFileError
        If neither ``firebase.json`` nor ``firebaseConfig.ts`` exists, or
        ``firebase.json`` is malformed.
    """
    json_path = root / "firebase.json"
    ts_path = root / "firebaseConfig.ts"
    config = load_json(json_path) if json_path.exists() else None
    content = read_text(ts_path) if ts_path.exists() else None
    if config is None and content is None:
        raise ConfigFileError("No Firebase configuration files found")
    if config is not None and not isinstance(config, dict):
        raise ConfigFileError("firebase.json must contain a JSON object")

    report = FirebaseConfigReport(firestore=validate_firestore(root))
    cleaned: dict[str, Any] | None = None
    optimized: str | None = None
    if config is not None:
        report.firebase_json = analyze_firebase_json(config)
        cleaned, report.firebase_json_changes = clean_firebase_json(
            config, remove_unused_services
        )
    if content is not None:
        report.firebase_config = analyze_firebase_config(content)
        optimized, report.firebase_config_changes = optimize_firebase_config(
            content, remove_unused_imports, enable_emulators
        )

    if not dry_run:
        if cleaned is not None and report.firebase_json_changes:
            report.backup_paths.append(str(backup_config_file(root, json_path, "firebase-json")))
            write_json(json_path, cleaned)
            report.written.append("firebase.json")
        if optimized is not None and report.firebase_config_changes:
            report.backup_paths.append(str(backup_config_file(root, ts_path, "firebase-config")))
            ts_path.write_text(optimized, encoding="utf-8")
            report.written.append("firebaseConfig.ts")
    logger.info("Firebase config: %s", report.totals())
    return report


__all__ = [
    "SPA_REWRITE",
    "Analysis",
    "FirestoreValidation",
    "FirebaseConfigReport",
    "analyze_firebase_json",
    "clean_firebase_json",
    "analyze_firebase_config",
    "optimize_firebase_config",
    "validate_firestore",
    "normalize_firebase_config",
]
