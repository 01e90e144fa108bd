"""
Cleanup collaborators.

Each module exposes one entry point that analyses (and, outside dry runs,
changes) one aspect of the project and returns a pydantic report:

- :func:`scan_dependencies`          unused / missing npm dependencies
- :func:`detect_dead_code`           knip + ts-prune + unimported
- :func:`analyze_assets`             unreferenced files under ``assets/``
- :func:`clean_expo_config`          ``app.json``
- :func:`optimize_eas_config`        ``eas.json``
- :func:`normalize_firebase_config`  ``firebase.json`` / ``firebaseConfig.ts``
- :func:`organize_debug_scripts`     root ``debug-*.ts`` files
- :func:`clean_package_scripts`      ``package.json`` scripts
- :func:`check_types` / :func:`apply_strict_config`  TypeScript

No collaborator keeps state between calls.
"""

from __future__ import annotations

from .assets import AssetReport, analyze_assets
from .dead_code import DeadCodeReport, detect_dead_code
from .debug_scripts import DebugScriptReport, organize_debug_scripts
from .dependencies import DependencyReport, scan_dependencies
from .eas_config import EasConfigReport, optimize_eas_config
from .expo_config import ExpoConfigReport, clean_expo_config
from .firebase_config import FirebaseConfigReport, normalize_firebase_config
from .package_scripts import PackageScriptReport, clean_package_scripts
from .typescript import StrictConfigReport, TypeCheckReport, apply_strict_config, check_types

__all__ = [
    "AssetReport",
    "DeadCodeReport",
    "DebugScriptReport",
    "DependencyReport",
    "EasConfigReport",
    "ExpoConfigReport",
    "FirebaseConfigReport",
    "PackageScriptReport",
    "StrictConfigReport",
    "TypeCheckReport",
    "analyze_assets",
    "apply_strict_config",
    "check_types",
    "clean_expo_config",
    "clean_package_scripts",
    "detect_dead_code",
    "normalize_firebase_config",
    "optimize_eas_config",
    "organize_debug_scripts",
    "scan_dependencies",
]
