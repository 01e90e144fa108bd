"""Typed smoke tests for the settings loader.

These tests verify three guarantees:
1) Importing the module-level `settings` yields a `Settings` instance.
2) Environment variables override defaults after clearing the loader cache.
3) `get_logger()` respects the configured LOG_LEVEL when constructing loggers.
"""

from __future__ import annotations

import logging
from typing import Any

from codesweep.core.settings import (
    Settings,
    get_logger,
    load_settings,
    settings,
)


def test_settings_instance_type() -> None:
    """`settings` should be an instance of the typed `Settings` model."""
    assert isinstance(settings, Settings)


def test_defaults() -> None:
    s = load_settings()
    assert s.backup_dir == ".cleanup-backups"
    assert s.branch_prefix == "cleanup-backup"
    assert s.package_manager == "pnpm"


def test_env_overrides_with_cache_clear(monkeypatch: Any) -> None:
    """Changing env vars should take effect after `load_settings.cache_clear()`."""
    monkeypatch.setenv("CODESWEEP_ENV", "test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("CODESWEEP_BACKUP_DIR", ".bk")
    monkeypatch.setenv("CODESWEEP_PACKAGE_MANAGER", "npx")

    load_settings.cache_clear()
    s = load_settings()

    assert s.environment == "test"
    assert s.log_level == "DEBUG"
    assert s.backup_dir == ".bk"
    assert s.package_manager == "npx"


def test_get_logger_respects_level(monkeypatch: Any) -> None:
    """`get_logger()` should apply the numeric level derived from `LOG_LEVEL`."""
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    load_settings.cache_clear()
    _ = load_settings()

    logger = get_logger("codesweep.tests.settings")

    assert logger.level == logging.ERROR
    assert logger.handlers, "Expected at least one StreamHandler to be attached."
