"""Centralized application configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files in the working directory: .env, .env.local, .env.dev/.env.test/.env.prod

Run-level switches (dry run, skip list, ...) are *not* settings; they live on
:class:`codesweep.core.contracts.options.RunOptions` and come from the CLI.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `CODESWEEP_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    backup_dir : str
        Directory (relative to the project root) holding filesystem backups and
        the persisted backup manifests; maps from `CODESWEEP_BACKUP_DIR`.
    branch_prefix : str
        Prefix of the git branch created for a run snapshot; maps from
        `CODESWEEP_BRANCH_PREFIX`.
    package_manager : str
        Executable used to launch project tooling (`pnpm tsc`, `pnpm knip`, ...);
        maps from `CODESWEEP_PACKAGE_MANAGER`.
    """

    environment: EnvName = Field(default="dev", alias="CODESWEEP_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")
    backup_dir: str = Field(default=".cleanup-backups", alias="CODESWEEP_BACKUP_DIR")
    branch_prefix: str = Field(default="cleanup-backup", alias="CODESWEEP_BRANCH_PREFIX")
    package_manager: str = Field(default="pnpm", alias="CODESWEEP_PACKAGE_MANAGER")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    os.environ.setdefault("CODESWEEP_ENV", "dev")
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "codesweep") -> logging.Logger:
    """Return a process-global logger configured to the current log level."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger
