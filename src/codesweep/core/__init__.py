"""Core package initializer for codesweep.

Downstream code imports from the submodules directly, e.g.:
    from codesweep.core.settings import settings, load_settings, Settings, get_logger
"""

from __future__ import annotations

__all__ = ["__doc__"]
