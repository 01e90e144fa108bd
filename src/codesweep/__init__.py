"""codesweep package bootstrap.

Maintenance toolkit for Expo / React Native / Firebase project trees: a cleanup
orchestrator with checkpointed steps, a git/filesystem backup store, and the
analysis collaborators the orchestrator drives.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.1.0"
