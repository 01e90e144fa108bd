"""Cleanup pipeline: the standard steps, the step runner and the orchestrator."""

from __future__ import annotations

from .orchestrator import ROLLBACK_HINT, OrchestrationOutcome, Orchestrator
from .runner import StepRunner, type_check_validator
from .steps import STEP_NAMES, Step, StepContext, build_steps

__all__ = [
    "Orchestrator",
    "OrchestrationOutcome",
    "ROLLBACK_HINT",
    "StepRunner",
    "type_check_validator",
    "Step",
    "StepContext",
    "STEP_NAMES",
    "build_steps",
]
