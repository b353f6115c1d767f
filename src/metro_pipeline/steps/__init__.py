"""Build steps: the external work the orchestrator drives.

Importing this package registers the built-in ``command`` and
``dry-run`` steps in ``step_registry``.
"""
from __future__ import annotations

from metro_pipeline.steps.base import BuildStep
from metro_pipeline.steps.command import CommandBuildStep, measure_output
from metro_pipeline.steps.dry_run import DryRunBuildStep
from metro_pipeline.steps.registry import (
    ENTRYPOINT_GROUP,
    StepAlreadyRegisteredError,
    StepNotFoundError,
    StepRegistry,
    step_registry,
)

__all__ = [
    "BuildStep",
    "CommandBuildStep",
    "DryRunBuildStep",
    "ENTRYPOINT_GROUP",
    "StepAlreadyRegisteredError",
    "StepNotFoundError",
    "StepRegistry",
    "measure_output",
    "step_registry",
]
