"""Pipeline configuration.

Exports ``PipelineConfig`` and its sections, plus the loader and
validation helpers.
"""
from __future__ import annotations

from metro_pipeline.config.settings import (
    BuildSettings,
    CIPlatform,
    NotificationSettings,
    OptimizationToggles,
    PerformanceThresholds,
    PipelineConfig,
    RetentionPolicy,
    TriggerConfig,
    default_config,
    ensure_valid,
    load_config,
)

__all__ = [
    "PipelineConfig",
    "CIPlatform",
    "TriggerConfig",
    "PerformanceThresholds",
    "OptimizationToggles",
    "RetentionPolicy",
    "NotificationSettings",
    "BuildSettings",
    "default_config",
    "ensure_valid",
    "load_config",
]
