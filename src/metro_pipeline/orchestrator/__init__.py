"""Build orchestration across platform×environment combinations."""
from __future__ import annotations

from metro_pipeline.models import BuildMetrics, BuildResult, BuildState, StepOutcome
from metro_pipeline.orchestrator.context import BuildContext, generate_build_id, git_info
from metro_pipeline.orchestrator.orchestrator import BuildOrchestrator, process_memory

__all__ = [
    "BuildOrchestrator",
    "BuildContext",
    "BuildMetrics",
    "BuildResult",
    "BuildState",
    "StepOutcome",
    "generate_build_id",
    "git_info",
    "process_memory",
]
