"""Build step that reports fixed measurements without building anything."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from metro_pipeline.models import StepOutcome
from metro_pipeline.steps.base import BuildStep
from metro_pipeline.steps.registry import step_registry

if TYPE_CHECKING:
    from metro_pipeline.config import PipelineConfig


@step_registry.register("dry-run")
class DryRunBuildStep(BuildStep):
    """Pretend to build, for rehearsing a configuration.

    Every combination reports the same sizes, so a dry run never
    triggers a regression against its own history.
    """

    def __init__(
        self,
        bundle_size: int = 1_000_000,
        assets_size: int = 250_000,
        duration_ms: float = 0.0,
    ) -> None:
        self._bundle_size = bundle_size
        self._assets_size = assets_size
        self._duration_ms = duration_ms

    @property
    def name(self) -> str:
        return "dry_run"

    async def execute(
        self, platform: str, environment: str, config: "PipelineConfig"
    ) -> StepOutcome:
        if self._duration_ms > 0:
            await asyncio.sleep(self._duration_ms / 1000)
        return StepOutcome(
            success=True,
            duration_ms=self._duration_ms,
            output_path=str(Path(config.build.output_dir) / platform / environment),
            bundle_size=self._bundle_size,
            assets_size=self._assets_size,
            bundle_count=1,
        )
