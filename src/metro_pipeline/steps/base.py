"""The contract between the orchestrator and the bundler it drives."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from metro_pipeline.config import PipelineConfig
    from metro_pipeline.models import StepOutcome


class BuildStep(ABC):
    """Produces one platform×environment bundle.

    Implementations may raise any ``PipelineError``; other exceptions are
    classified by the retry executor.  Returning ``StepOutcome(success=False)``
    is equivalent to raising a build-step error.
    """

    @property
    def name(self) -> str:
        """Short name used in logs and error context."""
        return type(self).__name__

    @abstractmethod
    async def execute(
        self, platform: str, environment: str, config: "PipelineConfig"
    ) -> "StepOutcome":
        """Build *platform* for *environment* and report what was produced."""
