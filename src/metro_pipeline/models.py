"""Value types shared by the orchestrator, regression detector and reports.

All types are frozen dataclasses: a ``BuildResult`` is created once per
platform×environment combination and never changed afterwards.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from metro_pipeline.regression.detector import PerformanceRegression


class BuildState(Enum):
    """Lifecycle of one platform×environment combination.

    ``PENDING → BUILDING → SUCCESS | FAILED``
    """

    PENDING = "pending"
    BUILDING = "building"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BuildState.SUCCESS, BuildState.FAILED)


@dataclass(frozen=True)
class BuildMetrics:
    """Measurements of one completed build.

    Parameters
    ----------
    js_size:
        Bytes of JavaScript bundle output.
    assets_size:
        Bytes of bundled static assets.
    build_time:
        Duration in milliseconds of the successful build attempt, as
        reported by the build step.
    memory_usage:
        Resident memory of the pipeline process in bytes, sampled after
        the build.
    bundle_count, warning_count, cache_hit_rate:
        Optional extra measurements reported by the build step.
    """

    js_size: int
    assets_size: int
    build_time: float
    memory_usage: int
    bundle_count: int | None = None
    warning_count: int | None = None
    cache_hit_rate: float | None = None

    @property
    def bundle_size(self) -> int:
        """Total output size in bytes."""
        return self.js_size + self.assets_size

    def to_dict(self) -> dict[str, Any]:
        return {
            "js_size": self.js_size,
            "assets_size": self.assets_size,
            "bundle_size": self.bundle_size,
            "build_time": self.build_time,
            "memory_usage": self.memory_usage,
            "bundle_count": self.bundle_count,
            "warning_count": self.warning_count,
            "cache_hit_rate": self.cache_hit_rate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildMetrics":
        return cls(
            js_size=int(data["js_size"]),
            assets_size=int(data.get("assets_size", 0)),
            build_time=float(data["build_time"]),
            memory_usage=int(data.get("memory_usage", 0)),
            bundle_count=data.get("bundle_count"),
            warning_count=data.get("warning_count"),
            cache_hit_rate=data.get("cache_hit_rate"),
        )


@dataclass(frozen=True)
class StepOutcome:
    """What the external build step reports for one combination.

    ``success=False`` without an exception is treated as a build-step
    failure by the orchestrator.
    """

    success: bool
    duration_ms: float
    output_path: str
    bundle_size: int
    warnings: tuple[str, ...] = ()
    assets_size: int = 0
    bundle_count: int | None = None
    cache_hit_rate: float | None = None
    error: str | None = None


@dataclass(frozen=True)
class BuildResult:
    """Outcome of building one platform×environment combination.

    ``bundle_size`` is the total output size (JS plus assets), the same
    quantity the regression detector compares.  ``duration`` is the
    wall-clock time including retries.
    """

    build_id: str
    platform: str
    environment: str
    success: bool
    state: BuildState
    duration: float
    output_path: str = ""
    bundle_size: int = 0
    metrics: BuildMetrics | None = None
    warnings: tuple[str, ...] = ()
    error: str | None = None
    error_kind: str | None = None
    regressions: tuple["PerformanceRegression", ...] = ()
    cancelled: bool = False
    degraded: bool = False
    timestamp: float = field(default_factory=time.time)
    branch: str = "unknown"
    commit: str = "unknown"

    @property
    def key(self) -> tuple[str, str]:
        return (self.platform, self.environment)

    @property
    def label(self) -> str:
        return f"{self.platform}/{self.environment}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "build_id": self.build_id,
            "platform": self.platform,
            "environment": self.environment,
            "success": self.success,
            "state": self.state.value,
            "duration": self.duration,
            "output_path": self.output_path,
            "bundle_size": self.bundle_size,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "warnings": list(self.warnings),
            "error": self.error,
            "error_kind": self.error_kind,
            "regressions": [r.to_dict() for r in self.regressions],
            "cancelled": self.cancelled,
            "degraded": self.degraded,
            "timestamp": self.timestamp,
            "branch": self.branch,
            "commit": self.commit,
        }
