"""Rolling-baseline performance regression detection.

Each (platform, environment) pair owns a ``Baseline``: a FIFO window of
the last ``baseline_builds`` metrics.  A new measurement is compared
against the window mean *before* it is appended, so a build never
counts towards its own baseline.

Usage
-----
::

    detector = RegressionDetector(PerformanceThresholds(threshold_bundle_size=10))
    regressions = await detector.observe("android", "production", metrics)
    for regression in regressions:
        print(regression.metric.value, f"{regression.delta_percent:.1f}%")
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from metro_pipeline.errors import (
    FileOperation,
    configuration_error,
    file_system_error,
)
from metro_pipeline.models import BuildMetrics
from metro_pipeline.regression.severity import RegressionSeverity, calculate_severity

logger = logging.getLogger(__name__)

BaselineKey = tuple[str, str]

_BUNDLE_SIZE_SEVERITY = (50.0, 20.0)
_BUILD_TIME_SEVERITY = (100.0, 50.0)


class RegressionMetric(Enum):
    """Metrics tracked against the rolling baseline."""

    BUNDLE_SIZE = "bundle_size"
    BUILD_TIME = "build_time"


_RECOMMENDATIONS: dict[RegressionMetric, tuple[str, ...]] = {
    RegressionMetric.BUNDLE_SIZE: (
        "Analyze bundle composition for large new dependencies",
        "Enable tree shaking optimizations",
        "Consider code splitting strategies",
    ),
    RegressionMetric.BUILD_TIME: (
        "Check for new heavy transformers or plugins",
        "Verify cache is working properly",
        "Consider optimizing large modules",
    ),
}


@dataclass(frozen=True)
class PerformanceRegression:
    """A metric that grew beyond its threshold relative to the baseline.

    Parameters
    ----------
    platform, environment:
        The combination the measurement belongs to.
    metric:
        Which metric regressed.
    baseline:
        Mean of the window at comparison time.
    current:
        The new measurement.
    delta_percent:
        ``(current - baseline) / baseline * 100``.
    threshold:
        The configured percentage the delta exceeded.
    severity:
        Classification of ``delta_percent``.
    recommendations:
        Suggested remedies for this metric.
    """

    platform: str
    environment: str
    metric: RegressionMetric
    baseline: float
    current: float
    delta_percent: float
    threshold: float
    severity: RegressionSeverity
    recommendations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "environment": self.environment,
            "metric": self.metric.value,
            "baseline": self.baseline,
            "current": self.current,
            "delta_percent": round(self.delta_percent, 2),
            "threshold": self.threshold,
            "severity": self.severity.value,
            "recommendations": list(self.recommendations),
        }


class Baseline:
    """FIFO window of recent metrics with lazily cached means."""

    def __init__(self, size: int, samples: Iterable[BuildMetrics] = ()) -> None:
        if size < 1:
            raise ValueError(f"baseline size must be >= 1, got {size}")
        self._samples: deque[BuildMetrics] = deque(samples, maxlen=size)
        self._bundle_mean: float | None = None
        self._time_mean: float | None = None

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    @property
    def size(self) -> int:
        return self._samples.maxlen or 0

    @property
    def is_empty(self) -> bool:
        return not self._samples

    def append(self, metrics: BuildMetrics) -> None:
        self._samples.append(metrics)
        self._bundle_mean = None
        self._time_mean = None

    @property
    def mean_bundle_size(self) -> float:
        if self._bundle_mean is None:
            self._bundle_mean = _mean(m.bundle_size for m in self._samples)
        return self._bundle_mean

    @property
    def mean_build_time(self) -> float:
        if self._time_mean is None:
            self._time_mean = _mean(m.build_time for m in self._samples)
        return self._time_mean


def _mean(values: Iterable[float]) -> float:
    total = 0.0
    count = 0
    for value in values:
        total += value
        count += 1
    return total / count if count else 0.0


def _delta_percent(baseline: float, current: float) -> float | None:
    if baseline == 0:
        return None
    return (current - baseline) / baseline * 100


class RegressionDetector:
    """Compare build metrics against per-combination rolling baselines.

    Parameters
    ----------
    thresholds:
        Percentages that trigger a regression and the window length.
    """

    def __init__(self, thresholds: Any) -> None:
        self._thresholds = thresholds
        self._baselines: dict[BaselineKey, Baseline] = {}
        self._locks: dict[BaselineKey, asyncio.Lock] = {}

    @property
    def thresholds(self) -> Any:
        return self._thresholds

    def keys(self) -> list[BaselineKey]:
        """Return every (platform, environment) with a baseline, sorted."""
        return sorted(self._baselines)

    def baseline(self, platform: str, environment: str) -> Baseline:
        """Return the window for a combination, creating an empty one."""
        key = (platform, environment)
        window = self._baselines.get(key)
        if window is None:
            window = Baseline(self._thresholds.baseline_builds)
            self._baselines[key] = window
        return window

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare(
        self, platform: str, environment: str, metrics: BuildMetrics
    ) -> list[PerformanceRegression]:
        """Return regressions of *metrics* against the current window.

        Does not modify the window.  An empty window or a zero mean
        yields no regression; a metric is flagged only when its delta is
        strictly greater than the configured threshold.
        """
        window = self._baselines.get((platform, environment))
        if window is None or window.is_empty:
            return []

        checks = (
            (
                RegressionMetric.BUNDLE_SIZE,
                window.mean_bundle_size,
                float(metrics.bundle_size),
                self._thresholds.threshold_bundle_size,
                _BUNDLE_SIZE_SEVERITY,
            ),
            (
                RegressionMetric.BUILD_TIME,
                window.mean_build_time,
                float(metrics.build_time),
                self._thresholds.threshold_build_time,
                _BUILD_TIME_SEVERITY,
            ),
        )
        found: list[PerformanceRegression] = []
        for metric, mean, current, threshold, (upper, lower) in checks:
            delta = _delta_percent(mean, current)
            if delta is None or not delta > threshold:
                continue
            found.append(
                PerformanceRegression(
                    platform=platform,
                    environment=environment,
                    metric=metric,
                    baseline=mean,
                    current=current,
                    delta_percent=delta,
                    threshold=threshold,
                    severity=calculate_severity(delta, upper, lower),
                    recommendations=_RECOMMENDATIONS[metric],
                )
            )
        return found

    def record(self, platform: str, environment: str, metrics: BuildMetrics) -> None:
        """Append *metrics* to the combination's window."""
        self.baseline(platform, environment).append(metrics)

    async def observe(
        self, platform: str, environment: str, metrics: BuildMetrics
    ) -> list[PerformanceRegression]:
        """Compare *metrics* then append them, atomically per combination."""
        key = (platform, environment)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            regressions = self.compare(platform, environment, metrics)
            self.record(platform, environment, metrics)
        for regression in regressions:
            logger.warning(
                "Performance regression in %s/%s: %s +%.1f%% (%s)",
                platform,
                environment,
                regression.metric.value,
                regression.delta_percent,
                regression.severity.value,
            )
        return regressions

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseline_builds": self._thresholds.baseline_builds,
            "baselines": [
                {
                    "platform": platform,
                    "environment": environment,
                    "samples": [m.to_dict() for m in self._baselines[(platform, environment)]],
                }
                for platform, environment in self.keys()
            ],
        }

    def save_history(self, path: str | Path) -> Path:
        """Write every window to *path* as JSON.

        Raises
        ------
        PipelineError
            A file-system error if the file cannot be written.
        """
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            raise file_system_error(
                f"Cannot write build history: {exc}", str(target), FileOperation.WRITE
            ) from exc
        logger.debug("Saved build history for %d combination(s) to %s", len(self._baselines), target)
        return target

    def load_history(self, path: str | Path) -> int:
        """Replace the windows with those stored at *path*.

        A missing file is not an error and loads nothing.  Windows longer
        than ``baseline_builds`` keep only their newest samples.

        Returns
        -------
        int
            The number of combinations loaded.

        Raises
        ------
        PipelineError
            A file-system error if the file cannot be read, or a
            configuration error if its content is malformed.
        """
        source = Path(path)
        if not source.exists():
            logger.debug("No build history at %s", source)
            return 0
        try:
            raw = source.read_text(encoding="utf-8")
        except OSError as exc:
            raise file_system_error(
                f"Cannot read build history: {exc}", str(source), FileOperation.READ
            ) from exc
        try:
            data = json.loads(raw)
            baselines = {
                (entry["platform"], entry["environment"]): Baseline(
                    self._thresholds.baseline_builds,
                    (BuildMetrics.from_dict(sample) for sample in entry["samples"]),
                )
                for entry in data["baselines"]
            }
        except (ValueError, KeyError, TypeError) as exc:
            raise configuration_error(
                f"Malformed build history in {source}: {exc}"
            ) from exc
        self._baselines = baselines
        logger.debug("Loaded build history for %d combination(s) from %s", len(baselines), source)
        return len(baselines)
