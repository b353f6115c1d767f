"""Performance regression detection and severity classification."""
from __future__ import annotations

from metro_pipeline.regression.detector import (
    Baseline,
    PerformanceRegression,
    RegressionDetector,
    RegressionMetric,
)
from metro_pipeline.regression.severity import RegressionSeverity, calculate_severity

__all__ = [
    "calculate_severity",
    "RegressionSeverity",
    "Baseline",
    "RegressionDetector",
    "RegressionMetric",
    "PerformanceRegression",
]
