"""Benchmark: memory held by regression baselines."""
from __future__ import annotations

import json
import sys
import tracemalloc
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from metro_pipeline.config import PerformanceThresholds
from metro_pipeline.models import BuildMetrics
from metro_pipeline.regression import RegressionDetector

_ITERATIONS: int = 2_000
_PLATFORMS = ("android", "ios", "web")
_ENVIRONMENTS = ("development", "staging", "production")


def bench_baseline_memory() -> dict[str, object]:
    """Benchmark memory growth while feeding many builds through the detector.

    The windows are bounded, so growth should stay flat however many
    builds are recorded.

    Returns
    -------
    dict with keys: operation, iterations, peak_memory_kb, current_memory_kb.
    """
    detector = RegressionDetector(PerformanceThresholds(baseline_builds=10))
    tracemalloc.start()

    for n in range(_ITERATIONS):
        metrics = BuildMetrics(
            js_size=1_000_000 + n, assets_size=0, build_time=1000.0 + n, memory_usage=0
        )
        for platform in _PLATFORMS:
            for environment in _ENVIRONMENTS:
                detector.compare(platform, environment, metrics)
                detector.record(platform, environment, metrics)

    current, peak = tracemalloc.get_traced_memory()
    tracemalloc.stop()

    result: dict[str, object] = {
        "operation": "regression_baseline_memory",
        "iterations": _ITERATIONS,
        "peak_memory_kb": round(peak / 1024, 2),
        "current_memory_kb": round(current / 1024, 2),
        "ops_per_second": 0.0,
        "avg_latency_ms": 0.0,
    }
    print(
        f"[bench_memory] {result['operation']}: peak {result['peak_memory_kb']:.2f} KB "
        f"over {_ITERATIONS} iterations"
    )
    return result


if __name__ == "__main__":
    result = bench_baseline_memory()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "memory_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
