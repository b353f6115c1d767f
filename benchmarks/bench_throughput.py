"""Benchmark: CI generation and regression comparison throughput.

Measures how many CI configurations can be rendered, and how many build
measurements can be checked against a rolling baseline, per second.
"""
from __future__ import annotations

import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from metro_pipeline.ci import CITemplateOptions, render
from metro_pipeline.config import PerformanceThresholds
from metro_pipeline.models import BuildMetrics
from metro_pipeline.regression import RegressionDetector

_RENDER_ITERATIONS: int = 300
_COMPARE_ITERATIONS: int = 20_000

_OPTIONS = CITemplateOptions(
    node_versions=("18", "20"),
    enable_performance_benchmarks=True,
    enable_mutation_testing=True,
    include_deployment=True,
    enable_code_quality=True,
    enable_security=True,
)


def _report(result: dict[str, object]) -> dict[str, object]:
    print(
        f"[bench_throughput] {result['operation']}: "
        f"{result['ops_per_second']:,.0f} ops/sec  "
        f"avg {result['avg_latency_ms']:.4f} ms"
    )
    return result


def bench_ci_render_throughput() -> dict[str, object]:
    """Benchmark rendering all three CI providers with every job enabled.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms.
    """
    providers = ("github", "gitlab", "jenkins")
    start = time.perf_counter()
    for _ in range(_RENDER_ITERATIONS):
        for provider in providers:
            render(provider, _OPTIONS)
    total = time.perf_counter() - start
    count = _RENDER_ITERATIONS * len(providers)

    return _report({
        "operation": "ci_render_throughput",
        "iterations": count,
        "total_seconds": round(total, 4),
        "ops_per_second": round(count / total, 1),
        "avg_latency_ms": round(total / count * 1000, 4),
    })


def bench_regression_compare_throughput() -> dict[str, object]:
    """Benchmark comparing and recording metrics against a full baseline window.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms.
    """
    detector = RegressionDetector(PerformanceThresholds(baseline_builds=5))
    samples = [
        BuildMetrics(
            js_size=1_000_000 + (n % 7) * 50_000,
            assets_size=250_000,
            build_time=30_000.0 + (n % 5) * 2_000,
            memory_usage=0,
        )
        for n in range(_COMPARE_ITERATIONS)
    ]

    start = time.perf_counter()
    for metrics in samples:
        detector.compare("android", "production", metrics)
        detector.record("android", "production", metrics)
    total = time.perf_counter() - start

    return _report({
        "operation": "regression_compare_throughput",
        "iterations": _COMPARE_ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_COMPARE_ITERATIONS / total, 1),
        "avg_latency_ms": round(total / _COMPARE_ITERATIONS * 1000, 4),
    })


if __name__ == "__main__":
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)

    for bench_fn, fname in [
        (bench_ci_render_throughput, "ci_render_throughput_baseline.json"),
        (bench_regression_compare_throughput, "regression_throughput_baseline.json"),
    ]:
        result = bench_fn()
        output_path = results_dir / fname
        with open(output_path, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2)
        print(f"Results saved to {output_path}")
