"""Benchmark: end-to-end pipeline latency (p50/p95/mean).

Runs the full orchestrator with the dry-run step, so the numbers cover
scheduling, regression detection and report persistence but no bundler.
"""
from __future__ import annotations

import asyncio
import json
import sys
import tempfile
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from metro_pipeline.config import BuildSettings, PipelineConfig, RetentionPolicy
from metro_pipeline.orchestrator import BuildOrchestrator
from metro_pipeline.steps import DryRunBuildStep

_WARMUP: int = 5
_ITERATIONS: int = 50


async def _run_many(config: PipelineConfig, count: int) -> list[float]:
    orchestrator = BuildOrchestrator(config, DryRunBuildStep())
    await orchestrator.initialize()
    latencies_ms: list[float] = []
    for _ in range(count):
        t0 = time.perf_counter()
        await orchestrator.execute_build(branch="bench", commit="0" * 40)
        latencies_ms.append((time.perf_counter() - t0) * 1000)
    return latencies_ms


def bench_pipeline_latency() -> dict[str, object]:
    """Benchmark one 2x2 dry-run pipeline execution.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms, p50_ms, p95_ms.
    """
    with tempfile.TemporaryDirectory() as workdir:
        config = PipelineConfig(
            build=BuildSettings(
                output_dir=str(Path(workdir) / "dist"),
                report_dir=str(Path(workdir) / "reports"),
            ),
            retention=RetentionPolicy(days=0, max_artifacts=5),
        )
        latencies_ms = asyncio.run(_run_many(config, _WARMUP + _ITERATIONS))[_WARMUP:]

    sorted_lats = sorted(latencies_ms)
    n = len(sorted_lats)
    total = sum(latencies_ms) / 1000

    result: dict[str, object] = {
        "operation": "pipeline_latency_dry_run",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(sum(latencies_ms) / n, 4),
        "p50_ms": round(sorted_lats[int(n * 0.50)], 4),
        "p95_ms": round(sorted_lats[min(int(n * 0.95), n - 1)], 4),
    }
    print(
        f"[bench_latency] {result['operation']}: "
        f"p50={result['p50_ms']:.4f}ms  p95={result['p95_ms']:.4f}ms  "
        f"mean={result['avg_latency_ms']:.4f}ms"
    )
    return result


if __name__ == "__main__":
    result = bench_pipeline_latency()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "latency_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
