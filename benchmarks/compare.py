"""Show metro-pipeline benchmark results, optionally against an earlier run.

Usage::

    python benchmarks/compare.py
    python benchmarks/compare.py --previous path/to/old/results
"""
from __future__ import annotations

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

_RESULT_FILES = (
    "ci_render_throughput_baseline.json",
    "regression_throughput_baseline.json",
    "latency_baseline.json",
    "memory_baseline.json",
)

console = Console()


def _load(path: Path) -> dict[str, object] | None:
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)  # type: ignore[no-any-return]


def _metric(data: dict[str, object], key: str) -> float:
    return float(data.get(key, 0) or 0)  # type: ignore[arg-type]


def _change(current: float, previous: float | None) -> str:
    if previous is None or previous <= 0 or current <= 0:
        return ""
    delta = (current - previous) / previous * 100
    color = "green" if delta >= 0 else "red"
    return f" [{color}]({delta:+.1f}%)[/{color}]"


@click.command()
@click.option("--results", "results_dir", type=click.Path(file_okay=False, path_type=Path),
              default=Path(__file__).parent / "results", show_default=True)
@click.option("--previous", "previous_dir", type=click.Path(file_okay=False, path_type=Path),
              default=None, help="Directory of an earlier run to compare throughput against")
def main(results_dir: Path, previous_dir: Path | None) -> None:
    """Print a table of the latest benchmark results."""
    table = Table(title="metro-pipeline benchmark results")
    table.add_column("Operation", style="bold")
    table.add_column("Ops/sec", justify="right")
    table.add_column("Avg latency", justify="right")
    table.add_column("Peak memory", justify="right")

    missing = []
    for fname in _RESULT_FILES:
        data = _load(results_dir / fname)
        if data is None:
            missing.append(fname)
            continue
        previous = _load(previous_dir / fname) if previous_dir is not None else None
        ops = _metric(data, "ops_per_second")
        latency = _metric(data, "avg_latency_ms")
        peak = _metric(data, "peak_memory_kb")
        table.add_row(
            str(data.get("operation", fname)),
            (f"{ops:,.0f}" + _change(ops, _metric(previous, "ops_per_second") if previous else None))
            if ops > 0 else "n/a",
            f"{latency:.3f} ms" if latency > 0 else "n/a",
            f"{peak:,.0f} KB" if peak > 0 else "n/a",
        )

    console.print(table)
    for fname in missing:
        console.print(f"[dim]no results for {fname}; run the benchmark first[/dim]")
    if missing:
        console.print(
            "[dim]python benchmarks/bench_throughput.py | bench_latency.py | bench_memory.py[/dim]"
        )


if __name__ == "__main__":
    main()
