#!/usr/bin/env python3
"""Example: Quickstart — metro-pipeline

Minimal working example: load a pipeline configuration, rehearse every
platform×environment build with the dry-run step, and read the report.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install metro-pipeline
"""
from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

import metro_pipeline
from metro_pipeline.config import PipelineConfig
from metro_pipeline.orchestrator import BuildOrchestrator
from metro_pipeline.steps import DryRunBuildStep

CONFIG_YAML = """
performance:
  threshold_bundle_size: 10
  threshold_build_time: 25
  baseline_builds: 5
build:
  platforms: [android, ios]
  environments: [development, production]
  output_dir: {root}/dist
  report_dir: {root}/build-reports
"""


async def run(config: PipelineConfig) -> None:
    orchestrator = BuildOrchestrator(config, DryRunBuildStep(bundle_size=1_200_000))
    await orchestrator.initialize()

    # Step 2: Build every combination (no bundler is invoked)
    results = await orchestrator.execute_build(branch="main", commit="0" * 40)
    for result in results:
        print(f"  {result.label:<24} {result.state.value:<8} {result.bundle_size:>10,} B")

    # Step 3: Read the persisted report
    report = orchestrator.last_report
    if report is not None:
        print(f"\nReport: {report.markdown_path}")
        print(f"Successful builds: {report.summary.successful_builds}/{report.summary.total_builds}")


def main() -> None:
    print(f"metro-pipeline version: {metro_pipeline.__version__}")

    with tempfile.TemporaryDirectory() as root:
        # Step 1: Load and validate the configuration
        path = Path(root) / "metro-pipeline.yml"
        path.write_text(CONFIG_YAML.format(root=root), encoding="utf-8")
        config = metro_pipeline.load_config(path)
        print(f"Loaded {len(config.build.combinations())} build combination(s)\n")

        asyncio.run(run(config))


if __name__ == "__main__":
    main()
