"""Shared test fixtures for metro-pipeline.

Fixtures defined here are available to all tests in the suite without
needing an explicit import. Add project-wide fixtures here; keep
domain-specific fixtures close to the tests that use them.
"""
from __future__ import annotations

from pathlib import Path

import pytest

from metro_pipeline.config import BuildSettings, PipelineConfig, RetentionPolicy
from metro_pipeline.retry import RetryStrategy


@pytest.fixture()
def package_name() -> str:
    """Return the importable package name for assertions."""
    return "metro_pipeline"


@pytest.fixture()
def expected_version() -> str:
    """Return the current expected version string.

    Update this fixture when cutting a release so that the version
    test immediately catches stale ``__version__`` values.
    """
    return "0.1.0"


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    """Return a recorder to inject as ``RetryExecutor(sleep=...)``."""
    return SleepRecorder()


@pytest.fixture()
def workspace_config(tmp_path: Path) -> PipelineConfig:
    """Return a valid configuration writing everything under ``tmp_path``.

    Builds ``android`` and ``ios`` for ``development`` and ``production``
    with a short retry schedule.
    """
    return PipelineConfig(
        build=BuildSettings(
            platforms=("android", "ios"),
            environments=("development", "production"),
            output_dir=str(tmp_path / "dist"),
            report_dir=str(tmp_path / "reports"),
            default_timeout=5.0,
        ),
        retry=RetryStrategy(max_attempts=3, base_delay_ms=1, max_delay_ms=4),
        retention=RetentionPolicy(days=30, max_artifacts=10),
    )
