"""Unit tests for metro_pipeline.reporting."""
from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from metro_pipeline.config import RetentionPolicy
from metro_pipeline.errors import ErrorKind, PipelineError, build_step_error
from metro_pipeline.models import BuildMetrics, BuildResult, BuildState
from metro_pipeline.regression import (
    PerformanceRegression,
    RegressionMetric,
    RegressionSeverity,
)
from metro_pipeline.reporting import REPORT_PREFIX, ReportGenerator, summarize

NOW = 1_700_000_000.0
DAY = 86_400


def result(
    platform: str = "ios",
    environment: str = "production",
    success: bool = True,
    bundle_size: int = 1000,
    duration: float = 50.0,
    **kwargs,
) -> BuildResult:
    return BuildResult(
        build_id="build-1",
        platform=platform,
        environment=environment,
        success=success,
        state=BuildState.SUCCESS if success else BuildState.FAILED,
        duration=duration,
        bundle_size=bundle_size,
        metrics=BuildMetrics(bundle_size, 0, duration, 0) if success else None,
        **kwargs,
    )


def regression() -> PerformanceRegression:
    return PerformanceRegression(
        platform="ios",
        environment="production",
        metric=RegressionMetric.BUNDLE_SIZE,
        baseline=1000.0,
        current=1500.0,
        delta_percent=50.0,
        threshold=10.0,
        severity=RegressionSeverity.MAJOR,
        recommendations=("Enable tree shaking optimizations",),
    )


def generator(tmp_path: Path, days: int = 30, max_artifacts: int = 100) -> ReportGenerator:
    return ReportGenerator(
        tmp_path / "reports",
        RetentionPolicy(days=days, max_artifacts=max_artifacts),
        now=lambda: NOW,
    )


class TestSummarize:
    def test_counts_and_averages(self) -> None:
        results = [
            result(bundle_size=1000, duration=10),
            result(platform="android", bundle_size=3000, duration=20),
            result(platform="web", success=False, bundle_size=0, duration=5),
        ]
        summary = summarize(results, [regression()])
        assert summary.total_builds == 3
        assert summary.successful_builds == 2
        assert summary.failed_builds == 1
        assert summary.total_duration == 35
        assert summary.average_bundle_size == 2000
        assert summary.regression_count == 1

    def test_empty(self) -> None:
        summary = summarize([], [])
        assert summary.total_builds == 0
        assert summary.average_bundle_size == 0.0


class TestBuild:
    def test_report_identity(self, tmp_path: Path) -> None:
        report = generator(tmp_path).build([result()], build_id="build-42")
        assert report.report_id == f"{REPORT_PREFIX}build-42"
        assert report.generated_at == NOW
        assert report.success
        assert report.json_path is None

    def test_failed_build_makes_report_unsuccessful(self, tmp_path: Path) -> None:
        report = generator(tmp_path).build([result(success=False)])
        assert not report.success


class TestMarkdown:
    def test_contains_summary_builds_regressions_and_errors(self, tmp_path: Path) -> None:
        gen = generator(tmp_path)
        report = gen.build(
            [result(), result(platform="android", success=False, error="exit 1", degraded=True)],
            [regression()],
            [build_step_error("exit 1", "bundle_build")],
            build_id="build-7",
        )
        text = gen.render_markdown(report)
        assert text.startswith("# Metro Build Report `build-7`")
        assert "| Total builds | 2 |" in text
        assert "| ios | production | success |" in text
        assert "degraded: exit 1" in text
        assert "## Performance regressions" in text
        assert "bundle_size: +50.0%" in text
        assert "Enable tree shaking optimizations" in text
        assert "## Errors" in text
        assert "BuildStepError: exit 1" in text
        assert text.endswith("\n")

    def test_omits_empty_sections(self, tmp_path: Path) -> None:
        gen = generator(tmp_path)
        text = gen.render_markdown(gen.build([result()]))
        assert "## Performance regressions" not in text
        assert "## Errors" not in text


class TestWrite:
    @pytest.mark.asyncio
    async def test_writes_json_and_markdown(self, tmp_path: Path) -> None:
        gen = generator(tmp_path)
        written = await gen.write(gen.build([result()], [regression()], build_id="build-9"))
        assert written.json_path == tmp_path / "reports" / "build-report-build-9.json"
        assert written.markdown_path == tmp_path / "reports" / "build-report-build-9.md"
        data = json.loads(written.json_path.read_text(encoding="utf-8"))
        assert data["build_id"] == "build-9"
        assert data["summary"]["total_builds"] == 1
        assert data["results"][0]["state"] == "success"
        assert data["regressions"][0]["severity"] == "major"
        assert written.markdown_path.read_text(encoding="utf-8").startswith("# Metro Build Report")

    @pytest.mark.asyncio
    async def test_unwritable_directory_is_file_system_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "reports"
        blocker.write_text("not a directory", encoding="utf-8")
        gen = generator(tmp_path)
        with pytest.raises(PipelineError) as excinfo:
            await gen.write(gen.build([result()]))
        assert excinfo.value.kind is ErrorKind.FILE_SYSTEM


class TestPrune:
    def _make_report(self, directory: Path, name: str, mtime: float) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        json_path = directory / f"{REPORT_PREFIX}{name}.json"
        json_path.write_text("{}", encoding="utf-8")
        md_path = json_path.with_suffix(".md")
        md_path.write_text("#", encoding="utf-8")
        for path in (json_path, md_path):
            os.utime(path, (mtime, mtime))
        return json_path

    def test_keeps_newest_max_artifacts(self, tmp_path: Path) -> None:
        directory = tmp_path / "reports"
        for index in range(5):
            self._make_report(directory, f"b{index}", NOW - 100 + index)
        removed = generator(tmp_path, max_artifacts=2).prune()
        assert len(removed) == 6
        assert sorted(p.name for p in directory.glob("*.json")) == [
            "build-report-b3.json",
            "build-report-b4.json",
        ]

    def test_removes_reports_older_than_days(self, tmp_path: Path) -> None:
        directory = tmp_path / "reports"
        self._make_report(directory, "old", NOW - 10 * DAY)
        self._make_report(directory, "new", NOW - DAY)
        generator(tmp_path, days=7).prune()
        assert [p.name for p in directory.glob("*.json")] == ["build-report-new.json"]
        assert not (directory / "build-report-old.md").exists()

    def test_zero_days_disables_age_limit(self, tmp_path: Path) -> None:
        directory = tmp_path / "reports"
        self._make_report(directory, "ancient", NOW - 1000 * DAY)
        assert generator(tmp_path, days=0).prune() == []

    def test_ignores_unrelated_files(self, tmp_path: Path) -> None:
        directory = tmp_path / "reports"
        directory.mkdir()
        other = directory / "notes.json"
        other.write_text("{}", encoding="utf-8")
        os.utime(other, (NOW - 1000 * DAY, NOW - 1000 * DAY))
        generator(tmp_path, days=1).prune()
        assert other.exists()

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert generator(tmp_path).prune() == []


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate_writes_then_prunes(self, tmp_path: Path) -> None:
        gen = generator(tmp_path, max_artifacts=1)
        directory = tmp_path / "reports"
        directory.mkdir()
        stale = directory / f"{REPORT_PREFIX}stale.json"
        stale.write_text("{}", encoding="utf-8")
        os.utime(stale, (NOW - 10, NOW - 10))

        report = await gen.generate([result()], build_id="fresh")
        assert report.json_path is not None and report.json_path.exists()
        assert not stale.exists()
