"""Build reports: aggregation, rendering, persistence and retention.

A report is written as a pair of files sharing a stem,
``<report_id>.json`` for machines and ``<report_id>.md`` for people.
Retention is enforced over those pairs after every write.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from metro_pipeline.errors import FileOperation, PipelineError, file_system_error
from metro_pipeline.models import BuildResult
from metro_pipeline.regression import PerformanceRegression

logger = logging.getLogger(__name__)

REPORT_PREFIX = "build-report-"

_SECONDS_PER_DAY = 86_400


@dataclass(frozen=True)
class ReportSummary:
    """Totals over every result in a report."""

    total_builds: int
    successful_builds: int
    failed_builds: int
    total_duration: float
    average_bundle_size: float
    regression_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_builds": self.total_builds,
            "successful_builds": self.successful_builds,
            "failed_builds": self.failed_builds,
            "total_duration": self.total_duration,
            "average_bundle_size": self.average_bundle_size,
            "regression_count": self.regression_count,
        }


@dataclass(frozen=True)
class BuildReport:
    """Everything known about one pipeline run.

    ``json_path`` and ``markdown_path`` are set once the report has been
    written.
    """

    report_id: str
    build_id: str
    generated_at: float
    summary: ReportSummary
    results: tuple[BuildResult, ...] = ()
    regressions: tuple[PerformanceRegression, ...] = ()
    errors: tuple[PipelineError, ...] = ()
    json_path: Path | None = None
    markdown_path: Path | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.summary.failed_builds == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_id": self.report_id,
            "build_id": self.build_id,
            "generated_at": self.generated_at,
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "regressions": [r.to_dict() for r in self.regressions],
            "errors": [e.to_dict() for e in self.errors],
            "metadata": dict(self.metadata),
        }


def summarize(
    results: Sequence[BuildResult], regressions: Sequence[PerformanceRegression]
) -> ReportSummary:
    successful = [r for r in results if r.success]
    average = (
        sum(r.bundle_size for r in successful) / len(successful) if successful else 0.0
    )
    return ReportSummary(
        total_builds=len(results),
        successful_builds=len(successful),
        failed_builds=len(results) - len(successful),
        total_duration=sum(r.duration for r in results),
        average_bundle_size=average,
        regression_count=len(regressions),
    )


def _format_bytes(size: float) -> str:
    for unit in ("B", "KB", "MB"):
        if abs(size) < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} GB"


class ReportGenerator:
    """Turn build results into persisted reports.

    Parameters
    ----------
    report_dir:
        Directory the report pairs are written to.
    retention:
        Object with ``days`` and ``max_artifacts`` attributes, usually
        ``PipelineConfig.retention``.
    now:
        Wall-clock source in seconds since the epoch.
    """

    def __init__(
        self,
        report_dir: str | Path,
        retention: Any,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._report_dir = Path(report_dir)
        self._retention = retention
        self._now = now

    @property
    def report_dir(self) -> Path:
        return self._report_dir

    # ------------------------------------------------------------------
    # Aggregation and rendering
    # ------------------------------------------------------------------

    def build(
        self,
        results: Sequence[BuildResult],
        regressions: Sequence[PerformanceRegression] = (),
        errors: Sequence[PipelineError] = (),
        build_id: str = "manual",
        metadata: dict[str, Any] | None = None,
    ) -> BuildReport:
        """Aggregate *results* into a report without touching the disk."""
        return BuildReport(
            report_id=f"{REPORT_PREFIX}{build_id}",
            build_id=build_id,
            generated_at=self._now(),
            summary=summarize(results, regressions),
            results=tuple(results),
            regressions=tuple(regressions),
            errors=tuple(errors),
            metadata=dict(metadata or {}),
        )

    def render_markdown(self, report: BuildReport) -> str:
        """Return *report* as a Markdown document."""
        summary = report.summary
        generated = datetime.fromtimestamp(report.generated_at, tz=timezone.utc)
        lines = [
            f"# Metro Build Report `{report.build_id}`",
            "",
            f"Generated {generated.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            "",
            "## Summary",
            "",
            "| Metric | Value |",
            "|---|---|",
            f"| Total builds | {summary.total_builds} |",
            f"| Successful | {summary.successful_builds} |",
            f"| Failed | {summary.failed_builds} |",
            f"| Total duration | {summary.total_duration:.0f} ms |",
            f"| Average bundle size | {_format_bytes(summary.average_bundle_size)} |",
            f"| Regressions | {summary.regression_count} |",
            "",
            "## Builds",
            "",
            "| Platform | Environment | State | Duration | Bundle size | Notes |",
            "|---|---|---|---|---|---|",
        ]
        for result in report.results:
            notes = result.error or ""
            if result.degraded:
                notes = f"degraded: {notes}" if notes else "degraded"
            lines.append(
                f"| {result.platform} | {result.environment} | {result.state.value} "
                f"| {result.duration:.0f} ms | {_format_bytes(result.bundle_size)} | {notes} |"
            )
        if report.regressions:
            lines += ["", "## Performance regressions", ""]
            for regression in report.regressions:
                lines.append(
                    f"- **{regression.platform}/{regression.environment}** "
                    f"{regression.metric.value}: +{regression.delta_percent:.1f}% "
                    f"({regression.severity.value}, threshold {regression.threshold:g}%)"
                )
                lines += [f"  - {tip}" for tip in regression.recommendations]
        if report.errors:
            lines += ["", "## Errors", ""]
            for error in report.errors:
                lines.append(f"- {error}")
                if error.recovery_hint:
                    lines.append(f"  - Hint: {error.recovery_hint}")
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _write_files(self, report: BuildReport) -> tuple[Path, Path]:
        json_path = self._report_dir / f"{report.report_id}.json"
        markdown_path = self._report_dir / f"{report.report_id}.md"
        try:
            self._report_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise file_system_error(
                f"Cannot create report directory: {exc}",
                str(self._report_dir),
                FileOperation.MKDIR,
            ) from exc
        try:
            json_path.write_text(
                json.dumps(report.to_dict(), indent=2), encoding="utf-8"
            )
            markdown_path.write_text(self.render_markdown(report), encoding="utf-8")
        except OSError as exc:
            raise file_system_error(
                f"Cannot write report: {exc}", str(json_path), FileOperation.WRITE
            ) from exc
        return json_path, markdown_path

    async def write(self, report: BuildReport) -> BuildReport:
        """Persist *report* and return a copy carrying the written paths.

        Raises
        ------
        PipelineError
            A file-system error if the directory or files cannot be written.
        """
        json_path, markdown_path = await asyncio.to_thread(self._write_files, report)
        logger.info("Wrote build report %s", json_path)
        return replace(report, json_path=json_path, markdown_path=markdown_path)

    def _report_files(self) -> list[Path]:
        if not self._report_dir.is_dir():
            return []
        return sorted(
            self._report_dir.glob(f"{REPORT_PREFIX}*.json"),
            key=lambda p: (p.stat().st_mtime, p.name),
            reverse=True,
        )

    def prune(self) -> list[Path]:
        """Delete report pairs beyond the retention policy.

        A pair is removed when it is older than ``retention.days`` or
        when it falls outside the newest ``retention.max_artifacts``.
        ``days == 0`` disables the age limit.

        Returns
        -------
        list[Path]
            Every file removed.
        """
        days = self._retention.days
        cutoff = self._now() - days * _SECONDS_PER_DAY if days > 0 else None
        removed: list[Path] = []
        for index, json_path in enumerate(self._report_files()):
            expired = cutoff is not None and json_path.stat().st_mtime < cutoff
            if index < self._retention.max_artifacts and not expired:
                continue
            for path in (json_path, json_path.with_suffix(".md")):
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    raise file_system_error(
                        f"Cannot delete old report: {exc}",
                        str(path),
                        FileOperation.DELETE,
                    ) from exc
                removed.append(path)
        if removed:
            logger.info("Pruned %d old report file(s) from %s", len(removed), self._report_dir)
        return removed

    async def generate(
        self,
        results: Sequence[BuildResult],
        regressions: Sequence[PerformanceRegression] = (),
        errors: Sequence[PipelineError] = (),
        build_id: str = "manual",
        metadata: dict[str, Any] | None = None,
    ) -> BuildReport:
        """Build, write and prune in one step."""
        report = self.build(results, regressions, errors, build_id, metadata)
        written = await self.write(report)
        await asyncio.to_thread(self.prune)
        return written
