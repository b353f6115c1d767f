"""Build report aggregation and persistence."""
from __future__ import annotations

from metro_pipeline.reporting.generator import (
    REPORT_PREFIX,
    BuildReport,
    ReportGenerator,
    ReportSummary,
    summarize,
)

__all__ = [
    "BuildReport",
    "ReportGenerator",
    "ReportSummary",
    "REPORT_PREFIX",
    "summarize",
]
