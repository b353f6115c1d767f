"""Command-line interface for metro-pipeline."""
from __future__ import annotations

from metro_pipeline.cli.main import cli

__all__ = ["cli"]
