"""Retry executor and recovery policy."""
from __future__ import annotations

from metro_pipeline.retry.cancellation import CancellationToken
from metro_pipeline.retry.executor import (
    ErrorStatistics,
    RecoveryOutcome,
    RetryExecutor,
    RetryState,
)
from metro_pipeline.retry.strategy import RecoveryStrategy, RetryStrategy

__all__ = [
    "RetryExecutor",
    "RetryStrategy",
    "RecoveryStrategy",
    "RecoveryOutcome",
    "RetryState",
    "ErrorStatistics",
    "CancellationToken",
]
