"""Bounded retry with exponential backoff and severity-driven recovery.

The retry loop is an explicit state machine over ``RetryState``:

::

    attempt n  ──ok──────────────────────────────▶ return value
       │
       └─fail─▶ classify ──not retryable / last──▶ raise (annotated)
                   │
                   └─retryable─▶ sleep delay_for(n) ──▶ attempt n+1

Cancellation is checked before every attempt and while sleeping.

Usage
-----
::

    executor = RetryExecutor(RetryStrategy(max_attempts=3), RecoveryStrategy())
    result = await executor.handle_with_retry(
        lambda: step.execute(platform, environment, config),
        ErrorContext(operation="bundle_build", platform=platform),
    )
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from metro_pipeline.errors import (
    BuildCancelledError,
    ErrorContext,
    PipelineError,
    from_exception,
    is_retryable,
)
from metro_pipeline.retry.cancellation import CancellationToken
from metro_pipeline.retry.strategy import RecoveryStrategy, RetryStrategy

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class RetryState:
    """Mutable progress of one ``handle_with_retry`` call."""

    attempt: int = 0
    next_delay_ms: float = 0.0
    last_error: PipelineError | None = None


@dataclass(frozen=True)
class RecoveryOutcome:
    """Result of :meth:`RetryExecutor.handle_error`.

    Parameters
    ----------
    recovered:
        True if the error was downgraded to a non-fatal outcome.
    error:
        The classified error.
    fallback_config:
        The recovery strategy's fallback configuration, when recovered.
    """

    recovered: bool
    error: PipelineError
    fallback_config: Mapping[str, Any] | None = None


@dataclass
class ErrorStatistics:
    """Running counters over every error the executor has seen."""

    total_errors: int = 0
    retried_operations: int = 0
    recovered_errors: int = 0
    critical_failures: int = 0
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    errors_by_severity: dict[str, int] = field(default_factory=dict)

    def record(self, error: PipelineError) -> None:
        self.total_errors += 1
        kind = error.kind.label
        self.errors_by_kind[kind] = self.errors_by_kind.get(kind, 0) + 1
        severity = error.severity.value
        self.errors_by_severity[severity] = self.errors_by_severity.get(severity, 0) + 1

    @property
    def recovery_rate(self) -> float:
        """Percentage of errors that were recovered."""
        if self.total_errors == 0:
            return 0.0
        return self.recovered_errors / self.total_errors * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_errors": self.total_errors,
            "retried_operations": self.retried_operations,
            "recovered_errors": self.recovered_errors,
            "critical_failures": self.critical_failures,
            "errors_by_kind": dict(sorted(self.errors_by_kind.items())),
            "errors_by_severity": dict(sorted(self.errors_by_severity.items())),
            "recovery_rate": round(self.recovery_rate, 2),
        }


class RetryExecutor:
    """Run fallible async operations under a retry and recovery policy.

    Parameters
    ----------
    retry:
        Attempt bound and backoff schedule.  Defaults to
        ``RetryStrategy()``.
    recovery:
        Policy flags.  Defaults to ``RecoveryStrategy()``.
    sleep:
        Coroutine function used for backoff delays, taking seconds.
        Defaults to a cancellation-aware ``asyncio.sleep``.  Tests
        inject a recorder here.
    """

    def __init__(
        self,
        retry: RetryStrategy | None = None,
        recovery: RecoveryStrategy | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._retry = retry if retry is not None else RetryStrategy()
        self._recovery = recovery if recovery is not None else RecoveryStrategy()
        self._sleep = sleep
        self._stats = ErrorStatistics()

    @property
    def retry_strategy(self) -> RetryStrategy:
        return self._retry

    @property
    def recovery_strategy(self) -> RecoveryStrategy:
        return self._recovery

    @property
    def statistics(self) -> ErrorStatistics:
        return self._stats

    def reset(self) -> None:
        """Clear all error statistics."""
        self._stats = ErrorStatistics()

    # ------------------------------------------------------------------
    # Retry loop
    # ------------------------------------------------------------------

    async def handle_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        context: ErrorContext | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> T:
        """Run *operation* until it succeeds or the policy gives up.

        Parameters
        ----------
        operation:
            Zero-argument coroutine function to run.
        context:
            Attached to errors that are not already ``PipelineError``.
        cancel_token:
            Checked before each attempt and during backoff.

        Returns
        -------
        T
            Whatever *operation* returned on its successful attempt.

        Raises
        ------
        PipelineError
            The last error, annotated with the number of attempts made,
            when attempts are exhausted or the error may not be retried.
        BuildCancelledError
            If cancellation was requested.
        """
        ctx = context if context is not None else ErrorContext(operation="operation")
        state = RetryState()
        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(
                    f"attempt {state.attempt + 1} of {ctx.operation}"
                )
            state.attempt += 1
            try:
                return await operation()
            except BuildCancelledError:
                raise
            except Exception as exc:
                error = from_exception(exc, ctx)
                state.last_error = error
                self._stats.record(error)
                if not self._should_retry(error, state.attempt):
                    final = error.with_attempts(state.attempt)
                    logger.error(
                        "%s failed after %d attempt(s): %s",
                        ctx.operation,
                        state.attempt,
                        error.message,
                    )
                    raise final from exc

            state.next_delay_ms = self._retry.delay_for(state.attempt)
            self._stats.retried_operations += 1
            logger.warning(
                "%s failed on attempt %d/%d, retrying in %.0fms: %s",
                ctx.operation,
                state.attempt,
                self._retry.max_attempts,
                state.next_delay_ms,
                state.last_error.message,
            )
            if await self._pause(state.next_delay_ms, cancel_token):
                raise BuildCancelledError(f"retry of {ctx.operation}")

    def _should_retry(self, error: PipelineError, attempt: int) -> bool:
        if not self._recovery.enable_retry:
            return False
        if attempt >= self._retry.max_attempts:
            return False
        return is_retryable(error)

    async def _pause(
        self, delay_ms: float, cancel_token: CancellationToken | None
    ) -> bool:
        """Sleep for *delay_ms*; return True if cancelled meanwhile."""
        seconds = delay_ms / 1000
        if self._sleep is not None:
            await self._sleep(seconds)
            return cancel_token is not None and cancel_token.cancelled
        if cancel_token is not None:
            return await cancel_token.sleep(seconds)
        await asyncio.sleep(seconds)
        return False

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def handle_error(
        self, error: BaseException, context: ErrorContext | None = None
    ) -> RecoveryOutcome:
        """Decide whether *error* can be downgraded to a non-fatal outcome.

        Non-critical errors are recovered when ``graceful_degradation``
        is enabled; critical errors never are.
        """
        classified = from_exception(error, context)
        if self._recovery.graceful_degradation and not classified.is_critical:
            self._stats.recovered_errors += 1
            logger.warning(
                "Applied graceful degradation for %s: %s",
                classified.kind.label,
                classified.message,
            )
            return RecoveryOutcome(
                recovered=True,
                error=classified,
                fallback_config=self._recovery.fallback_config,
            )
        if classified.is_critical:
            self._stats.critical_failures += 1
        return RecoveryOutcome(recovered=False, error=classified)
