"""Unit tests for metro_pipeline.retry — strategies, executor, cancellation."""
from __future__ import annotations

import asyncio

import pytest

from metro_pipeline.errors import (
    BuildCancelledError,
    ErrorContext,
    ErrorKind,
    ErrorSeverity,
    FileOperation,
    PipelineError,
    build_step_error,
    configuration_error,
    file_system_error,
    network_error,
)
from metro_pipeline.retry import (
    CancellationToken,
    RecoveryStrategy,
    RetryExecutor,
    RetryStrategy,
)


class Flaky:
    """Async callable failing with *errors* in turn, then returning ``"ok"``."""

    def __init__(self, *errors: BaseException) -> None:
        self._errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return "ok"


# ---------------------------------------------------------------------------
# RetryStrategy
# ---------------------------------------------------------------------------


class TestRetryStrategy:
    def test_default_delays(self) -> None:
        strategy = RetryStrategy(max_attempts=4, base_delay_ms=1000, max_delay_ms=10000)
        assert strategy.delays() == [1000, 2000, 4000]

    def test_delay_is_capped(self) -> None:
        strategy = RetryStrategy(max_attempts=10, base_delay_ms=1000, max_delay_ms=5000)
        assert strategy.delay_for(3) == 4000
        assert strategy.delay_for(4) == 5000
        assert strategy.delay_for(9) == 5000

    def test_huge_attempt_does_not_overflow(self) -> None:
        strategy = RetryStrategy(max_attempts=3, base_delay_ms=1000, max_delay_ms=5000)
        assert strategy.delay_for(5000) == 5000

    def test_attempt_is_one_based(self) -> None:
        with pytest.raises(ValueError):
            RetryStrategy().delay_for(0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay_ms": -1},
            {"base_delay_ms": 500, "max_delay_ms": 100},
            {"backoff_factor": 0.5},
        ],
    )
    def test_rejects_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RetryStrategy(**kwargs)

    def test_single_attempt_has_no_delays(self) -> None:
        assert RetryStrategy(max_attempts=1).delays() == []


# ---------------------------------------------------------------------------
# handle_with_retry
# ---------------------------------------------------------------------------


class TestHandleWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_time(self, sleep_recorder) -> None:
        executor = RetryExecutor(sleep=sleep_recorder)
        operation = Flaky()
        assert await executor.handle_with_retry(operation) == "ok"
        assert operation.calls == 1
        assert sleep_recorder.calls == []

    @pytest.mark.asyncio
    async def test_retries_then_succeeds_with_backoff(self, sleep_recorder) -> None:
        executor = RetryExecutor(
            RetryStrategy(max_attempts=3, base_delay_ms=1000, max_delay_ms=10000),
            sleep=sleep_recorder,
        )
        operation = Flaky(build_step_error("a", "s"), network_error("b"))
        assert await executor.handle_with_retry(operation) == "ok"
        assert operation.calls == 3
        assert sleep_recorder.calls == [1.0, 2.0]
        assert executor.statistics.retried_operations == 2
        assert executor.statistics.total_errors == 2

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error_with_attempts(self, sleep_recorder) -> None:
        executor = RetryExecutor(
            RetryStrategy(max_attempts=3, base_delay_ms=1000, max_delay_ms=1500),
            sleep=sleep_recorder,
        )
        operation = Flaky(*(build_step_error(f"fail {n}", "s") for n in range(1, 4)))
        with pytest.raises(PipelineError) as excinfo:
            await executor.handle_with_retry(operation)
        assert operation.calls == 3
        assert excinfo.value.message == "fail 3"
        assert excinfo.value.attempts == 3
        assert sleep_recorder.calls == [1.0, 1.5]

    @pytest.mark.asyncio
    async def test_critical_error_runs_once(self, sleep_recorder) -> None:
        executor = RetryExecutor(sleep=sleep_recorder)
        operation = Flaky(build_step_error("fatal", "s", severity=ErrorSeverity.CRITICAL))
        with pytest.raises(PipelineError) as excinfo:
            await executor.handle_with_retry(operation)
        assert operation.calls == 1
        assert excinfo.value.attempts == 1
        assert sleep_recorder.calls == []

    @pytest.mark.asyncio
    async def test_configuration_error_is_not_retried(self, sleep_recorder) -> None:
        executor = RetryExecutor(sleep=sleep_recorder)
        operation = Flaky(configuration_error("bad"))
        with pytest.raises(PipelineError) as excinfo:
            await executor.handle_with_retry(operation)
        assert excinfo.value.kind is ErrorKind.CONFIGURATION
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_read_failure_is_not_retried(self, sleep_recorder) -> None:
        executor = RetryExecutor(sleep=sleep_recorder)
        operation = Flaky(file_system_error("gone", "/x", FileOperation.READ))
        with pytest.raises(PipelineError):
            await executor.handle_with_retry(operation)
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_retry_disabled(self, sleep_recorder) -> None:
        executor = RetryExecutor(
            recovery=RecoveryStrategy(enable_retry=False), sleep=sleep_recorder
        )
        operation = Flaky(network_error("x"))
        with pytest.raises(PipelineError):
            await executor.handle_with_retry(operation)
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_foreign_exception_is_classified(self, sleep_recorder) -> None:
        executor = RetryExecutor(RetryStrategy(max_attempts=1), sleep=sleep_recorder)
        ctx = ErrorContext(operation="bundle_build", platform="ios")
        with pytest.raises(PipelineError) as excinfo:
            await executor.handle_with_retry(Flaky(RuntimeError("weird")), ctx)
        error = excinfo.value
        assert error.kind is ErrorKind.BUILD_STEP
        assert error.context.platform == "ios"
        assert isinstance(error.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self, sleep_recorder) -> None:
        token = CancellationToken()
        token.cancel()
        operation = Flaky()
        with pytest.raises(BuildCancelledError):
            await RetryExecutor(sleep=sleep_recorder).handle_with_retry(
                operation, cancel_token=token
            )
        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_cancelled_during_backoff(self) -> None:
        token = CancellationToken()

        async def cancelling_sleep(seconds: float) -> None:
            token.cancel()

        operation = Flaky(network_error("x"), network_error("y"))
        with pytest.raises(BuildCancelledError):
            await RetryExecutor(sleep=cancelling_sleep).handle_with_retry(
                operation, cancel_token=token
            )
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_token_sleep_is_interrupted(self) -> None:
        token = CancellationToken()
        executor = RetryExecutor(
            RetryStrategy(max_attempts=2, base_delay_ms=60_000, max_delay_ms=60_000)
        )
        task = asyncio.ensure_future(
            executor.handle_with_retry(Flaky(network_error("x")), cancel_token=token)
        )
        await asyncio.sleep(0.01)
        token.cancel()
        with pytest.raises(BuildCancelledError):
            await asyncio.wait_for(task, timeout=5)


# ---------------------------------------------------------------------------
# handle_error and statistics
# ---------------------------------------------------------------------------


class TestHandleError:
    def test_degrades_non_critical_when_enabled(self) -> None:
        executor = RetryExecutor(
            recovery=RecoveryStrategy(
                graceful_degradation=True, fallback_config={"minify": False}
            )
        )
        outcome = executor.handle_error(build_step_error("x", "s"))
        assert outcome.recovered
        assert outcome.fallback_config == {"minify": False}
        assert executor.statistics.recovered_errors == 1

    def test_never_degrades_critical(self) -> None:
        executor = RetryExecutor(recovery=RecoveryStrategy(graceful_degradation=True))
        outcome = executor.handle_error(
            build_step_error("x", "s", severity=ErrorSeverity.CRITICAL)
        )
        assert not outcome.recovered
        assert executor.statistics.critical_failures == 1

    def test_not_recovered_without_degradation(self) -> None:
        outcome = RetryExecutor().handle_error(RuntimeError("x"))
        assert not outcome.recovered
        assert outcome.error.kind is ErrorKind.BUILD_STEP


class TestStatistics:
    @pytest.mark.asyncio
    async def test_counts_by_kind_and_severity(self, sleep_recorder) -> None:
        executor = RetryExecutor(RetryStrategy(max_attempts=3, base_delay_ms=1, max_delay_ms=1), sleep=sleep_recorder)
        await executor.handle_with_retry(Flaky(network_error("a"), build_step_error("b", "s")))
        data = executor.statistics.to_dict()
        assert data["total_errors"] == 2
        assert data["errors_by_kind"] == {"BuildStepError": 1, "NetworkError": 1}
        assert data["errors_by_severity"] == {"high": 1, "medium": 1}
        assert data["recovery_rate"] == 0.0

    def test_reset(self) -> None:
        executor = RetryExecutor(recovery=RecoveryStrategy(graceful_degradation=True))
        executor.handle_error(build_step_error("x", "s"))
        executor.reset()
        assert executor.statistics.recovered_errors == 0


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_sleep_returns_false_when_not_cancelled(self) -> None:
        assert await CancellationToken().sleep(0.001) is False

    @pytest.mark.asyncio
    async def test_sleep_returns_true_when_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel()
        assert await token.sleep(10) is True

    def test_cancel_is_idempotent(self) -> None:
        token = CancellationToken()
        token.cancel()
        token.cancel()
        assert token.cancelled
        with pytest.raises(BuildCancelledError):
            token.raise_if_cancelled("next step")
