"""Multi-platform, multi-environment build orchestration.

For every platform×environment combination, in configuration order, the
orchestrator runs the external build step under the retry executor,
measures the build, compares it against the regression baseline and
records a ``BuildResult``.  Each combination moves through
``PENDING → BUILDING → SUCCESS | FAILED``.

Failure policy
--------------
* critical error: the result is recorded, the report written and the
  error propagated; remaining combinations are not built.
* timeout: that combination fails, the run continues.
* non-critical error with ``skip_non_critical``: the combination fails,
  the run continues.
* non-critical error with ``graceful_degradation``: the combination
  fails and is marked degraded, the run continues.
* anything else: as for a critical error.

Regressions are measured on what the build step reports for its
successful attempt; ``BuildResult.duration`` additionally covers failed
attempts and backoff.  Regressions only fail a combination when
``alert_on_regression`` is set, and never abort the run.

Usage
-----
::

    orchestrator = BuildOrchestrator(load_config("metro-pipeline.yml"), CommandBuildStep())
    await orchestrator.initialize()
    results = await orchestrator.execute_build(branch="main")
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType

import psutil

from metro_pipeline.config import PipelineConfig, ensure_valid
from metro_pipeline.errors import (
    BuildCancelledError,
    ErrorContext,
    ErrorSeverity,
    FileOperation,
    PipelineError,
    build_step_error,
    configuration_error,
    file_system_error,
)
from metro_pipeline.models import (
    BuildMetrics,
    BuildResult,
    BuildState,
    StepOutcome,
)
from metro_pipeline.orchestrator.context import BuildContext
from metro_pipeline.regression import PerformanceRegression, RegressionDetector
from metro_pipeline.reporting import BuildReport, ReportGenerator
from metro_pipeline.retry import CancellationToken, RetryExecutor
from metro_pipeline.steps import BuildStep

logger = logging.getLogger(__name__)

Key = tuple[str, str]


def process_memory() -> int:
    """Return the resident set size of this process in bytes."""
    return psutil.Process().memory_info().rss


@dataclass
class _Run:
    """Mutable bookkeeping of one ``execute_build`` call."""

    context: BuildContext
    results: dict[Key, BuildResult] = field(default_factory=dict)
    regressions: list[PerformanceRegression] = field(default_factory=list)
    errors: list[PipelineError] = field(default_factory=list)
    timed_out: set[Key] = field(default_factory=set)

    def ordered(self, combinations: Sequence[Key]) -> list[BuildResult]:
        return [self.results[key] for key in combinations if key in self.results]


class BuildOrchestrator:
    """Drive one build step across every configured combination.

    Parameters
    ----------
    config:
        The pipeline configuration.  Validated by :meth:`initialize`.
    step:
        The external build step invoked per combination.
    executor:
        Retry executor.  Defaults to one built from ``config.retry`` and
        ``config.recovery``.
    detector:
        Regression detector.  Defaults to one built from
        ``config.performance``.
    reporter:
        Report generator.  Defaults to one writing to
        ``config.build.report_dir``.
    cancel_token:
        Token checked before each combination, attempt, backoff delay and
        report write.
    clock:
        Monotonic clock in seconds used to time builds.
    memory_probe:
        Returns the memory snapshot in bytes recorded with each build.
    """

    def __init__(
        self,
        config: PipelineConfig,
        step: BuildStep,
        *,
        executor: RetryExecutor | None = None,
        detector: RegressionDetector | None = None,
        reporter: ReportGenerator | None = None,
        cancel_token: CancellationToken | None = None,
        clock: Callable[[], float] = time.perf_counter,
        memory_probe: Callable[[], int] | None = None,
    ) -> None:
        self._config = config
        self._step = step
        self._executor = (
            executor if executor is not None else RetryExecutor(config.retry, config.recovery)
        )
        self._detector = (
            detector if detector is not None else RegressionDetector(config.performance)
        )
        self._reporter = (
            reporter
            if reporter is not None
            else ReportGenerator(config.build.report_dir, config.retention)
        )
        self._cancel = cancel_token if cancel_token is not None else CancellationToken()
        self._clock = clock
        self._memory_probe = memory_probe if memory_probe is not None else process_memory
        self._initialized = False
        self._init_error: PipelineError | None = None
        self._states: dict[Key, BuildState] = {}
        self._last_results: tuple[BuildResult, ...] = ()
        self._last_report: BuildReport | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def executor(self) -> RetryExecutor:
        return self._executor

    @property
    def detector(self) -> RegressionDetector:
        return self._detector

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def states(self) -> Mapping[Key, BuildState]:
        """State of every combination of the current or last run."""
        return MappingProxyType(self._states)

    @property
    def last_results(self) -> tuple[BuildResult, ...]:
        return self._last_results

    @property
    def last_report(self) -> BuildReport | None:
        return self._last_report

    def cancel(self) -> None:
        """Request cooperative cancellation of the current run."""
        self._cancel.cancel()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Validate the configuration and prepare output directories.

        Calling it again after success does nothing.

        Raises
        ------
        PipelineError
            A ``ConfigurationError`` if the configuration is invalid,
            never retried.  A ``FileSystemError`` if a directory cannot
            be created after retries.
        """
        if self._initialized:
            return
        try:
            ensure_valid(self._config)
        except PipelineError as exc:
            self._init_error = exc
            logger.error("Pipeline configuration rejected: %s", exc.message)
            raise

        if not self._config.enabled:
            logger.info("Pipeline is disabled; builds will be skipped")
            self._initialized = True
            return

        build = self._config.build
        for directory in (build.output_dir, build.report_dir):
            await self._executor.handle_with_retry(
                lambda d=directory: self._make_directory(Path(d)),
                ErrorContext(operation="prepare_directories"),
                self._cancel,
            )
        if build.history_path is not None:
            loaded = await asyncio.to_thread(self._detector.load_history, build.history_path)
            logger.info("Loaded regression baselines for %d combination(s)", loaded)
        if self._config.notifications.any_enabled:
            logger.debug("Notification settings recorded; delivery is external")

        self._init_error = None
        self._initialized = True
        logger.info(
            "Pipeline initialized: %d platform(s) x %d environment(s), %s",
            len(build.platforms),
            len(build.environments),
            "concurrent" if build.concurrent else "sequential",
        )

    @staticmethod
    async def _make_directory(path: Path) -> None:
        def mkdir() -> None:
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise file_system_error(
                    f"Cannot create directory: {exc.strerror or exc}",
                    str(path),
                    FileOperation.MKDIR,
                ) from exc

        await asyncio.to_thread(mkdir)

    def _require_initialized(self) -> None:
        if self._init_error is not None:
            raise configuration_error(
                f"Pipeline failed to initialize: {self._init_error.message}"
            )
        if not self._initialized:
            raise configuration_error(
                "Pipeline is not initialized; call initialize() first"
            )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_build(
        self, branch: str | None = None, commit: str | None = None
    ) -> list[BuildResult]:
        """Build every combination and return results in configuration order.

        Parameters
        ----------
        branch, commit:
            Recorded on every result.  Looked up with git when omitted.

        Returns
        -------
        list[BuildResult]
            One result per attempted combination, ordered as
            ``platforms × environments`` regardless of concurrency.

        Raises
        ------
        PipelineError
            A ``ConfigurationError`` if the orchestrator is not
            initialized, or the error that aborted the run.
        """
        self._require_initialized()
        if not self._config.enabled:
            self._last_results = ()
            return []

        context = await asyncio.to_thread(BuildContext.create, branch, commit)
        combinations = self._config.build.combinations()
        self._states = {key: BuildState.PENDING for key in combinations}
        run = _Run(context)
        logger.info(
            "Starting build %s on %s@%s: %d combination(s)",
            context.build_id,
            context.branch,
            context.commit[:12],
            len(combinations),
        )

        try:
            if self._config.build.concurrent:
                await self._run_concurrent(combinations, run)
            else:
                for platform, environment in combinations:
                    await self._build_combination(platform, environment, run)
        except PipelineError as exc:
            for key, state in self._states.items():
                if state is BuildState.BUILDING:
                    self._states[key] = BuildState.FAILED
            self._last_results = tuple(run.ordered(combinations))
            logger.error("Build %s aborted: %s", context.build_id, exc)
            try:
                await self._finish(run, aborted=True)
            except PipelineError:
                logger.exception("Could not persist the aborted build %s", context.build_id)
            raise

        self._last_results = tuple(run.ordered(combinations))
        await self._finish(run, aborted=False)
        return list(self._last_results)

    async def _run_concurrent(self, combinations: Sequence[Key], run: _Run) -> None:
        semaphore = asyncio.Semaphore(self._config.build.max_parallel)

        async def bounded(platform: str, environment: str) -> BuildResult:
            async with semaphore:
                return await self._build_combination(platform, environment, run)

        tasks = [asyncio.ensure_future(bounded(p, e)) for p, e in combinations]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _build_combination(
        self, platform: str, environment: str, run: _Run
    ) -> BuildResult:
        key = (platform, environment)
        if self._cancel.cancelled:
            return self._record(run, self._cancelled_result(run, key, 0.0))

        self._states[key] = BuildState.BUILDING
        logger.info("Building %s/%s", platform, environment)
        ctx = ErrorContext(
            operation=self._step.name,
            platform=platform,
            environment=environment,
            build_id=run.context.build_id,
        )
        start = self._clock()
        try:
            outcome = await self._executor.handle_with_retry(
                lambda: self._invoke_step(platform, environment, ctx, run),
                ctx,
                self._cancel,
            )
        except BuildCancelledError:
            elapsed = (self._clock() - start) * 1000
            return self._record(run, self._cancelled_result(run, key, elapsed))
        except PipelineError as error:
            elapsed = (self._clock() - start) * 1000
            return self._handle_failure(run, key, error, elapsed, ctx)

        duration = (self._clock() - start) * 1000
        return self._record(run, await self._success_result(run, key, outcome, duration))

    async def _invoke_step(
        self, platform: str, environment: str, ctx: ErrorContext, run: _Run
    ) -> StepOutcome:
        key = (platform, environment)
        timeout = self._config.build.timeout_for(platform)
        run.timed_out.discard(key)
        try:
            outcome = await self._until_cancelled(
                asyncio.wait_for(
                    self._step.execute(platform, environment, self._config), timeout
                ),
                f"build of {platform}/{environment}",
            )
        except asyncio.TimeoutError:
            run.timed_out.add(key)
            raise build_step_error(
                f"Build of {platform}/{environment} timed out after {timeout:g}s",
                self._step.name,
                severity=ErrorSeverity.MEDIUM,
                context=ctx,
                recovery_hint="Increase build.timeouts for this platform or speed up the build",
            ) from None
        if not outcome.success:
            raise build_step_error(
                outcome.error or f"Build of {platform}/{environment} reported failure",
                self._step.name,
                context=ctx,
            )
        return outcome

    async def _until_cancelled(self, awaitable, where: str):
        """Await *awaitable*, abandoning it if cancellation is requested."""
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise BuildCancelledError(where)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _record(self, run: _Run, result: BuildResult) -> BuildResult:
        run.results[result.key] = result
        self._states[result.key] = result.state
        return result

    def _cancelled_result(self, run: _Run, key: Key, duration: float) -> BuildResult:
        logger.warning("Build of %s/%s cancelled", *key)
        return BuildResult(
            build_id=run.context.build_id,
            platform=key[0],
            environment=key[1],
            success=False,
            state=BuildState.FAILED,
            duration=duration,
            error="cancelled",
            cancelled=True,
            branch=run.context.branch,
            commit=run.context.commit,
        )

    async def _success_result(
        self, run: _Run, key: Key, outcome: StepOutcome, duration: float
    ) -> BuildResult:
        platform, environment = key
        metrics = BuildMetrics(
            js_size=outcome.bundle_size,
            assets_size=outcome.assets_size,
            build_time=outcome.duration_ms,
            memory_usage=self._memory_probe(),
            bundle_count=outcome.bundle_count,
            warning_count=len(outcome.warnings),
            cache_hit_rate=outcome.cache_hit_rate,
        )
        regressions: tuple[PerformanceRegression, ...] = ()
        if self._config.performance.enabled:
            regressions = tuple(
                await self._detector.observe(platform, environment, metrics)
            )
            run.regressions.extend(regressions)

        failed = bool(regressions) and self._config.performance.alert_on_regression
        error = None
        if failed:
            error = "performance regression: " + ", ".join(
                f"{r.metric.value} +{r.delta_percent:.1f}%" for r in regressions
            )
            logger.error("Failing %s/%s on %s", platform, environment, error)
        else:
            logger.info(
                "Built %s/%s in %.0fms (%d bytes)",
                platform,
                environment,
                duration,
                metrics.bundle_size,
            )
        return BuildResult(
            build_id=run.context.build_id,
            platform=platform,
            environment=environment,
            success=not failed,
            state=BuildState.FAILED if failed else BuildState.SUCCESS,
            duration=duration,
            output_path=outcome.output_path,
            bundle_size=metrics.bundle_size,
            metrics=metrics,
            warnings=tuple(outcome.warnings),
            error=error,
            regressions=regressions,
            branch=run.context.branch,
            commit=run.context.commit,
        )

    def _handle_failure(
        self,
        run: _Run,
        key: Key,
        error: PipelineError,
        duration: float,
        ctx: ErrorContext,
    ) -> BuildResult:
        run.errors.append(error)
        result = BuildResult(
            build_id=run.context.build_id,
            platform=key[0],
            environment=key[1],
            success=False,
            state=BuildState.FAILED,
            duration=duration,
            error=str(error),
            error_kind=error.kind.label,
            branch=run.context.branch,
            commit=run.context.commit,
        )
        if not error.is_critical:
            if key in run.timed_out:
                logger.warning("Continuing after timeout of %s/%s", *key)
                return self._record(run, result)
            if self._executor.recovery_strategy.skip_non_critical:
                logger.warning("Skipping failed %s/%s: %s", key[0], key[1], error.message)
                return self._record(run, result)
            outcome = self._executor.handle_error(error, ctx)
            if outcome.recovered:
                return self._record(run, replace(result, degraded=True))
        else:
            self._executor.handle_error(error, ctx)
        self._record(run, result)
        raise error

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def _finish(self, run: _Run, aborted: bool) -> None:
        history_path = self._config.build.history_path
        if history_path is not None and self._config.performance.enabled:
            await asyncio.to_thread(self._detector.save_history, history_path)
        self._last_report = await self.generate_report(
            self._last_results,
            errors=run.errors,
            metadata={
                "branch": run.context.branch,
                "commit": run.context.commit,
                "aborted": aborted,
                "error_statistics": self._executor.statistics.to_dict(),
            },
        )

    async def generate_report(
        self,
        results: Sequence[BuildResult],
        errors: Sequence[PipelineError] = (),
        metadata: dict | None = None,
    ) -> BuildReport | None:
        """Persist a report for *results* and prune old reports.

        Returns ``None`` without writing anything if cancellation was
        requested.
        """
        if self._cancel.cancelled:
            logger.warning("Run cancelled; skipping report write")
            return None
        regressions = [r for result in results for r in result.regressions]
        build_id = results[0].build_id if results else "manual"
        report = await self._reporter.generate(
            results, regressions, errors, build_id=build_id, metadata=metadata
        )
        self._last_report = report
        return report
