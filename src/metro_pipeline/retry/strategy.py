"""Retry and recovery policy values.

Both types are immutable and carry no behaviour beyond validation and
delay arithmetic; ``RetryExecutor`` applies them.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RetryStrategy:
    """Bounded exponential backoff.

    Parameters
    ----------
    max_attempts:
        Total number of times an operation may run (at least 1).
    base_delay_ms:
        Delay after the first failed attempt, in milliseconds.
    max_delay_ms:
        Upper bound for any single delay; must be ``>= base_delay_ms``.
    backoff_factor:
        Multiplier applied per additional attempt (at least 1).
    """

    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 10000.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= "
                f"base_delay_ms ({self.base_delay_ms})"
            )
        if self.backoff_factor < 1:
            raise ValueError(
                f"backoff_factor must be >= 1, got {self.backoff_factor}"
            )

    def delay_for(self, attempt: int) -> float:
        """Return the delay in ms to wait after failed attempt number *attempt*.

        ``attempt`` is 1-based; the result is
        ``min(base_delay_ms * backoff_factor ** (attempt - 1), max_delay_ms)``.
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        try:
            delay = self.base_delay_ms * self.backoff_factor ** (attempt - 1)
        except OverflowError:
            return self.max_delay_ms
        return min(delay, self.max_delay_ms)

    def delays(self) -> list[float]:
        """Return the delays applied between all ``max_attempts`` attempts."""
        return [self.delay_for(n) for n in range(1, self.max_attempts)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "base_delay_ms": self.base_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "backoff_factor": self.backoff_factor,
        }


@dataclass(frozen=True)
class RecoveryStrategy:
    """Policy flags controlling how failures are downgraded.

    Parameters
    ----------
    fallback_config:
        Returned to the caller when a failure is recovered gracefully.
    skip_non_critical:
        Advance to the next build combination on non-critical failures
        instead of aborting the run.
    graceful_degradation:
        Downgrade non-critical errors to a recovered outcome.
    enable_retry:
        Allow the executor to repeat failed operations.
    """

    fallback_config: Mapping[str, Any] | None = field(default=None)
    skip_non_critical: bool = True
    graceful_degradation: bool = False
    enable_retry: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "fallback_config": (
                dict(self.fallback_config) if self.fallback_config is not None else None
            ),
            "skip_non_critical": self.skip_non_critical,
            "graceful_degradation": self.graceful_degradation,
            "enable_retry": self.enable_retry,
        }
