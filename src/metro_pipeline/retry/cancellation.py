"""Cooperative cancellation for pipeline runs."""
from __future__ import annotations

import asyncio

from metro_pipeline.errors import BuildCancelledError


class CancellationToken:
    """A flag checked at every suspension point of a run.

    Cancellation is cooperative: nothing is interrupted forcibly.  The
    orchestrator checks the token before each combination, the retry
    executor before each attempt and while sleeping between attempts.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation.  Idempotent."""
        self._event.set()

    def raise_if_cancelled(self, where: str = "pipeline") -> None:
        """Raise ``BuildCancelledError`` if cancellation was requested."""
        if self._event.is_set():
            raise BuildCancelledError(where)

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to *seconds*, waking early on cancellation.

        Returns
        -------
        bool
            True if the sleep was cut short by cancellation.
        """
        if self._event.is_set():
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
