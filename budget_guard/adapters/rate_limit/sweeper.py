"""Background eviction of expired rate limit records.

The limiter expires records lazily, so keys that never come back would stay
in the table forever. The sweeper runs on the event loop and periodically
drops them.
"""

from __future__ import annotations

import asyncio
import logging

from budget_guard.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Periodically call ``sweep_expired`` on a limiter."""

    def __init__(self, limiter: AbstractRateLimiter, *, interval_seconds: float = 300.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiter = limiter
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Sweep immediately and return the number of evicted records."""
        evicted = self._limiter.sweep_expired()
        if evicted:
            logger.info(
                "rate_limit.swept",
                extra={"evicted": evicted, "keys": self._limiter.stats()["keys"]},
            )
        return evicted

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.run_once()
            except Exception:
                logger.exception("rate_limit.sweep_failed")

    def start(self) -> None:
        """Start the background task (no-op if already running)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.debug("rate_limit.sweeper_started", extra={"interval_s": self._interval})

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("rate_limit.sweeper_stopped")
