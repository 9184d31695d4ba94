"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the whole check-then-increment runs under one lock.
- Windows start at the first request for a key (not aligned to the clock),
  and expire lazily: an expired record is replaced on its next access.
"""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from budget_guard.adapters.rate_limit.base import AbstractRateLimiter, Decision


@dataclass
class _WindowRecord:
    window_start_ms: float
    window_ms: int
    count: int

    @property
    def expires_at_ms(self) -> float:
        return self.window_start_ms + self.window_ms


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key in fixed windows.

    Limits and window lengths are supplied on every call, so one instance
    serves every endpoint policy in the process. Each key owns at most one
    window record. Once ``now - window_start >= window_ms`` the record is
    treated as absent and the triggering call opens a new window with a
    count of 1.

    Bursts of up to ~2x the limit across a window boundary are possible;
    that is inherent to fixed windows.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_keys: int | None = None,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            clock: Time source returning seconds. Monotonic by default so
                wall-clock adjustments cannot stretch or shrink a window.
            max_keys: Optional cap on tracked keys. When full, expired records
                are swept first, then the oldest window is dropped.

        Raises:
            ValueError: If max_keys is invalid.
        """
        if max_keys is not None and max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._clock = clock
        self._max_keys = max_keys
        self._lock = threading.Lock()
        # Insertion order == window start order; used for cap eviction.
        self._records: OrderedDict[str, _WindowRecord] = OrderedDict()
        self._allowed_total = 0
        self._blocked_total = 0
        self._evicted_total = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _open_window_locked(self, key: str, now_ms: float, window_ms: int) -> _WindowRecord:
        """Create (or replace) the record for key with count=1."""
        self._records.pop(key, None)
        if self._max_keys is not None and len(self._records) >= self._max_keys:
            self._sweep_locked(now_ms)
            while len(self._records) >= self._max_keys:
                self._records.popitem(last=False)
                self._evicted_total += 1

        record = _WindowRecord(window_start_ms=now_ms, window_ms=window_ms, count=1)
        self._records[key] = record
        return record

    def _sweep_locked(self, now_ms: float) -> int:
        expired = [k for k, r in self._records.items() if now_ms >= r.expires_at_ms]
        for key in expired:
            del self._records[key]
        self._evicted_total += len(expired)
        return len(expired)

    def evaluate(self, key: str, limit: int, window_ms: int) -> Decision:
        """Record an attempt for ``key`` and decide whether it is allowed.

        Args:
            key: Non-empty rate limit key.
            limit: Max requests per window (>= 1).
            window_ms: Window length in milliseconds (>= 1).

        Returns:
            Decision. ``retry_after_ms`` is set only when blocked.

        Raises:
            ValueError: If key is empty or limit/window_ms are not positive.
                The table is left untouched.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        now_ms = self._now_ms()

        with self._lock:
            record = self._records.get(key)

            if record is None or now_ms - record.window_start_ms >= window_ms:
                record = self._open_window_locked(key, now_ms, window_ms)
                self._allowed_total += 1
                return Decision(
                    allowed=True,
                    limit=limit,
                    remaining=limit - 1,
                    reset_at_ms=now_ms + window_ms,
                )

            # The caller's window length governs the decision.
            record.window_ms = window_ms
            reset_at_ms = record.window_start_ms + window_ms

            if record.count < limit:
                record.count += 1
                self._allowed_total += 1
                return Decision(
                    allowed=True,
                    limit=limit,
                    remaining=limit - record.count,
                    reset_at_ms=reset_at_ms,
                )

            self._blocked_total += 1
            retry_after_ms = max(0, int(math.ceil(reset_at_ms - now_ms)))
            return Decision(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_at_ms=reset_at_ms,
                retry_after_ms=retry_after_ms,
            )

    def sweep_expired(self) -> int:
        """Remove every record whose window has ended.

        Returns:
            Number of records evicted.
        """
        now_ms = self._now_ms()
        with self._lock:
            return self._sweep_locked(now_ms)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._records.clear()
            else:
                self._records.pop(key, None)

    def stats(self) -> dict[str, Any]:
        """Return lightweight limiter metrics without exposing keys."""

        with self._lock:
            return {
                "keys": len(self._records),
                "max_keys": self._max_keys,
                "allowed_total": self._allowed_total,
                "blocked_total": self._blocked_total,
                "evicted_total": self._evicted_total,
            }
