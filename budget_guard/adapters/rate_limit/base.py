"""Rate limiter interfaces.

Routes depend on this abstraction (not the concrete implementation) so the
in-memory table can be replaced later without touching the HTTP layer.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Decision:
    """Outcome of a single evaluate-and-record call.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window used for this decision.
        remaining: Requests left in the current window (0 when blocked).
        reset_at_ms: Limiter clock time (milliseconds) when the window ends.
        retry_after_ms: Milliseconds until the window resets. Only set when
            the request was blocked; always None for allowed requests.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: float
    retry_after_ms: int | None = None

    @property
    def retry_after_seconds(self) -> int | None:
        """Retry delay rounded up to whole seconds (for the Retry-After header)."""
        if self.retry_after_ms is None:
            return None
        return int(math.ceil(self.retry_after_ms / 1000))


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def evaluate(self, key: str, limit: int, window_ms: int) -> Decision:
        """Record an attempt for ``key`` and decide whether it is allowed.

        Every call counts as an attempt; this is never a pure query.

        Args:
            key: Opaque identifier (e.g., ``"login:203.0.113.7"``).
            limit: Max requests per window.
            window_ms: Window length in milliseconds.

        Returns:
            Decision describing whether the request was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep_expired(self) -> int:
        """Drop records whose window has ended. Returns the number removed."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return counters describing limiter activity (never raw keys)."""
        raise NotImplementedError
