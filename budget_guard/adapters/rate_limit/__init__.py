"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory limiter and later migrate to a shared store without changing the
API layer.
"""

from budget_guard.adapters.rate_limit.base import AbstractRateLimiter, Decision
from budget_guard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from budget_guard.adapters.rate_limit.sweeper import RateLimitSweeper

__all__ = [
    "AbstractRateLimiter",
    "Decision",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitSweeper",
]
