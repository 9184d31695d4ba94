from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitPolicyResponse(BaseModel):
    """Budget configured for one scope."""

    scope: str = Field(..., description="Scope name (e.g., login)")
    limit: int = Field(..., description="Maximum requests per window")
    window_ms: int = Field(..., description="Window length in milliseconds")


class RateLimitStatsResponse(BaseModel):
    """Limiter counters. Keys themselves are never exposed."""

    enabled: bool = Field(..., description="Whether rate limiting is enforced")
    keys: int = Field(..., description="Number of tracked keys")
    max_keys: int | None = Field(None, description="Configured key cap")
    allowed_total: int = Field(..., description="Allowed decisions since startup")
    blocked_total: int = Field(..., description="Blocked decisions since startup")
    evicted_total: int = Field(..., description="Records removed by sweeps or the cap")
    sweeper_running: bool = Field(..., description="Whether the background sweep is active")


class SweepResponse(BaseModel):
    evicted: int = Field(..., description="Expired records removed by this sweep")


class CheckResponse(BaseModel):
    """Decision for a check request that was let through."""

    scope: str
    allowed: bool
    limit: int | None = None
    remaining: int | None = None
    retry_after_ms: int | None = Field(
        None,
        description="Only set for blocked decisions; always null on a 200",
    )
