from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from budget_guard.adapters.rate_limit.base import AbstractRateLimiter
from budget_guard.core.auth import verify_api_key
from budget_guard.core.config import settings
from budget_guard.core.errors import ValidationAppError
from budget_guard.core.rate_limit import (
    hash_limiter_key,
    build_rate_limit_key,
    enforce_rate_limit,
    get_rate_limiter,
)
from budget_guard.schemas.rate_limit import (
    CheckResponse,
    RateLimitPolicyResponse,
    RateLimitStatsResponse,
    SweepResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/rate-limit",
    tags=["Rate Limit"],
    dependencies=[Depends(verify_api_key)],
)

_SCOPE_PATTERN = re.compile(r"^[a-z][a-z0-9_-]{0,31}$")

LimiterDep = Annotated[AbstractRateLimiter, Depends(get_rate_limiter)]


@router.get("/stats", response_model=RateLimitStatsResponse)
def get_stats(request: Request, limiter: LimiterDep) -> RateLimitStatsResponse:
    """Return limiter counters for dashboards and alerting."""

    sweeper = getattr(request.app.state, "rate_limit_sweeper", None)
    return RateLimitStatsResponse(
        enabled=settings.app.rate_limit_enabled,
        sweeper_running=bool(sweeper and sweeper.running),
        **limiter.stats(),
    )


@router.post("/sweep", response_model=SweepResponse)
def sweep(request: Request, limiter: LimiterDep) -> SweepResponse:
    """Evict expired records now instead of waiting for the background sweep."""

    sweeper = getattr(request.app.state, "rate_limit_sweeper", None)
    evicted = sweeper.run_once() if sweeper is not None else limiter.sweep_expired()
    return SweepResponse(evicted=evicted)


@router.get("/policies", response_model=list[RateLimitPolicyResponse])
def list_policies() -> list[RateLimitPolicyResponse]:
    return [
        RateLimitPolicyResponse(scope=scope, limit=policy.limit, window_ms=policy.window_ms)
        for scope, policy in sorted(settings.app.effective_policies().items())
    ]


@router.post("/check/{scope}", response_model=CheckResponse)
def check(
    request: Request,
    limiter: LimiterDep,
    scope: Annotated[str, Path(pattern=_SCOPE_PATTERN.pattern)],
) -> CheckResponse:
    """Spend one request from the caller's budget for ``scope``.

    Lets operators check a policy end to end; a blocked check answers 429
    exactly like the protected endpoint would.
    """

    decision = enforce_rate_limit(request, limiter, scope)
    if decision is None:
        return CheckResponse(scope=scope, allowed=True)
    return CheckResponse(
        scope=scope,
        allowed=decision.allowed,
        limit=decision.limit,
        remaining=decision.remaining,
        retry_after_ms=decision.retry_after_ms,
    )


@router.post("/reset", status_code=204, response_class=Response)
def reset(
    limiter: LimiterDep,
    scope: Annotated[str | None, Query()] = None,
    identity: Annotated[str | None, Query(min_length=1, max_length=256)] = None,
) -> Response:
    """Forget tracked windows.

    With ``scope`` and ``identity`` only that caller's window is dropped;
    with neither, the whole table is cleared.
    """

    if scope is None and identity is None:
        limiter.reset()
        logger.warning("rate_limit.reset_all")
        return Response(status_code=204)

    if scope is None or identity is None:
        raise ValidationAppError(
            code="incomplete_reset_target",
            message="Provide both scope and identity, or neither.",
            details={"hint": "Omit both parameters to clear every window."},
        )
    if scope not in settings.app.effective_policies():
        raise ValidationAppError(
            code="unknown_scope",
            message=f"No rate limit policy is configured for scope '{scope}'.",
            details={"scope": scope, "hint": "GET /v1/rate-limit/policies lists known scopes."},
        )

    key = build_rate_limit_key(scope, identity)
    limiter.reset(key)
    logger.info("rate_limit.reset", extra={"scope": scope, "key_hash": hash_limiter_key(key)})
    return Response(status_code=204)
