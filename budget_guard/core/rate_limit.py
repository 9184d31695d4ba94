"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Swap-friendly: the limiter lives behind an abstract interface and is owned
  by the application (``app.state.rate_limiter``), not by this module.
- Per-scope budgets: each endpoint family names a scope whose policy is
  resolved from settings.

Keys are ``"{scope}:{client_ip}"`` so scopes never share a budget.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Depends, Request

from budget_guard.adapters.rate_limit.base import AbstractRateLimiter, Decision
from budget_guard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from budget_guard.core.client_ip import get_client_ip
from budget_guard.core.config import settings
from budget_guard.core.errors import RateLimitExceededAppError

logger = logging.getLogger(__name__)


KeyFunc = Callable[[Request], str]


def build_rate_limiter() -> AbstractRateLimiter:
    """Construct the process-wide limiter from settings."""

    return InMemoryFixedWindowRateLimiter(max_keys=settings.app.rate_limit_max_keys)


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the running application.

    Raises:
        RuntimeError: If the app was built without a limiter.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("rate limiter is not configured on app.state")
    return limiter


def build_rate_limit_key(scope: str, identity: str) -> str:
    """Namespace an identity under a scope."""

    return f"{scope}:{identity}"


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def enforce_rate_limit(
    request: Request,
    limiter: AbstractRateLimiter,
    scope: str,
    *,
    key_func: KeyFunc = get_client_ip,
) -> Decision | None:
    """Consume one request from the caller's budget for ``scope``.

    Args:
        request: Incoming request.
        limiter: Limiter to record the attempt in.
        scope: Policy name (e.g., ``"login"``).
        key_func: Derives the caller identity from the request.

    Returns:
        The allowed Decision, or None when rate limiting is disabled.

    Raises:
        RateLimitExceededAppError: When the caller is over budget.
    """

    if not settings.app.rate_limit_enabled:
        return None

    policy = settings.app.policy_for(scope)
    key = build_rate_limit_key(scope, key_func(request))
    key_hash = hash_limiter_key(key)

    decision = limiter.evaluate(key, policy.limit, policy.window_ms)
    if decision.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "scope": scope,
                "key_hash": key_hash,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "window_ms": policy.window_ms,
            },
        )
        return decision

    retry_after = decision.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "scope": scope,
            "key_hash": key_hash,
            "limit": decision.limit,
            "window_ms": policy.window_ms,
            "retry_after_ms": decision.retry_after_ms,
        },
    )

    raise RateLimitExceededAppError(
        code="rate_limit_exceeded",
        message="Too many requests. Please try again later.",
        details={"scope": scope, "retry_after": retry_after},
        decision=decision,
    )


def rate_limit(
    scope: str,
    *,
    key_func: KeyFunc = get_client_ip,
) -> Callable[..., Awaitable[Decision | None]]:
    """Build a FastAPI dependency enforcing the policy for ``scope``.

    Usage:
        @router.post("/auth/login", dependencies=[Depends(rate_limit("login"))])
        async def login(...): ...

    Args:
        scope: Policy name resolved through settings.
        key_func: Derives the caller identity (client IP by default).

    Returns:
        Async dependency returning the Decision (or None when disabled).
    """

    async def dependency(
        request: Request,
        limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    ) -> Decision | None:
        return enforce_rate_limit(request, limiter, scope, key_func=key_func)

    dependency.__name__ = f"rate_limit_{scope}"
    return dependency
