"""Application factory for the FastAPI app.

Centralizes app construction (state, middleware, handlers, routers) so tests
can build isolated apps, each with its own limiter table.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from budget_guard.adapters.rate_limit.base import AbstractRateLimiter
from budget_guard.adapters.rate_limit.sweeper import RateLimitSweeper
from budget_guard.api.routes import health_router, rate_limit_router
from budget_guard.core.config import settings
from budget_guard.core.exception_handlers import setup_exception_handlers
from budget_guard.core.logging import configure_logging
from budget_guard.core.middleware import request_id_middleware
from budget_guard.core.openapi import apply_openapi_customizations
from budget_guard.core.rate_limit import build_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    sweeper: RateLimitSweeper | None = app.state.rate_limit_sweeper
    if sweeper is not None:
        sweeper.start()
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()


def create_app(limiter: AbstractRateLimiter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Limiter to install; a fresh in-memory one is built when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Budget Guard API",
        description=(
            "Request throttling for the budget tracker: per-client fixed-window "
            "limits on login, signup, logout and expense endpoints, with "
            "Retry-After hints and operator diagnostics."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # An empty limiter is falsy (it defines __len__), so compare against None.
    app.state.rate_limiter = limiter if limiter is not None else build_rate_limiter()
    app.state.rate_limit_sweeper = None
    if settings.app.rate_limit_sweep_enabled:
        app.state.rate_limit_sweeper = RateLimitSweeper(
            app.state.rate_limiter,
            interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
        )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "app_env": settings.app_env,
            "rate_limit_enabled": settings.app.rate_limit_enabled,
            "sweep_enabled": settings.app.rate_limit_sweep_enabled,
        },
    )
    return app
