"""HTTP middleware for request ID propagation and timing.

Every response carries the correlation id (taken from the incoming header or
freshly generated) and the time spent handling the request. Throttled
responses are logged with the same id, which ties a 429 back to the request
that triggered it.

Unexpected exceptions are turned into the generic 500 here, while the id is
still bound, so the error body, the log line and the response header all
agree on it.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from budget_guard.core.config import settings
from budget_guard.core.exception_handlers import general_exception_handler
from budget_guard.core.logging import reset_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id for the duration of the request.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response with the request id header and ``X-Request-Duration-ms``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    token = set_request_id(request_id)
    started = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[header_name] = request_id
        response.headers.setdefault("X-Request-Duration-ms", f"{elapsed_ms:.2f}")
        return response
    finally:
        reset_request_id(token)
