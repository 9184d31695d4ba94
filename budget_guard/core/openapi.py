"""OpenAPI customization.

Adds the ``X-API-Key`` security scheme to the operator routes, documents the
429 response shared by every throttled operation, and registers tag metadata.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

ADMIN_PATH_PREFIX = "/v1/rate-limit"

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded. See the Retry-After header.",
    "headers": {
        "Retry-After": {
            "description": "Seconds until the current window resets",
            "schema": {"type": "integer"},
        },
        "X-RateLimit-Retry-After-Ms": {
            "description": "Milliseconds until the current window resets (a delay, not a timestamp)",
            "schema": {"type": "integer"},
        },
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add security and 429 docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {}).setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Operator API key for the rate limit routes.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        for tag in (
            {"name": "Rate Limit", "description": "Limiter diagnostics, resets and policy checks."},
            {"name": "Health", "description": "Liveness checks."},
        ):
            if tag["name"] not in existing:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith(ADMIN_PATH_PREFIX):
                continue
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                operation["security"] = [{"ApiKeyAuth": []}]
                if "/check/" in path:
                    operation.setdefault("responses", {})["429"] = _TOO_MANY_REQUESTS

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
