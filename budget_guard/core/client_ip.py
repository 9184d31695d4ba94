"""Client IP extraction for rate limit keys.

Behind a reverse proxy the socket peer is the proxy itself, so the original
client address is read from proxy headers when they are trusted.
"""

from __future__ import annotations

from fastapi import Request

from budget_guard.core.config import settings

# Longest textual IPv6 address (with embedded IPv4).
MAX_IP_LENGTH = 45

UNKNOWN_CLIENT = "unknown"


def is_plausible_ip(value: str | None) -> bool:
    """Cheap sanity check for header-supplied addresses.

    Not a full parser: rejects empty values, values with inner spaces, and
    anything longer than an IPv6 literal.
    """

    if not value:
        return False
    trimmed = value.strip()
    return 0 < len(trimmed) <= MAX_IP_LENGTH and " " not in trimmed


def get_client_ip(request: Request) -> str:
    """Resolve the client address for a request.

    Order:
        1. First hop of ``X-Forwarded-For`` (the original client).
        2. ``X-Real-IP``.
        3. The socket peer address.

    Proxy headers are skipped when ``APP_TRUST_PROXY_HEADERS`` is false.

    Args:
        request: Incoming request.

    Returns:
        Client address, or ``"unknown"`` when nothing usable is available.
    """

    if settings.app.trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if is_plausible_ip(first_hop):
                return first_hop

        real_ip = request.headers.get("x-real-ip")
        if is_plausible_ip(real_ip):
            return real_ip.strip()  # type: ignore[union-attr]

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT
