"""Tests for client IP resolution used in rate limit keys."""

from __future__ import annotations

import pytest
from fastapi import Request

from budget_guard.core.client_ip import get_client_ip, is_plausible_ip
from budget_guard.core.config import settings


def _request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("10.0.0.9", 5000)) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    scope = {"type": "http", "headers": raw}
    if client is not None:
        scope["client"] = client
    return Request(scope)


def test_uses_first_forwarded_hop() -> None:
    request = _request({"X-Forwarded-For": " 203.0.113.7 , 10.0.0.1, 10.0.0.2"})
    assert get_client_ip(request) == "203.0.113.7"


def test_falls_back_to_real_ip_when_forwarded_is_garbage() -> None:
    request = _request({"X-Forwarded-For": "not an ip", "X-Real-IP": "198.51.100.4"})
    assert get_client_ip(request) == "198.51.100.4"


def test_falls_back_to_socket_peer() -> None:
    assert get_client_ip(_request()) == "10.0.0.9"


def test_unknown_without_any_source() -> None:
    assert get_client_ip(_request(client=None)) == "unknown"


def test_ignores_headers_when_proxies_not_trusted(monkeypatch) -> None:
    monkeypatch.setattr(settings.app, "trust_proxy_headers", False)

    request = _request({"X-Forwarded-For": "203.0.113.7", "X-Real-IP": "198.51.100.4"})
    assert get_client_ip(request) == "10.0.0.9"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("203.0.113.7", True),
        ("2001:db8::1", True),
        ("", False),
        (None, False),
        ("1.2.3.4 5.6.7.8", False),
        ("a" * 46, False),
    ],
)
def test_is_plausible_ip(value, expected) -> None:
    assert is_plausible_ip(value) is expected
