"""Tests for rate limit policy configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from budget_guard.core.config import (
    DEFAULT_RATE_LIMIT_POLICIES,
    AppSettings,
    RateLimitPolicy,
)


def test_builtin_policies_match_endpoint_budgets() -> None:
    assert DEFAULT_RATE_LIMIT_POLICIES["login"] == RateLimitPolicy(limit=10, window_ms=900_000)
    assert DEFAULT_RATE_LIMIT_POLICIES["signup"] == RateLimitPolicy(limit=5, window_ms=3_600_000)
    assert DEFAULT_RATE_LIMIT_POLICIES["expenses"] == RateLimitPolicy(limit=100, window_ms=60_000)


def test_policies_override_from_json_env(monkeypatch) -> None:
    monkeypatch.setenv("APP_RATE_LIMIT_POLICIES", '{"login": {"limit": 3, "window_ms": 1000}}')

    app_settings = AppSettings()

    assert app_settings.policy_for("login") == RateLimitPolicy(limit=3, window_ms=1000)
    assert app_settings.policy_for("signup") == DEFAULT_RATE_LIMIT_POLICIES["signup"]


def test_unknown_scope_falls_back_to_default() -> None:
    assert AppSettings().policy_for("reports") == DEFAULT_RATE_LIMIT_POLICIES["default"]


@pytest.mark.parametrize("payload", [{"limit": 0, "window_ms": 1000}, {"limit": 1, "window_ms": 0}])
def test_non_positive_policy_values_are_rejected(payload) -> None:
    with pytest.raises(ValidationError):
        RateLimitPolicy(**payload)
