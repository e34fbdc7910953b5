"""
Configuration Tests
===================
Tests for settings loading and environment profiles.
"""

import pytest


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults(self):
        """Production defaults match the documented buckets."""
        from vitalgate.config import HOUR_MS, MINUTE_MS, load_settings

        settings = load_settings({"VITALGATE_ENV": "production"})
        buckets = settings.rate_limit.buckets

        assert (buckets["general"].limit, buckets["general"].window_ms) == (100, 15 * MINUTE_MS)
        assert (buckets["auth"].limit, buckets["auth"].window_ms) == (5, 15 * MINUTE_MS)
        assert (buckets["sensitive_data"].limit, buckets["sensitive_data"].window_ms) == (50, 15 * MINUTE_MS)
        assert (buckets["file_upload"].limit, buckets["file_upload"].window_ms) == (10, HOUR_MS)
        assert (buckets["health_data"].limit, buckets["health_data"].window_ms) == (30, MINUTE_MS)
        assert (buckets["ai_analysis"].limit, buckets["ai_analysis"].window_ms) == (10, 5 * MINUTE_MS)
        assert settings.rate_limit.tier_limits == {"default": 100, "pro": 200, "premium": 500}
        assert settings.audit.retention_days == 2555
        assert settings.token.lifetime_seconds == 7 * 24 * 3600

    def test_environment_overrides(self):
        from vitalgate.config import load_settings

        settings = load_settings({
            "VITALGATE_ENV": "production",
            "JWT_SECRET": "s3cret",
            "JWT_ISSUER": "issuer",
            "RATE_LIMIT_FAILURE_POLICY": "closed",
            "RATE_LIMIT_TIER_LIMITS": "pro=300, premium = 900",
            "AUDIT_RETENTION_DAYS": "30",
            "REDIS_URL": "redis://cache:6379/1",
        })

        assert settings.token.secret == "s3cret"
        assert settings.token.issuer == "issuer"
        assert settings.rate_limit.failure_policy == "closed"
        assert settings.rate_limit.tier_limits == {"default": 100, "pro": 300, "premium": 900}
        assert settings.audit.retention_days == 30
        assert settings.store.url == "redis://cache:6379/1"

    def test_development_profile(self):
        from vitalgate.config import load_settings

        settings = load_settings({"VITALGATE_ENV": "development"})

        assert settings.rate_limit.buckets["general"].limit == 1000
        assert settings.rate_limit.buckets["auth"].limit == 5

    def test_test_profile(self):
        """The test profile uses one-second windows."""
        from vitalgate.config import load_settings

        buckets = load_settings({"VITALGATE_ENV": "test"}).rate_limit.buckets

        assert buckets["auth"].limit == 100
        assert buckets["auth"].window_ms == 1000

    def test_bucket_validation(self):
        from vitalgate.config import BucketConfig

        with pytest.raises(ValueError):
            BucketConfig(0, 1000)
        with pytest.raises(ValueError):
            BucketConfig(10, 0)


class TestErrors:
    """Tests for error rendering."""

    def test_quota_exceeded_http(self):
        from vitalgate.errors import QuotaExceeded, to_http_exception

        exc = to_http_exception(QuotaExceeded("auth", "1.2.3.4", retry_after=42))

        assert exc.status_code == 429
        assert exc.headers == {"Retry-After": "42"}
        assert exc.detail["retryAfter"] == "42 seconds"

    def test_authentication_http(self):
        from vitalgate.errors import TokenExpired, to_http_exception

        exc = to_http_exception(TokenExpired("Token has expired"))

        assert exc.status_code == 401
        assert exc.detail["code"] == "TOKEN_EXPIRED"
        assert exc.headers == {"WWW-Authenticate": "Bearer"}


class TestLogging:
    """Tests for structlog setup and request context."""

    def test_request_context_processor(self):
        from vitalgate.logging import (
            add_request_context,
            bind_request_context,
            clear_request_context,
        )

        bind_request_context(request_id="req_1", user_id="user_1")
        try:
            event = add_request_context(None, "info", {"event": "x"})
        finally:
            clear_request_context()

        assert event["request_id"] == "req_1"
        assert event["user_id"] == "user_1"
        assert "request_id" not in add_request_context(None, "info", {"event": "x"})

    def test_configure_logging(self):
        import structlog

        from vitalgate.logging import configure_logging

        try:
            configure_logging("health-api", level="DEBUG", json_output=False)
            assert structlog.is_configured()
        finally:
            structlog.reset_defaults()


class TestMetrics:
    def test_metrics_text(self):
        from vitalgate.metrics import get_metrics_text

        text = get_metrics_text().decode()

        assert "vitalgate_rate_limit_decisions_total" in text
        assert "vitalgate_audit_appends_total" in text


class TestTierDescription:
    def test_describe_tiers(self):
        from vitalgate.config import default_tier_limits
        from vitalgate.rate_limit import describe_tiers

        assert describe_tiers({"default": 100}) == {"default": 100, "pro": 100, "premium": 100}
        assert describe_tiers(default_tier_limits())["premium"] == 500
