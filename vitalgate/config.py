"""
Governance Configuration
========================
Settings for buckets, tiers, tokens, audit retention and the counter store.

Values are read from environment variables when the settings objects are
built. ``VITALGATE_ENV`` selects a profile (development, production, test)
that overrides selected bucket limits.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

DEFAULT_TOKEN_LIFETIME_SECONDS = 7 * 24 * 3600  # 7 days
DEFAULT_RETENTION_DAYS = 2555  # 7 years (HIPAA)


@dataclass(frozen=True)
class BucketConfig:
    """A named rate-limit policy: ``limit`` requests per ``window_ms``."""
    limit: int
    window_ms: int
    message: str = "Too many requests, please try again later."

    def __post_init__(self):
        if self.limit <= 0:
            raise ValueError("Bucket limit must be positive")
        if self.window_ms <= 0:
            raise ValueError("Bucket window must be positive")


def default_buckets() -> Dict[str, BucketConfig]:
    return {
        "general": BucketConfig(100, 15 * MINUTE_MS),
        "auth": BucketConfig(
            5, 15 * MINUTE_MS,
            "Too many authentication attempts, please try again later.",
        ),
        "sensitive_data": BucketConfig(50, 15 * MINUTE_MS),
        "file_upload": BucketConfig(10, HOUR_MS, "Too many file upload requests"),
        "health_data": BucketConfig(30, MINUTE_MS, "Too many health data requests"),
        "ai_analysis": BucketConfig(10, 5 * MINUTE_MS, "Too many AI analysis requests"),
    }


def default_tier_limits() -> Dict[str, int]:
    return {"default": 100, "pro": 200, "premium": 500}


def _parse_tier_limits(raw: Optional[str]) -> Dict[str, int]:
    """Parse ``"default=100,pro=200,premium=500"``."""
    limits = default_tier_limits()
    if not raw:
        return limits
    for item in raw.split(","):
        if "=" not in item:
            continue
        name, value = item.split("=", 1)
        limits[name.strip()] = int(value)
    return limits


@dataclass
class RateLimitConfig:
    """Rate limiter settings."""
    buckets: Dict[str, BucketConfig] = field(default_factory=default_buckets)
    tier_limits: Dict[str, int] = field(default_factory=default_tier_limits)
    dynamic_window_ms: int = 15 * MINUTE_MS
    failure_policy: str = "open"  # "open" or "closed"
    key_prefix: str = "ratelimit"


@dataclass
class TokenConfig:
    """Bearer token settings."""
    secret: str = ""
    lifetime_seconds: int = DEFAULT_TOKEN_LIFETIME_SECONDS
    issuer: str = "health-platform"
    audience: str = "health-platform-users"
    algorithm: str = "HS256"
    refresh_threshold_seconds: int = 3600
    header_scheme: str = "Bearer"


@dataclass
class AuditConfig:
    """Audit log settings."""
    retention_days: int = DEFAULT_RETENTION_DAYS
    append_max_attempts: int = 10
    append_base_delay: float = 0.01
    append_max_delay: float = 0.5
    export_limit: int = 10000
    timeout_ms: int = 2000


@dataclass
class StoreConfig:
    """Shared counter store connection parameters."""
    url: str = "redis://localhost:6379/0"
    timeout_ms: int = 500
    connect_timeout_ms: int = 5000


@dataclass
class Settings:
    """Top-level settings for the governance core."""
    environment: str = "development"
    service_name: str = "vitalgate"
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    store: StoreConfig = field(default_factory=StoreConfig)


def apply_environment_profile(config: RateLimitConfig, environment: str) -> RateLimitConfig:
    """Return a copy of ``config`` with the environment's bucket overrides."""
    buckets = dict(config.buckets)

    if environment == "development":
        buckets["general"] = replace(buckets["general"], limit=1000)
    elif environment == "test":
        buckets["general"] = BucketConfig(1000, 1000)
        buckets["auth"] = BucketConfig(100, 1000)
        buckets["sensitive_data"] = BucketConfig(500, 1000)
        buckets["file_upload"] = BucketConfig(100, 1000)

    return replace(config, buckets=buckets)


def load_settings(environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Populated Settings
    """
    env = os.environ if environ is None else environ
    environment = env.get("VITALGATE_ENV", "development")

    rate_limit = RateLimitConfig(
        tier_limits=_parse_tier_limits(env.get("RATE_LIMIT_TIER_LIMITS")),
        failure_policy=env.get("RATE_LIMIT_FAILURE_POLICY", "open"),
    )
    rate_limit = apply_environment_profile(rate_limit, environment)

    token = TokenConfig(
        secret=env.get("JWT_SECRET", ""),
        lifetime_seconds=int(
            env.get("JWT_EXPIRES_IN_SECONDS", DEFAULT_TOKEN_LIFETIME_SECONDS)
        ),
        issuer=env.get("JWT_ISSUER", "health-platform"),
        audience=env.get("JWT_AUDIENCE", "health-platform-users"),
    )

    audit = AuditConfig(
        retention_days=int(env.get("AUDIT_RETENTION_DAYS", DEFAULT_RETENTION_DAYS)),
    )

    store = StoreConfig(
        url=env.get("REDIS_URL", "redis://localhost:6379/0"),
        timeout_ms=int(env.get("REDIS_TIMEOUT_MS", "500")),
    )

    return Settings(
        environment=environment,
        service_name=env.get("SERVICE_NAME", "vitalgate"),
        rate_limit=rate_limit,
        token=token,
        audit=audit,
        store=store,
    )
