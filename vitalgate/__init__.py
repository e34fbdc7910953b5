"""
VitalGate Core
==============
Traffic governance for health-data APIs: tiered rate limiting, bearer token
lifecycle, tamper-evident audit logging and quota usage monitoring.
"""

__version__ = "0.1.0"

# Configuration
from vitalgate.config import Settings, load_settings

# Errors
from vitalgate.errors import (
    GovernanceError,
    QuotaExceeded,
    StoreUnavailable,
    AuthenticationError,
    MissingToken,
    TokenExpired,
    TokenMalformed,
    TokenIssuerMismatch,
    ChainConflict,
    AuditWriteFailed,
    IntegrityMismatch,
)

# Rate Limiting
from vitalgate.rate_limit import (
    RateLimiter,
    RateLimitInfo,
    RateLimitResult,
    FailurePolicy,
    Tier,
    classify_path,
    quota_headers,
)

# Counter Store
from vitalgate.store import InMemoryCounterStore, RedisCounterStore

# Tokens
from vitalgate.auth import TokenClaims, TokenManager

# Audit
from vitalgate.audit import (
    AuditAction,
    AuditLog,
    AuditLogEntry,
    AuditQuery,
    DateRange,
    InMemoryAuditRepository,
    SecurityEventService,
    Severity,
)

# Monitoring
from vitalgate.monitor import UsageMonitor

__all__ = [
    "__version__",
    # Configuration
    "Settings",
    "load_settings",
    # Errors
    "GovernanceError",
    "QuotaExceeded",
    "StoreUnavailable",
    "AuthenticationError",
    "MissingToken",
    "TokenExpired",
    "TokenMalformed",
    "TokenIssuerMismatch",
    "ChainConflict",
    "AuditWriteFailed",
    "IntegrityMismatch",
    # Rate Limiting
    "RateLimiter",
    "RateLimitInfo",
    "RateLimitResult",
    "FailurePolicy",
    "Tier",
    "classify_path",
    "quota_headers",
    # Counter Store
    "InMemoryCounterStore",
    "RedisCounterStore",
    # Tokens
    "TokenClaims",
    "TokenManager",
    # Audit
    "AuditAction",
    "AuditLog",
    "AuditLogEntry",
    "AuditQuery",
    "DateRange",
    "InMemoryAuditRepository",
    "SecurityEventService",
    "Severity",
    # Monitoring
    "UsageMonitor",
]
