"""
Governance Errors
=================
Exception taxonomy shared by the rate limiter, token manager and audit log.

Request-scoped errors (quota, authentication) carry an HTTP status and a
stable error code so the middleware layer can render them without
inspecting the exception type.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException


class GovernanceError(Exception):
    """Base class for all traffic-governance errors."""
    status_code: int = 500
    code: str = "GOVERNANCE_ERROR"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self)}


# =============================================================================
# Rate limiting
# =============================================================================

class QuotaExceeded(GovernanceError):
    """Raised when a bucket's quota is exhausted for the current window."""
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        bucket: str,
        identity: str,
        retry_after: int,
        limit: Optional[int] = None,
    ):
        self.bucket = bucket
        self.identity = identity
        self.retry_after = retry_after
        self.limit = limit
        super().__init__(
            f"Too many requests for bucket '{bucket}'. "
            f"Retry after {retry_after} seconds"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "Too many requests, please try again later.",
            "code": self.code,
            "retryAfter": f"{self.retry_after} seconds",
        }


class StoreUnavailable(GovernanceError):
    """Raised when the shared counter store or audit store cannot be reached."""
    status_code = 503
    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str, last_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.last_exception = last_exception


# =============================================================================
# Authentication
# =============================================================================

class AuthenticationError(GovernanceError):
    """Base class for bearer token failures. Never retried."""
    status_code = 401
    code = "AUTHENTICATION_FAILED"


class MissingToken(AuthenticationError):
    code = "MISSING_TOKEN"


class TokenExpired(AuthenticationError):
    code = "TOKEN_EXPIRED"


class TokenMalformed(AuthenticationError):
    code = "TOKEN_MALFORMED"


class TokenIssuerMismatch(AuthenticationError):
    code = "TOKEN_ISSUER_MISMATCH"


# =============================================================================
# Audit log
# =============================================================================

class ChainConflict(GovernanceError):
    """Raised when a concurrent append moved the chain head underneath us."""
    code = "AUDIT_CHAIN_CONFLICT"

    def __init__(self, expected_hash: str, actual_hash: str):
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain head moved: expected {expected_hash[:16]}, "
            f"found {actual_hash[:16]}"
        )


class AuditWriteFailed(GovernanceError):
    """Raised when an audit entry could not be persisted after all retries."""
    status_code = 503
    code = "AUDIT_WRITE_FAILED"

    def __init__(self, message: str, last_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.last_exception = last_exception


class IntegrityMismatch(GovernanceError):
    """Raised when a stored audit entry no longer matches its integrity hash."""
    code = "AUDIT_INTEGRITY_MISMATCH"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Audit entry {entry_id} failed integrity verification")


def to_http_exception(exc: GovernanceError) -> HTTPException:
    """Convert a governance error into a FastAPI HTTPException."""
    headers = None
    if isinstance(exc, QuotaExceeded):
        headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}

    return HTTPException(
        status_code=exc.status_code,
        detail=exc.to_dict(),
        headers=headers,
    )
