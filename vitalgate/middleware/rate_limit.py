"""
Rate Limit Middleware
=====================
Applies the static bucket for the request path and the caller's tier bucket.
"""

from typing import Iterable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..audit import AuditAction, AuditLog
from ..auth import TokenManager
from ..errors import AuditWriteFailed, AuthenticationError, QuotaExceeded, StoreUnavailable
from ..rate_limit import RateLimiter, RateLimitInfo, classify_path, quota_headers
from .utils import DEFAULT_EXCLUDED_PATHS, get_client_ip

logger = structlog.get_logger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests over quota with 429 and stamps quota headers on the rest.

    Static buckets are keyed by client IP. When a token manager is given, a
    valid bearer token identifies the subject for the tier-based bucket;
    invalid tokens fall back to the anonymous tier here and are rejected
    later by the auth middleware.
    """

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        token_manager: Optional[TokenManager] = None,
        audit_log: Optional[AuditLog] = None,
        apply_dynamic: bool = True,
        excluded_paths: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.token_manager = token_manager
        self.audit_log = audit_log
        self.apply_dynamic = apply_dynamic
        self.excluded_paths = set(excluded_paths or DEFAULT_EXCLUDED_PATHS)

    def _identify_subject(self, request: Request) -> Optional[str]:
        if self.token_manager is None:
            return None
        token = self.token_manager.extract_from_header(request.headers.get("Authorization"))
        if token is None:
            return None
        try:
            return self.token_manager.verify(token).subject_id
        except AuthenticationError:
            return None

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self.excluded_paths:
            return await call_next(request)

        client_ip = get_client_ip(request)
        subject_id = self._identify_subject(request)
        bucket = classify_path(path)

        try:
            info = await self.limiter.check(bucket, client_ip)
            if info.allowed and self.apply_dynamic:
                dynamic = await self.limiter.check_dynamic(subject_id)
                if not dynamic.allowed or dynamic.remaining < info.remaining:
                    info = dynamic
        except StoreUnavailable as e:
            # Fail-closed policy
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        if not info.allowed:
            return await self._reject(request, info, subject_id or client_ip, client_ip)

        request.state.rate_limit = info
        response = await call_next(request)
        response.headers.update(quota_headers(info))
        return response

    async def _reject(
        self,
        request: Request,
        info: RateLimitInfo,
        identity: str,
        client_ip: str,
    ) -> JSONResponse:
        error = QuotaExceeded(
            bucket=info.bucket or "",
            identity=identity,
            retry_after=info.retry_after or 1,
            limit=info.limit,
        )

        if self.audit_log is not None:
            try:
                await self.audit_log.append(
                    AuditAction.RATE_LIMIT_EXCEEDED,
                    source_ip=client_ip,
                    user_agent=request.headers.get("User-Agent", "unknown"),
                    request_path=request.url.path,
                    method=request.method,
                    actor_id=identity if identity != client_ip else None,
                    details={"bucket": error.bucket, "limit": info.limit},
                )
            except AuditWriteFailed as e:
                logger.error(
                    "rate_limit_audit_failed",
                    bucket=error.bucket,
                    identity=identity,
                    error=str(e),
                )

        return JSONResponse(
            status_code=error.status_code,
            content=error.to_dict(),
            headers=quota_headers(info),
        )
