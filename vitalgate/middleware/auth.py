"""
Token Auth Middleware
=====================
Bearer token verification for protected paths.
"""

from typing import Iterable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..audit import AuditAction, AuditLog
from ..auth import TokenManager
from ..errors import AuditWriteFailed, AuthenticationError, MissingToken, TokenExpired
from ..logging import bind_request_context
from .utils import DEFAULT_EXCLUDED_PATHS, get_client_ip

logger = structlog.get_logger(__name__)

REFRESHED_TOKEN_HEADER = "X-Refreshed-Token"

DEFAULT_PUBLIC_PATHS = {
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/refresh",
}


class TokenAuthMiddleware(BaseHTTPMiddleware):
    """
    Verifies the bearer token on every protected request.

    Verified claims are stored on ``request.state.claims``. Tokens close to
    expiry get a replacement in the ``X-Refreshed-Token`` response header.
    """

    def __init__(
        self,
        app,
        token_manager: TokenManager,
        audit_log: Optional[AuditLog] = None,
        protected_prefixes: Iterable[str] = ("/api",),
        public_paths: Optional[Iterable[str]] = None,
        excluded_paths: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.token_manager = token_manager
        self.audit_log = audit_log
        self.protected_prefixes = tuple(protected_prefixes)
        self.public_paths = set(public_paths or DEFAULT_PUBLIC_PATHS)
        self.excluded_paths = set(excluded_paths or DEFAULT_EXCLUDED_PATHS)

    def _is_protected(self, path: str) -> bool:
        if path in self.excluded_paths or path in self.public_paths:
            return False
        return path.startswith(self.protected_prefixes)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not self._is_protected(path):
            return await call_next(request)

        token = self.token_manager.extract_from_header(request.headers.get("Authorization"))

        try:
            if token is None:
                raise MissingToken("Authentication token required")
            claims = self.token_manager.verify(token)
        except AuthenticationError as e:
            return await self._reject(request, e)

        request.state.claims = claims
        bind_request_context(user_id=claims.subject_id)

        response = await call_next(request)

        if self.token_manager.should_refresh(token):
            try:
                response.headers[REFRESHED_TOKEN_HEADER] = self.token_manager.refresh(token)
            except AuthenticationError as e:
                # Expired while the handler ran
                logger.info("token_refresh_skipped", code=e.code, path=path)
        return response

    async def _reject(self, request: Request, error: AuthenticationError) -> JSONResponse:
        logger.warning(
            "authentication_failed",
            code=error.code,
            path=request.url.path,
            ip=get_client_ip(request),
        )

        if isinstance(error, TokenExpired) and self.audit_log is not None:
            try:
                await self.audit_log.append(
                    AuditAction.TOKEN_EXPIRED,
                    source_ip=get_client_ip(request),
                    user_agent=request.headers.get("User-Agent", "unknown"),
                    request_path=request.url.path,
                    method=request.method,
                )
            except AuditWriteFailed as e:
                logger.error("token_audit_failed", code=error.code, error=str(e))

        return JSONResponse(
            status_code=error.status_code,
            content={"error": error.to_dict()},
            headers={"WWW-Authenticate": "Bearer"},
        )
