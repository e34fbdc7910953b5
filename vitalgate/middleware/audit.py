"""
Audit Middleware
================
Records sensitive reads and all mutating requests after the handler runs.
"""

from typing import Iterable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..audit import AuditAction, AuditLog
from ..errors import AuditWriteFailed
from .utils import get_client_ip

logger = structlog.get_logger(__name__)

DEFAULT_SENSITIVE_PREFIXES = (
    "/api/medical",
    "/api/medications",
    "/api/genomics",
    "/api/family-history",
    "/api/documents",
)

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def action_for(method: str, sensitive: bool) -> Optional[AuditAction]:
    """Audit action for a request, or None if it is not audited."""
    if method == "DELETE":
        return AuditAction.DATA_DELETE
    if method in MUTATING_METHODS:
        return AuditAction.DATA_WRITE
    if sensitive:
        return AuditAction.SENSITIVE_DATA_ACCESS
    return None


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Appends an audit entry for each audited request.

    With ``fail_closed`` (default) a request whose entry cannot be written
    gets a 503 instead of its normal response.
    """

    def __init__(
        self,
        app,
        audit_log: AuditLog,
        sensitive_prefixes: Iterable[str] = DEFAULT_SENSITIVE_PREFIXES,
        fail_closed: bool = True,
    ):
        super().__init__(app)
        self.audit_log = audit_log
        self.sensitive_prefixes = tuple(sensitive_prefixes)
        self.fail_closed = fail_closed

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        action = action_for(request.method, path.startswith(self.sensitive_prefixes))

        response = await call_next(request)
        if action is None:
            return response

        claims = getattr(request.state, "claims", None)
        try:
            await self.audit_log.append(
                action,
                source_ip=get_client_ip(request),
                user_agent=request.headers.get("User-Agent", "unknown"),
                request_path=path,
                method=request.method,
                actor_id=claims.subject_id if claims else None,
                details={"status_code": response.status_code},
            )
        except AuditWriteFailed as e:
            logger.error(
                "request_audit_failed",
                action=action.value,
                path=path,
                actor_id=claims.subject_id if claims else None,
                error=str(e),
            )
            if self.fail_closed:
                return JSONResponse(status_code=e.status_code, content=e.to_dict())

        return response
