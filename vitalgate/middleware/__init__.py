"""
Governance Middleware
=====================
Starlette middleware wiring the rate limiter, token manager, audit log and
usage monitor into a request pipeline.
"""

from typing import Optional

from ..audit import AuditLog
from ..auth import TokenManager
from ..monitor import UsageMonitor
from ..rate_limit import RateLimiter
from .audit import AuditMiddleware
from .auth import TokenAuthMiddleware
from .monitor import UsageMonitorMiddleware
from .rate_limit import RateLimitMiddleware
from .utils import DEFAULT_EXCLUDED_PATHS, get_client_ip


def install_governance(
    app,
    limiter: RateLimiter,
    token_manager: TokenManager,
    audit_log: AuditLog,
    monitor: Optional[UsageMonitor] = None,
) -> None:
    """
    Add the governance middleware to a Starlette/FastAPI app.

    Request order: usage monitor, rate limit, token auth, audit, handler.
    Starlette runs the last-added middleware first.
    """
    app.add_middleware(AuditMiddleware, audit_log=audit_log)
    app.add_middleware(TokenAuthMiddleware, token_manager=token_manager, audit_log=audit_log)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter,
        token_manager=token_manager,
        audit_log=audit_log,
    )
    app.add_middleware(UsageMonitorMiddleware, monitor=monitor or UsageMonitor())


__all__ = [
    "AuditMiddleware",
    "RateLimitMiddleware",
    "TokenAuthMiddleware",
    "UsageMonitorMiddleware",
    "DEFAULT_EXCLUDED_PATHS",
    "get_client_ip",
    "install_governance",
]
