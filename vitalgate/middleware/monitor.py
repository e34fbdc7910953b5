"""
Usage Monitor Middleware
========================
Feeds every response's quota headers to the UsageMonitor.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..monitor import UsageMonitor
from .utils import get_client_ip


class UsageMonitorMiddleware(BaseHTTPMiddleware):
    """Observes responses without changing them."""

    def __init__(self, app, monitor: UsageMonitor):
        super().__init__(app)
        self.monitor = monitor

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        claims = getattr(request.state, "claims", None)
        identity = claims.subject_id if claims else get_client_ip(request)
        self.monitor.observe_headers(response.headers, identity=identity, path=request.url.path)
        return response
