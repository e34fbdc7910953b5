"""
Middleware Helpers
==================
Shared request helpers for the governance middleware.
"""

from starlette.requests import Request

# Health checks and metrics bypass governance
DEFAULT_EXCLUDED_PATHS = {"/health", "/ready", "/metrics"}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    client = request.client
    if client:
        return client.host
    return "unknown"
