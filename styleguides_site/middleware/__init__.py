"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID bound into log context)
- Route protection (sign-in, verified email and role checks)
"""

from styleguides_site.middleware.auth_guard import AuthGuardMiddleware
from styleguides_site.middleware.request_context import RequestContextMiddleware

__all__ = [
    "AuthGuardMiddleware",
    "RequestContextMiddleware",
]
