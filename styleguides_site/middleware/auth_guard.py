"""
AuthGuard Middleware - Applies the protected route table to page requests.

Unauthenticated visitors are sent to sign-in with their original path kept in
the `return-url` cookie; blocked, unverified and under-privileged users are
redirected to the matching page.
"""

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.services.auth.access_control import (
    AuthOptions,
    get_route_protection,
    require_auth,
)
from styleguides_site.services.auth.cookies import set_short_lived_cookie

logger = get_logger(__name__)


class AuthGuardMiddleware(BaseHTTPMiddleware):
    """
    Guard routes listed in the protection table.

    Sets `request.state.user` (None for anonymous visitors) on every request.
    """

    def __init__(self, app, routes: dict[str, AuthOptions] | None = None):
        super().__init__(app)
        self.routes = routes

    async def dispatch(self, request: Request, call_next):
        session_store = request.app.state.session_store
        session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
        session = session_store.get_session(session_id) if session_id else None
        user = session.user if session else None
        request.state.user = user

        protection = get_route_protection(request.url.path, self.routes)
        if protection is None or not protection.require_auth:
            return await call_next(request)

        check = require_auth(user, protection)
        if check.allowed:
            return await call_next(request)

        logger.info(
            "Protected route access denied",
            path=request.url.path,
            user_id=user.id if user else None,
            redirect=check.redirect,
        )
        response = RedirectResponse(check.redirect, status_code=302)
        if user is None:
            return_url = request.url.path
            if request.url.query:
                return_url += f"?{request.url.query}"
            set_short_lived_cookie(response, settings.RETURN_URL_COOKIE_NAME, return_url)
        return response
