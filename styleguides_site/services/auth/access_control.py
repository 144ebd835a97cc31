"""
Role-based access control for protected site routes.

Role hierarchy: admin > editor > contributor. Admins pass every role check,
editors pass everything except admin-only checks.
"""

from pydantic import BaseModel

from styleguides_site.models.domain.user_domain import Role, User

SIGN_IN_PATH = "/sign-in"
VERIFY_EMAIL_PATH = "/verify-email"
UNAUTHORIZED_PATH = "/unauthorized"
BLOCKED_REDIRECT = "/sign-in?error=account_blocked"


class AuthOptions(BaseModel):
    require_auth: bool = False
    require_role: Role | None = None
    require_email_verified: bool = False
    redirect_to: str | None = None


class AuthCheck(BaseModel):
    """Result of an access check; `redirect` is set when access is denied."""

    user: User | None = None
    redirect: str | None = None

    @property
    def allowed(self) -> bool:
        return self.redirect is None


PROTECTED_ROUTES: dict[str, AuthOptions] = {
    "/dashboard": AuthOptions(require_auth=True),
    "/editor": AuthOptions(require_auth=True, require_email_verified=True),
    "/editor/new": AuthOptions(require_auth=True, require_email_verified=True),
    "/editor/edit": AuthOptions(require_auth=True, require_email_verified=True),
    "/admin": AuthOptions(require_auth=True, require_role="admin"),
    "/admin/contributions": AuthOptions(require_auth=True, require_role="editor"),
    "/admin/users": AuthOptions(require_auth=True, require_role="admin"),
    "/api/contributions/submit": AuthOptions(require_auth=True, require_email_verified=True),
}


def has_role(user: User | None, required_role: Role) -> bool:
    if user is None:
        return False
    if user.role == "admin":
        return True
    if user.role == "editor" and required_role != "admin":
        return True
    return user.role == required_role


def get_route_protection(
    pathname: str, routes: dict[str, AuthOptions] | None = None
) -> AuthOptions | None:
    """Exact match first, then the first table entry that is a path prefix."""
    routes = PROTECTED_ROUTES if routes is None else routes

    if pathname in routes:
        return routes[pathname]

    for route, options in routes.items():
        if pathname.startswith(route + "/"):
            return options

    return None


def require_auth(user: User | None, options: AuthOptions | None = None) -> AuthCheck:
    options = options or AuthOptions(require_auth=True)

    if user is None:
        return AuthCheck(redirect=options.redirect_to or SIGN_IN_PATH)

    if user.blocked:
        return AuthCheck(redirect=BLOCKED_REDIRECT)

    if options.require_email_verified and not user.email_verified:
        return AuthCheck(redirect=VERIFY_EMAIL_PATH)

    if options.require_role and not has_role(user, options.require_role):
        return AuthCheck(redirect=UNAUTHORIZED_PATH)

    return AuthCheck(user=user)


def can_access_route(user: User | None, pathname: str) -> bool:
    protection = get_route_protection(pathname)
    if protection is None or not protection.require_auth:
        return True
    return require_auth(user, protection).allowed
