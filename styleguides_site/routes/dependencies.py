"""
FastAPI dependencies exposing the per-process stores held on app.state.
"""

from fastapi import Depends, HTTPException, Request, status

from styleguides_site.config import settings
from styleguides_site.models.domain.session_domain import Session
from styleguides_site.models.domain.user_domain import User
from styleguides_site.services.auth.email_verification import EmailVerificationStore
from styleguides_site.services.auth.oauth_providers import OAuthUserResolver
from styleguides_site.services.auth.session_store import SessionStore
from styleguides_site.services.auth.user_store import UserStore
from styleguides_site.services.github.cached_client import CachedGitHubClient

CSRF_HEADER = "X-CSRF-Token"


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_verification_store(request: Request) -> EmailVerificationStore:
    return request.app.state.verification_store


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_oauth_resolver(request: Request) -> OAuthUserResolver:
    return request.app.state.oauth_resolver


def get_contributors_client(request: Request) -> CachedGitHubClient:
    return request.app.state.contributors_client


def get_current_session(
    request: Request, session_store: SessionStore = Depends(get_session_store)
) -> Session | None:
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not session_id:
        return None
    return session_store.get_session(session_id)


def get_current_user(session: Session | None = Depends(get_current_session)) -> User | None:
    return session.user if session else None


def require_session(session: Session | None = Depends(get_current_session)) -> Session:
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return session


def require_csrf(
    request: Request,
    session: Session = Depends(require_session),
    session_store: SessionStore = Depends(get_session_store),
) -> Session:
    """Session whose CSRF token matches the X-CSRF-Token header."""
    token = request.headers.get(CSRF_HEADER, "")
    if not session_store.validate_csrf_token(session.id, token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid CSRF token")
    return session
