"""
Sign-in routes: OAuth login and callback, logout, session status and email verification.
"""

import hmac
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.api.auth_response import (
    ProvidersResponse,
    SessionResponse,
    SessionUser,
    VerificationRequestResponse,
)
from styleguides_site.models.domain.session_domain import Session
from styleguides_site.routes.dependencies import (
    get_current_session,
    get_oauth_resolver,
    get_session_store,
    get_user_store,
    get_verification_store,
    require_csrf,
)
from styleguides_site.services.auth.access_control import SIGN_IN_PATH
from styleguides_site.services.auth.cookies import (
    clear_session_cookie,
    set_session_cookie,
    set_short_lived_cookie,
)
from styleguides_site.services.auth.email_verification import (
    EmailVerificationStore,
    VerificationCooldownError,
    generate_verification_email,
    needs_email_verification,
)
from styleguides_site.services.auth.oauth_providers import (
    SUPPORTED_PROVIDERS,
    OAuthProviderError,
    OAuthUserResolver,
    build_authorization_url,
    get_providers,
    resolve_with_timeout,
)
from styleguides_site.services.auth.session_store import SessionStore
from styleguides_site.services.auth.user_store import UserStore

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

DEFAULT_RETURN_URL = "/dashboard"


def _sign_in_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(
        f"{SIGN_IN_PATH}?{urlencode(params)}", status_code=status.HTTP_302_FOUND
    )


def _safe_return_url(value: str | None) -> str:
    """Only same-site absolute paths are honoured."""
    if not value or not value.startswith("/") or value.startswith("//"):
        return DEFAULT_RETURN_URL
    return value


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers():
    return ProvidersResponse(providers=[p.name for p in get_providers()])


@router.get("/login")
async def login(
    provider: str | None = Query(None),
    session_store: SessionStore = Depends(get_session_store),
):
    """
    Start the OAuth flow.

    Stores a random state in the `oauth-state` cookie and redirects to the
    provider's authorization page.

    Raises:
        400: Unknown provider
        503: Provider credentials not configured
    """
    if provider not in SUPPORTED_PROVIDERS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid provider")

    state = session_store.generate_csrf_token()
    try:
        authorization_url = build_authorization_url(provider, state)
    except OAuthProviderError as e:
        logger.error("OAuth login unavailable", provider=provider, error=str(e), error_code=e.error_code)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sign-in provider temporarily unavailable",
        ) from None

    response = RedirectResponse(authorization_url, status_code=status.HTTP_302_FOUND)
    set_short_lived_cookie(response, settings.OAUTH_STATE_COOKIE_NAME, state)
    logger.info("OAuth login started", provider=provider, state_preview=state[:8] + "...")
    return response


@router.get("/callback")
async def oauth_callback(
    request: Request,
    provider: str | None = Query(None),
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    session_store: SessionStore = Depends(get_session_store),
    user_store: UserStore = Depends(get_user_store),
    resolver: OAuthUserResolver = Depends(get_oauth_resolver),
):
    """Complete the OAuth flow and open a session."""
    if error:
        logger.warning("OAuth provider returned an error", provider=provider, error=error)
        return _sign_in_redirect(error="oauth_error")

    stored_state = request.cookies.get(settings.OAUTH_STATE_COOKIE_NAME)
    if not state or not stored_state or not hmac.compare_digest(state.encode(), stored_state.encode()):
        logger.warning("OAuth state mismatch", provider=provider)
        return _sign_in_redirect(error="invalid_state")

    if not provider or not code:
        response = _sign_in_redirect(error="missing_params")
        response.delete_cookie(settings.OAUTH_STATE_COOKIE_NAME, path="/")
        return response

    profile = await resolve_with_timeout(resolver, provider, code)
    if profile is None:
        response = _sign_in_redirect(error="auth_failed")
        response.delete_cookie(settings.OAUTH_STATE_COOKIE_NAME, path="/")
        return response

    user = user_store.upsert_oauth_user(profile)
    if user.blocked:
        logger.warning("Blocked user attempted sign-in", user_id=user.id)
        response = _sign_in_redirect(error="account_blocked")
        response.delete_cookie(settings.OAUTH_STATE_COOKIE_NAME, path="/")
        return response

    session_id = session_store.create_session(user)
    session_store.store_csrf_token(session_id, session_store.generate_csrf_token())

    return_url = _safe_return_url(request.cookies.get(settings.RETURN_URL_COOKIE_NAME))
    response = RedirectResponse(return_url, status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, session_id)
    response.delete_cookie(settings.OAUTH_STATE_COOKIE_NAME, path="/")
    response.delete_cookie(settings.RETURN_URL_COOKIE_NAME, path="/")

    logger.info("User signed in", user_id=user.id, provider=provider)
    return response


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(
    session: Session | None = Depends(get_current_session),
    session_store: SessionStore = Depends(get_session_store),
):
    if session:
        session_store.delete_session(session.id)

    response = RedirectResponse("/", status_code=status.HTTP_302_FOUND)
    clear_session_cookie(response)
    return response


@router.get("/session", response_model=SessionResponse)
async def session_status(session: Session | None = Depends(get_current_session)):
    if session is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(
        authenticated=True,
        user=SessionUser.from_user(session.user),
        csrf_token=session.csrf_token,
    )


@router.post("/verification/request", response_model=VerificationRequestResponse)
async def request_verification(
    session: Session = Depends(require_csrf),
    verification_store: EmailVerificationStore = Depends(get_verification_store),
):
    """
    Issue a verification link for the signed-in user.

    Raises:
        401: Not signed in
        403: Missing or invalid CSRF token
        429: Requested again within the cooldown window
    """
    user = session.user
    if not needs_email_verification(user):
        return VerificationRequestResponse(sent=False, message="Email address already verified")

    try:
        token = verification_store.generate_verification_token(user)
    except VerificationCooldownError as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e)) from None

    verification_url = f"{settings.SITE_URL.rstrip('/')}/api/auth/verify-email?{urlencode({'token': token})}"
    email = generate_verification_email(user.name, verification_url)
    # TODO: hand `email` to a mail transport once one is configured for the site
    logger.info("Verification email prepared", user_id=user.id, subject=email.subject)

    return VerificationRequestResponse(
        sent=True,
        message="Verification email sent",
        verification_url=verification_url if settings.debug else None,
    )


@router.get("/verify-email")
async def verify_email(
    token: str | None = Query(None),
    verification_store: EmailVerificationStore = Depends(get_verification_store),
    user_store: UserStore = Depends(get_user_store),
    session_store: SessionStore = Depends(get_session_store),
):
    if not token:
        return _sign_in_redirect(error="missing_token")

    result = verification_store.mark_email_as_verified(token)
    if not result.valid:
        message = (result.error or "").lower()
        error_code = "verification_failed"
        if "expired" in message:
            error_code = "token_expired"
        elif "attempts" in message:
            error_code = "too_many_attempts"
        return _sign_in_redirect(error=error_code)

    user = user_store.mark_email_verified(result.user_id)
    if user is not None:
        session_store.update_user(user)

    return _sign_in_redirect(verified="true")
