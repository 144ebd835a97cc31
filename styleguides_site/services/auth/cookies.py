"""Session and short-lived auth cookie helpers."""

from starlette.responses import Response

from styleguides_site.config import settings


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        session_id,
        max_age=settings.session_max_age_seconds(),
        httponly=True,
        secure=settings.cookie_secure(),
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")


def set_short_lived_cookie(response: Response, name: str, value: str) -> None:
    """OAuth state and return-url cookies live for ten minutes."""
    response.set_cookie(
        name,
        value,
        max_age=settings.SHORT_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.cookie_secure(),
        samesite="lax",
        path="/",
    )
