"""
In-memory session store.

Holds authenticated browser sessions and their CSRF tokens. One store object is
created at application startup (see main.lifespan) and injected into handlers;
tests construct their own with a controllable clock.

Expired sessions are inert: lookups treat them as absent and delete them, and
`cleanup_expired_sessions` sweeps the rest out-of-band.
"""

import hmac
import secrets
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.session_domain import Session
from styleguides_site.models.domain.user_domain import User

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def generate_token(length: int) -> str:
    """URL-safe random token of exactly `length` characters."""
    return secrets.token_urlsafe(length)[:length]


class SessionStore:
    """
    Keyed store of `Session` records.

    All mutating operations run under a re-entrant lock so the store stays
    consistent when sync endpoints run in the thread pool alongside the
    cleanup job.
    """

    def __init__(
        self,
        ttl: timedelta | None = None,
        id_length: int | None = None,
        csrf_length: int | None = None,
        clock: Clock = utc_now,
    ):
        self.ttl = ttl or timedelta(days=settings.SESSION_TTL_DAYS)
        self.id_length = id_length or settings.SESSION_ID_LENGTH
        self.csrf_length = csrf_length or settings.CSRF_TOKEN_LENGTH
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create_session(self, user: User) -> str:
        """Create a session for `user` and return its id."""
        now = self._clock()
        session_id = generate_token(self.id_length)
        session = Session(
            id=session_id,
            user_id=user.id,
            user=user,
            expires_at=now + self.ttl,
            created_at=now,
        )

        with self._lock:
            self._sessions[session_id] = session

        logger.info("Session created", user_id=user.id, expires_at=session.expires_at.isoformat())
        return session_id

    def get_session(self, session_id: str) -> Session | None:
        """Return the live session for `session_id`, dropping it if expired."""
        if not session_id:
            return None

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            if session.is_expired(self._clock()):
                del self._sessions[session_id]
                logger.debug("Expired session removed on access", user_id=session.user_id)
                return None

            return session

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)

        if session:
            logger.info("Session deleted", user_id=session.user_id)

    def refresh_session(self, session_id: str) -> bool:
        """Push the expiry of an existing session out by the full TTL."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.expires_at = self._clock() + self.ttl
            return True

    def generate_csrf_token(self) -> str:
        return generate_token(self.csrf_length)

    def store_csrf_token(self, session_id: str, token: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.csrf_token = token

    def validate_csrf_token(self, session_id: str, token: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.csrf_token is None or token is None:
                return False
            return hmac.compare_digest(session.csrf_token.encode(), token.encode())

    def update_user(self, user: User) -> int:
        """Replace the user snapshot held by every session of `user`."""
        updated = 0
        with self._lock:
            for session in self._sessions.values():
                if session.user_id == user.id:
                    session.user = user
                    updated += 1
        return updated

    def cleanup_expired_sessions(self) -> int:
        """Delete every expired session and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for session_id in expired:
                del self._sessions[session_id]

        if expired:
            logger.info("Expired sessions cleaned up", count=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
