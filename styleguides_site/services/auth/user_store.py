"""
In-memory user registry.

Users are keyed by "<provider>-<provider user id>" so repeat sign-ins with the
same provider account map to the same site user.
"""

import threading

from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.user_domain import OAuthProfile, Role, User, is_valid_role
from styleguides_site.services.auth.session_store import Clock, utc_now

logger = get_logger(__name__)


class UserStore:
    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._users: dict[str, User] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._users)

    def get(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def add(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = user
        return user

    def upsert_oauth_user(self, profile: OAuthProfile) -> User:
        """Create the user on first sign-in, refresh name/email afterwards."""
        user_id = f"{profile.provider}-{profile.provider_user_id}"
        now = self._clock()

        with self._lock:
            existing = self._users.get(user_id)
            if existing:
                user = existing.model_copy(
                    update={
                        "email": profile.email,
                        "name": profile.name,
                        "email_verified": existing.email_verified or profile.email_verified,
                        "updated_at": now,
                    }
                )
            else:
                user = User(
                    id=user_id,
                    email=profile.email,
                    name=profile.name,
                    provider=profile.provider,
                    email_verified=profile.email_verified,
                    created_at=now,
                    updated_at=now,
                )
                logger.info("User created", user_id=user_id, provider=profile.provider)
            self._users[user_id] = user

        return user

    def _update(self, user_id: str, **changes) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            user = user.model_copy(update={**changes, "updated_at": self._clock()})
            self._users[user_id] = user
            return user

    def mark_email_verified(self, user_id: str) -> User | None:
        return self._update(user_id, email_verified=True)

    def set_role(self, user_id: str, role: Role) -> User | None:
        if not is_valid_role(role):
            raise ValueError(f"Unknown role '{role}'")
        logger.info("User role changed", user_id=user_id, role=role)
        return self._update(user_id, role=role)

    def set_blocked(self, user_id: str, blocked: bool) -> User | None:
        logger.info("User block status changed", user_id=user_id, blocked=blocked)
        return self._update(user_id, blocked=blocked)

    def clear(self) -> None:
        with self._lock:
            self._users.clear()
