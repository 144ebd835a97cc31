from datetime import datetime
from typing import Literal, get_args

from pydantic import BaseModel

Role = Literal["contributor", "editor", "admin"]
Provider = Literal["google", "github", "email"]

OAUTH_PROVIDERS: tuple[str, ...] = ("google", "github")
DEFAULT_USER_ROLE: Role = "contributor"


class User(BaseModel):
    """Site account, created on first OAuth sign-in."""

    id: str
    email: str
    name: str
    provider: Provider
    role: Role = DEFAULT_USER_ROLE
    blocked: bool = False
    email_verified: bool = False
    created_at: datetime
    updated_at: datetime

    def is_oauth_user(self) -> bool:
        return self.provider in OAUTH_PROVIDERS


class OAuthProfile(BaseModel):
    """Minimal profile data mapped from an OAuth provider."""

    provider_user_id: str
    provider: Provider
    email: str
    name: str
    image: str | None = None
    email_verified: bool = True


def is_valid_role(role: str) -> bool:
    return role in get_args(Role)


def is_valid_provider(provider: str) -> bool:
    return provider in get_args(Provider)
