# models/api/auth_response.py
"""
Auth API response models for the sign-in session and email verification endpoints.
"""

from pydantic import BaseModel, Field

from styleguides_site.models.domain.user_domain import Provider, Role, User


class SessionUser(BaseModel):
    """Public subset of the signed-in user."""

    id: str
    email: str
    name: str
    role: Role
    provider: Provider
    email_verified: bool = False

    @classmethod
    def from_user(cls, user: User) -> "SessionUser":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            provider=user.provider,
            email_verified=user.email_verified,
        )


class SessionResponse(BaseModel):
    authenticated: bool = Field(..., description="Whether a valid session cookie was sent")
    user: SessionUser | None = None
    csrf_token: str | None = Field(default=None, description="Token for state-changing form posts")


class VerificationRequestResponse(BaseModel):
    sent: bool
    message: str
    verification_url: str | None = Field(
        default=None, description="Only returned in debug mode, where no mail is delivered"
    )


class ProvidersResponse(BaseModel):
    providers: list[str] = Field(default_factory=list, description="Configured OAuth providers")
