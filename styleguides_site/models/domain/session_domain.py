"""
Domain models for sessions and email verification state.
"""

from datetime import datetime

from pydantic import BaseModel

from styleguides_site.models.domain.user_domain import User


class Session(BaseModel):
    """Server-side record binding a browser cookie to a user."""

    id: str
    user_id: str
    user: User
    expires_at: datetime
    created_at: datetime
    csrf_token: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


class VerificationToken(BaseModel):
    """Pending email verification request."""

    token: str
    user_id: str
    email: str
    expires_at: datetime
    attempts: int = 0
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


class RateLimitRecord(BaseModel):
    """Verification request cadence for one email address."""

    count: int
    last_attempt: datetime


class VerificationResult(BaseModel):
    """Outcome of validating or consuming a verification token."""

    valid: bool
    user_id: str | None = None
    error: str | None = None


class VerificationStatus(BaseModel):
    """Diagnostic view of an email's verification state."""

    has_token: bool
    attempts: int
    cooldown_remaining: int


class VerificationEmail(BaseModel):
    subject: str
    html: str
    text: str
