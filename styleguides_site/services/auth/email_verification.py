"""
Email verification flow for accounts that did not sign in through an OAuth provider.

Handles verification token issuance with a per-email cooldown, validation with an
attempt cap, and the verification email content.
"""

import html
import math
import threading
from datetime import timedelta

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.session_domain import (
    RateLimitRecord,
    VerificationEmail,
    VerificationResult,
    VerificationStatus,
    VerificationToken,
)
from styleguides_site.models.domain.user_domain import User
from styleguides_site.services.auth.session_store import Clock, generate_token, utc_now

logger = get_logger(__name__)

ERROR_INVALID_TOKEN = "Invalid verification token"
ERROR_EXPIRED = "Verification token has expired"
ERROR_TOO_MANY_ATTEMPTS = "Too many verification attempts"
ERROR_TOKEN_NOT_FOUND = "Token not found"


class VerificationCooldownError(Exception):
    """Raised when a verification email was requested too recently."""

    def __init__(self, wait_minutes: int):
        super().__init__(
            f"Please wait {wait_minutes} minutes before requesting a new verification email"
        )
        self.wait_minutes = wait_minutes


class EmailVerificationStore:
    """In-memory verification tokens (keyed by token) and rate-limit records (keyed by email)."""

    def __init__(
        self,
        token_length: int | None = None,
        ttl: timedelta | None = None,
        max_attempts: int | None = None,
        cooldown: timedelta | None = None,
        record_idle: timedelta | None = None,
        clock: Clock = utc_now,
    ):
        self.token_length = token_length or settings.VERIFICATION_TOKEN_LENGTH
        self.ttl = ttl or timedelta(hours=settings.VERIFICATION_TTL_HOURS)
        self.max_attempts = max_attempts or settings.VERIFICATION_MAX_ATTEMPTS
        self.cooldown = cooldown or timedelta(minutes=settings.VERIFICATION_COOLDOWN_MINUTES)
        self.record_idle = record_idle or timedelta(hours=settings.VERIFICATION_RECORD_IDLE_HOURS)
        self._clock = clock
        self._tokens: dict[str, VerificationToken] = {}
        self._attempts: dict[str, RateLimitRecord] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._tokens)

    def _cooldown_remaining_minutes(self, record: RateLimitRecord | None) -> float:
        if record is None:
            return 0.0
        elapsed = self._clock() - record.last_attempt
        remaining = (self.cooldown - elapsed).total_seconds() / 60
        return max(0.0, remaining)

    def generate_verification_token(self, user: User) -> str:
        """
        Issue a new verification token for `user`.

        Any earlier token for the same user id is invalidated.

        Raises:
            VerificationCooldownError: if the last request for this email was within the cooldown
        """
        with self._lock:
            record = self._attempts.get(user.email)
            remaining = self._cooldown_remaining_minutes(record)
            if remaining > 0:
                wait_minutes = math.ceil(remaining)
                logger.warning(
                    "Verification request within cooldown",
                    user_id=user.id,
                    wait_minutes=wait_minutes,
                )
                raise VerificationCooldownError(wait_minutes)

            for token, existing in list(self._tokens.items()):
                if existing.user_id == user.id:
                    del self._tokens[token]

            now = self._clock()
            token = generate_token(self.token_length)
            self._tokens[token] = VerificationToken(
                token=token,
                user_id=user.id,
                email=user.email,
                expires_at=now + self.ttl,
                attempts=0,
                created_at=now,
            )
            self._attempts[user.email] = RateLimitRecord(
                count=(record.count if record else 0) + 1,
                last_attempt=now,
            )

        logger.info("Verification token issued", user_id=user.id)
        return token

    def validate_verification_token(self, token: str) -> VerificationResult:
        """
        Check a verification token.

        NOTE: every call counts as an attempt, including calls made only to
        check validity. After `max_attempts` successful checks the next call
        invalidates the token. Callers that only need status should use
        `get_verification_status`.
        """
        with self._lock:
            verification = self._tokens.get(token)
            if verification is None:
                return VerificationResult(valid=False, error=ERROR_INVALID_TOKEN)

            if verification.is_expired(self._clock()):
                del self._tokens[token]
                return VerificationResult(valid=False, error=ERROR_EXPIRED)

            if verification.attempts >= self.max_attempts:
                del self._tokens[token]
                logger.warning("Verification token attempt cap reached", user_id=verification.user_id)
                return VerificationResult(valid=False, error=ERROR_TOO_MANY_ATTEMPTS)

            verification.attempts += 1
            return VerificationResult(valid=True, user_id=verification.user_id)

    def mark_email_as_verified(self, token: str) -> VerificationResult:
        """Consume `token`: validate it, delete it and clear the email's rate-limit record."""
        with self._lock:
            validation = self.validate_verification_token(token)
            if not validation.valid:
                return validation

            verification = self._tokens.pop(token, None)
            if verification is None:
                return VerificationResult(valid=False, error=ERROR_TOKEN_NOT_FOUND)

            self._attempts.pop(verification.email, None)

        logger.info("Email verified", user_id=verification.user_id)
        return VerificationResult(valid=True, user_id=verification.user_id)

    def cleanup_expired_tokens(self) -> int:
        """Drop expired tokens and idle rate-limit records; returns the token count removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, v in self._tokens.items() if v.is_expired(now)]
            for token in expired:
                del self._tokens[token]

            stale = [
                email
                for email, record in self._attempts.items()
                if now - record.last_attempt > self.record_idle
            ]
            for email in stale:
                del self._attempts[email]

        if expired or stale:
            logger.info(
                "Verification state cleaned up",
                tokens_removed=len(expired),
                rate_limit_records_removed=len(stale),
            )
        return len(expired)

    def get_verification_status(self, email: str) -> VerificationStatus:
        with self._lock:
            record = self._attempts.get(email)
            now = self._clock()
            has_token = any(
                v.email == email and not v.is_expired(now) for v in self._tokens.values()
            )
            remaining = self._cooldown_remaining_minutes(record)

        return VerificationStatus(
            has_token=has_token,
            attempts=record.count if record else 0,
            cooldown_remaining=math.ceil(remaining),
        )

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()
            self._attempts.clear()


def needs_email_verification(user: User) -> bool:
    """OAuth providers verify addresses themselves; everyone else must confirm."""
    if user.is_oauth_user():
        return False
    return not user.email_verified


def generate_verification_email(user_name: str, verification_url: str) -> VerificationEmail:
    """Build the (German) verification email."""
    subject = "Bestätigen Sie Ihre E-Mail-Adresse - KI Style Guides"
    safe_name = html.escape(user_name)
    safe_url = html.escape(verification_url, quote=True)
    validity = settings.VERIFICATION_TTL_HOURS

    html_body = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background-color: #1e40af; color: white; padding: 20px; text-align: center; }}
    .content {{ padding: 30px 20px; background-color: #f8f9fa; }}
    .button {{ display: inline-block; padding: 12px 30px; background-color: #059669; color: white; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
    .footer {{ text-align: center; padding: 20px; color: #666; font-size: 14px; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header"><h1>KI Style Guides</h1></div>
    <div class="content">
      <h2>Hallo {safe_name},</h2>
      <p>Willkommen bei KI Style Guides! Bitte bestätigen Sie Ihre E-Mail-Adresse, um fortzufahren.</p>
      <p style="text-align: center;"><a href="{safe_url}" class="button">E-Mail-Adresse bestätigen</a></p>
      <p>Oder kopieren Sie diesen Link in Ihren Browser:</p>
      <p style="word-break: break-all; color: #059669;">{safe_url}</p>
      <p><strong>Hinweis:</strong> Dieser Link ist {validity} Stunden gültig.</p>
      <p>Falls Sie sich nicht registriert haben, können Sie diese E-Mail ignorieren.</p>
    </div>
    <div class="footer"><p>© KI Style Guides. Alle Rechte vorbehalten.</p></div>
  </div>
</body>
</html>"""

    text = (
        f"Hallo {user_name},\n\n"
        "Willkommen bei KI Style Guides! Bitte bestätigen Sie Ihre E-Mail-Adresse, um fortzufahren.\n\n"
        f"Bestätigungslink: {verification_url}\n\n"
        f"Hinweis: Dieser Link ist {validity} Stunden gültig.\n\n"
        "Falls Sie sich nicht registriert haben, können Sie diese E-Mail ignorieren.\n\n"
        "© KI Style Guides. Alle Rechte vorbehalten."
    )

    return VerificationEmail(subject=subject, html=html_body, text=text)
