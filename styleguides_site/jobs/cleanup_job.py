"""
Session and verification cleanup job.
Sweeps expired sessions, expired verification tokens and idle rate-limit
records out of the in-memory stores on a fixed interval.
"""

import asyncio
from datetime import datetime

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.services.auth.email_verification import EmailVerificationStore
from styleguides_site.services.auth.session_store import Clock, SessionStore, utc_now

logger = get_logger(__name__)

ERROR_RETRY_SECONDS = 300


class SessionCleanupJob:
    """Periodic sweep over the stores held by the running application."""

    def __init__(
        self,
        session_store: SessionStore,
        verification_store: EmailVerificationStore,
        interval_minutes: int | None = None,
        clock: Clock = utc_now,
    ):
        self.session_store = session_store
        self.verification_store = verification_store
        self.interval_minutes = interval_minutes or settings.CLEANUP_INTERVAL_MINUTES
        self.clock = clock
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_run_metrics: dict | None = None

    def run_once(self) -> dict:
        """
        Run a single sweep.

        Returns:
            Dict: counts of removed sessions and verification tokens
        """
        if self.is_running:
            logger.warning("Cleanup job already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        try:
            self.is_running = True
            started = self.clock()

            sessions_removed = self.session_store.cleanup_expired_sessions()
            tokens_removed = self.verification_store.cleanup_expired_tokens()

            self.last_run_time = self.clock()
            self.last_run_metrics = {
                "job_run": "session_cleanup",
                "sessions_removed": sessions_removed,
                "tokens_removed": tokens_removed,
                "sessions_remaining": len(self.session_store),
                "tokens_remaining": len(self.verification_store),
                "duration_seconds": round((self.last_run_time - started).total_seconds(), 3),
            }
            logger.info("Cleanup job completed", **self.last_run_metrics)
            return self.last_run_metrics

        finally:
            self.is_running = False

    def get_job_status(self) -> dict:
        return {
            "job_name": "session_cleanup",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_minutes": self.interval_minutes,
            "last_run_metrics": self.last_run_metrics,
        }

    def health_check(self) -> dict:
        """Overdue when the last sweep is older than two intervals."""
        is_overdue = False
        if self.last_run_time is not None:
            elapsed_minutes = (self.clock() - self.last_run_time).total_seconds() / 60
            is_overdue = elapsed_minutes > self.interval_minutes * 2

        return {
            "healthy": not is_overdue,
            "service": "session_cleanup_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
        }


def run_cleanup_once(
    session_store: SessionStore, verification_store: EmailVerificationStore
) -> dict:
    """Run one sweep without a scheduler."""
    return SessionCleanupJob(session_store, verification_store).run_once()


async def start_cleanup_scheduler(job: SessionCleanupJob) -> None:
    """
    Run `job` every `job.interval_minutes` until cancelled.

    Started from the application lifespan, since the stores live in that process.
    """
    logger.info("Starting cleanup job scheduler", interval_minutes=job.interval_minutes)

    while True:
        try:
            job.run_once()
            await asyncio.sleep(job.interval_minutes * 60)
        except asyncio.CancelledError:
            logger.info("Cleanup job scheduler stopped")
            raise
        except Exception as e:
            logger.error(
                "Error in cleanup job scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(ERROR_RETRY_SECONDS)
