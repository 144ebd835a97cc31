"""
Application entrypoint: store lifecycle, cleanup scheduling and routers.
"""

import asyncio
import contextlib
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import (
    get_logger,
    log_request,
    setup_logging,
)
from styleguides_site.jobs.cleanup_job import SessionCleanupJob, start_cleanup_scheduler
from styleguides_site.middleware import AuthGuardMiddleware, RequestContextMiddleware
from styleguides_site.routes import auth, contributors, health
from styleguides_site.services.auth.email_verification import EmailVerificationStore
from styleguides_site.services.auth.oauth_providers import OAuthUserResolver, get_providers
from styleguides_site.services.auth.session_store import SessionStore
from styleguides_site.services.auth.user_store import UserStore
from styleguides_site.services.github.cached_client import create_cached_github_client

# Setup logging before creating the app
setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the per-process stores and start the cleanup scheduler."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    app.state.session_store = SessionStore()
    app.state.verification_store = EmailVerificationStore()
    app.state.user_store = UserStore()
    app.state.oauth_resolver = OAuthUserResolver()
    app.state.contributors_client = create_cached_github_client()
    app.state.cleanup_job = SessionCleanupJob(app.state.session_store, app.state.verification_store)

    configured = [p.name for p in get_providers()]
    logger.info("OAuth providers available", providers=configured)

    cleanup_task = None
    if settings.CLEANUP_ENABLED:
        cleanup_task = asyncio.create_task(start_cleanup_scheduler(app.state.cleanup_job))

    yield

    logger.info("Application shutting down")

    if cleanup_task is not None:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task

    try:
        await app.state.contributors_client.client.close()
    except Exception as e:
        logger.error("Error closing GitHub client", error=str(e))


app = FastAPI(
    title="KI Style Guides",
    description="Sign-in, email verification and contributors API for the style guides site",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(AuthGuardMiddleware)
app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(contributors.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    user = getattr(request.state, "user", None)
    log_request(
        request.method,
        request.url.path,
        response.status_code,
        round(process_time, 2),
        user_id=user.id if user else None,
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
