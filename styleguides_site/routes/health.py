"""
Health check endpoints.
"""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request):
    """Liveness plus the size of the in-memory stores and cleanup job state."""
    state = request.app.state
    cleanup_job = getattr(state, "cleanup_job", None)

    return {
        "status": "ok",
        "service": "styleguides-site",
        "stores": {
            "sessions": len(state.session_store),
            "verification_tokens": len(state.verification_store),
            "users": len(state.user_store),
        },
        "cleanup_job": cleanup_job.health_check() if cleanup_job else None,
    }
