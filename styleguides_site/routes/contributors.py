"""
Public contributors listing with opt-outs removed.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.api.contributors_response import ContributorsResponse
from styleguides_site.routes.dependencies import get_contributors_client
from styleguides_site.services.github.cached_client import CachedGitHubClient
from styleguides_site.services.github.client import GitHubRateLimitError

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["contributors"])


@router.get("/contributors", response_model=ContributorsResponse)
async def list_contributors(
    limit: int | None = Query(None, ge=1, le=500),
    client: CachedGitHubClient = Depends(get_contributors_client),
):
    """
    Contributors ordered owner first, then by first contribution.

    A GitHub outage serves the owner-only fallback; it is never cached.

    Raises:
        503: GitHub rate limit exhausted and nothing cached
    """
    try:
        contributors = await client.get_cached_contributors_for_display_with_exclusions(
            settings.CONTRIBUTORS_EXCLUSIONS_FILE
        )
    except GitHubRateLimitError as e:
        logger.error("Contributors unavailable", reset_at=e.reset_at.isoformat(), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contributors are temporarily unavailable",
        ) from None

    return ContributorsResponse(
        contributors=contributors[:limit] if limit else contributors,
        total=len(contributors),
        repository=f"{client.client.owner}/{client.client.repo}",
    )
