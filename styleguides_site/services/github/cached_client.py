"""
Cached contributors listing with opt-out exclusions applied.

Only successful GitHub responses are cached. An outage serves the owner-only
fallback uncached; an exhausted rate limit propagates to the caller.
"""

import hashlib

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.github_domain import (
    ContributorDisplayData,
    ContributorWithFirstCommit,
)
from styleguides_site.services.cache.file_cache import HOUR_MS, FileCache, get_or_set
from styleguides_site.services.github.client import (
    GitHubApiClient,
    GitHubApiError,
    GitHubRateLimitError,
)
from styleguides_site.services.github.opt_out import (
    filter_excluded_contributors,
    get_all_opt_out_exclusions,
)

logger = get_logger(__name__)


class CachedGitHubClient:
    def __init__(self, client: GitHubApiClient, file_cache: FileCache | None = None):
        self.client = client
        self.file_cache = file_cache or FileCache()

    @property
    def _key_prefix(self) -> str:
        return f"github-{self.client.owner}-{self.client.repo}"

    async def get_cached_contributors(self) -> list[ContributorWithFirstCommit]:
        """Contributors from cache or GitHub. Raises GitHubApiError; failures are not cached."""

        async def fetch() -> list[dict]:
            contributors = await self.client.get_contributors()
            return [c.model_dump() for c in contributors]

        data = await get_or_set(
            f"{self._key_prefix}-contributors",
            fetch,
            expires_in=settings.CONTRIBUTORS_CACHE_HOURS * HOUR_MS,
            file_cache=self.file_cache,
        )
        return [ContributorWithFirstCommit.model_validate(item) for item in data]

    async def get_cached_contributors_with_fallback(self) -> list[ContributorWithFirstCommit]:
        try:
            return await self.get_cached_contributors()
        except GitHubRateLimitError:
            raise
        except GitHubApiError as e:
            logger.warning(
                "Failed to fetch contributors from GitHub, using fallback",
                status=e.status,
                error=str(e),
            )
            return self.client.fallback_contributors()

    async def get_cached_exclusions(
        self, exclusions_path: str | None, search_issues: bool, scan_repo_files: bool
    ) -> set[str]:
        async def fetch() -> list[str]:
            exclusions = await get_all_opt_out_exclusions(
                self.client,
                exclusions_path,
                search_issues=search_issues,
                scan_repo_files=scan_repo_files,
            )
            return sorted(exclusions)

        resolved_path = str(exclusions_path or settings.CONTRIBUTORS_EXCLUSIONS_FILE)
        path_digest = hashlib.sha256(resolved_path.encode("utf-8")).hexdigest()[:12]
        key = f"{self._key_prefix}-exclusions-{int(search_issues)}{int(scan_repo_files)}-{path_digest}"
        data = await get_or_set(
            key, fetch, expires_in=settings.EXCLUSIONS_CACHE_HOURS * HOUR_MS, file_cache=self.file_cache
        )
        return set(data)

    async def get_cached_contributors_for_display_with_exclusions(
        self,
        exclusions_path: str | None = None,
        search_issues: bool = True,
        scan_repo_files: bool = True,
    ) -> list[ContributorDisplayData]:
        """
        Display data for visible contributors.

        Raises:
            GitHubRateLimitError: rate limit exhausted and no cached contributors
        """
        contributors = await self.get_cached_contributors_with_fallback()
        exclusions = await self.get_cached_exclusions(exclusions_path, search_issues, scan_repo_files)
        visible = filter_excluded_contributors(contributors, exclusions)

        logger.info(
            "Contributors prepared for display",
            total=len(contributors),
            excluded=len(contributors) - len(visible),
        )
        return self.client.transform_to_display_data(visible)


def create_cached_github_client(
    owner: str | None = None, repo: str | None = None, file_cache: FileCache | None = None
) -> CachedGitHubClient:
    return CachedGitHubClient(GitHubApiClient(owner=owner, repo=repo), file_cache=file_cache)
