"""
GitHub REST API client for the contributors listing and the opt-out scan.
Handles retry with exponential backoff, rate-limit detection, contributor
enrichment with first-commit dates, and display ordering.
"""

import asyncio
import base64
from datetime import UTC, datetime

import httpx

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.github_domain import (
    Contributor,
    ContributorDisplayData,
    ContributorWithFirstCommit,
    Issue,
    RateLimitInfo,
)

logger = get_logger(__name__)

GITHUB_ACCEPT_HEADER = "application/vnd.github.v3+json"


class GitHubApiError(Exception):
    """Custom exception for GitHub API errors."""

    def __init__(self, message: str, status: int, documentation_url: str | None = None):
        super().__init__(message)
        self.status = status
        self.documentation_url = documentation_url


class GitHubRateLimitError(GitHubApiError):
    """The API rate limit is exhausted; `reset_at` says when it refills."""

    def __init__(self, reset_at: datetime, documentation_url: str | None = None):
        super().__init__(
            f"Rate limit exceeded. Resets at {reset_at.isoformat()}", 403, documentation_url
        )
        self.reset_at = reset_at


class GitHubApiClient:
    """
    Client for one GitHub repository.

    Requests are retried with delay `retry_delay * 2**attempt` on 5xx responses
    and network failures, up to `max_retries` retries. 404 is never retried.
    """

    def __init__(
        self,
        owner: str | None = None,
        repo: str | None = None,
        token: str | None = None,
        base_url: str | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.owner = owner or settings.GITHUB_OWNER
        self.repo = repo or settings.GITHUB_REPO
        self.base_url = (base_url or settings.GITHUB_API_BASE_URL).rstrip("/")
        self.max_retries = settings.GITHUB_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.GITHUB_RETRY_DELAY if retry_delay is None else retry_delay
        self._token = token if token is not None else settings.GITHUB_TOKEN
        self._client = self._create_client(transport)

    def _create_client(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        headers = {
            "Accept": GITHUB_ACCEPT_HEADER,
            "User-Agent": settings.GITHUB_USER_AGENT,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(settings.GITHUB_REQUEST_TIMEOUT),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _delay(self, attempt: int) -> None:
        await asyncio.sleep(self.retry_delay * (2**attempt))

    async def make_request(self, url: str, params: dict | None = None) -> httpx.Response:
        """GET `url` with the retry policy; raises GitHubApiError on failure."""
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.get(url, params=params)
            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    logger.debug(
                        "GitHub request error, retrying", url=url, attempt=attempt, error=str(e)
                    )
                    await self._delay(attempt)
                    continue
                raise GitHubApiError(f"Network error: {e}", 0) from e

            if response.is_success:
                return response

            if response.status_code == 403:
                rate_limit = await self.get_rate_limit_info()
                if rate_limit and rate_limit.remaining == 0:
                    reset_at = datetime.fromtimestamp(rate_limit.reset, tz=UTC)
                    logger.warning("GitHub rate limit exhausted", reset_at=reset_at.isoformat())
                    raise GitHubRateLimitError(reset_at)

            if response.status_code >= 500 and attempt < self.max_retries:
                logger.debug(
                    "GitHub server error, retrying",
                    url=url,
                    attempt=attempt,
                    status_code=response.status_code,
                )
                await self._delay(attempt)
                continue

            if response.status_code == 404:
                raise GitHubApiError("Repository not found or not accessible", 404)

            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            raise GitHubApiError(
                error_data.get("message") or f"HTTP {response.status_code}: {response.reason_phrase}",
                response.status_code,
                error_data.get("documentation_url"),
            )

        raise RuntimeError("GitHub retry loop exhausted")

    async def get_rate_limit_info(self) -> RateLimitInfo | None:
        """Current core rate limit, or None if it cannot be read."""
        try:
            response = await self._client.get("/rate_limit")
            if response.is_success:
                return RateLimitInfo.model_validate(response.json()["rate"])
            return None
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.debug("Could not read GitHub rate limit", error=str(e))
            return None

    async def is_rate_limited(self) -> bool:
        info = await self.get_rate_limit_info()
        return info.remaining == 0 if info else False

    # ------------------------------------------------------------------
    # Contributors
    # ------------------------------------------------------------------

    async def fetch_contributors(self) -> list[ContributorWithFirstCommit]:
        response = await self.make_request(f"{self.repo_path}/contributors")
        contributors = [Contributor.model_validate(item) for item in response.json()]
        enriched = await self.enrich_with_first_commit_dates(contributors)
        return self.sort_contributors_by_first_contribution(enriched)

    async def enrich_with_first_commit_dates(
        self, contributors: list[Contributor]
    ) -> list[ContributorWithFirstCommit]:
        enriched = []
        for contributor in contributors:
            first_commit_date = await self.get_first_commit_date(contributor.login)
            enriched.append(
                ContributorWithFirstCommit(
                    **contributor.model_dump(), first_commit_date=first_commit_date
                )
            )
        return enriched

    async def get_first_commit_date(self, author: str) -> str | None:
        """
        Best-effort date of the author's earliest commit.

        The commits endpoint lists newest first, so the newest commit's date is
        used as an `until` bound and the last entry of that page is taken.
        """
        url = f"{self.repo_path}/commits"
        try:
            response = await self.make_request(
                url, params={"author": author, "per_page": 1, "page": 1}
            )
            commits = response.json()
            if not commits:
                return None

            newest_date = commits[0]["commit"]["author"]["date"]
            try:
                earlier = await self.make_request(
                    url, params={"author": author, "per_page": 1, "until": newest_date}
                )
                earlier_commits = earlier.json()
                if earlier_commits:
                    return earlier_commits[-1]["commit"]["author"]["date"]
            except GitHubApiError:
                pass

            return newest_date

        except (GitHubApiError, ValueError, KeyError, IndexError) as e:
            logger.debug("First commit date unavailable", author=author, error=str(e))
            return None

    def sort_contributors_by_first_contribution(
        self, contributors: list[ContributorWithFirstCommit]
    ) -> list[ContributorWithFirstCommit]:
        """Owner first, then by first commit date (undated last), ties by id."""

        def sort_key(contributor: ContributorWithFirstCommit):
            is_not_owner = contributor.login != self.owner
            date = _parse_github_date(contributor.first_commit_date)
            return (
                is_not_owner,
                date is None,
                date or datetime.min.replace(tzinfo=UTC),
                contributor.id,
            )

        return sorted(contributors, key=sort_key)

    async def get_contributors(self) -> list[ContributorWithFirstCommit]:
        """fetch_contributors with user-facing error messages."""
        try:
            return await self.fetch_contributors()
        except GitHubRateLimitError:
            raise
        except GitHubApiError as e:
            if e.status == 403:
                raise GitHubApiError(
                    "Access denied. The repository may be private or rate limit exceeded.",
                    403,
                    e.documentation_url,
                ) from e
            if e.status == 404:
                raise GitHubApiError(
                    "Repository not found. Please check the repository name and access permissions.",
                    404,
                    e.documentation_url,
                ) from e
            if e.status >= 500:
                raise GitHubApiError(
                    "GitHub API is currently unavailable. Please try again later.",
                    e.status,
                    e.documentation_url,
                ) from e
            raise

    def fallback_contributors(self) -> list[ContributorWithFirstCommit]:
        return [
            ContributorWithFirstCommit(
                id=1,
                login=self.owner,
                avatar_url=f"https://github.com/{self.owner}.png",
                html_url=f"https://github.com/{self.owner}",
                contributions=1,
                type="User",
            )
        ]

    async def get_contributors_with_fallback(self) -> list[ContributorWithFirstCommit]:
        try:
            return await self.get_contributors()
        except GitHubApiError as e:
            logger.warning(
                "Failed to fetch contributors from GitHub, using fallback",
                status=e.status,
                error=str(e),
            )
            return self.fallback_contributors()

    def transform_to_display_data(
        self, contributors: list[ContributorWithFirstCommit]
    ) -> list[ContributorDisplayData]:
        return [
            ContributorDisplayData(
                login=c.login,
                name=c.login,
                avatar_url=c.avatar_url,
                html_url=c.html_url,
                contributions=c.contributions,
                first_commit_date=c.first_commit_date,
                is_owner=c.login == self.owner,
            )
            for c in contributors
        ]

    async def get_contributors_for_display(self) -> list[ContributorDisplayData]:
        contributors = await self.get_contributors_with_fallback()
        return self.transform_to_display_data(contributors)

    # ------------------------------------------------------------------
    # Issues and repository files (opt-out scan)
    # ------------------------------------------------------------------

    async def search_issues(self, query: str, per_page: int = 100) -> list[Issue]:
        """Search issues in this repository; `query` is appended to the repo qualifier."""
        response = await self.make_request(
            "/search/issues",
            params={"q": f"repo:{self.owner}/{self.repo} is:issue {query}", "per_page": per_page},
        )
        return [Issue.model_validate(item) for item in response.json().get("items", [])]

    async def get_file_content(self, path: str) -> str:
        """Decoded text of a repository file. Raises GitHubApiError (404 if absent)."""
        response = await self.make_request(f"{self.repo_path}/contents/{path}")
        data = response.json()
        if isinstance(data, list) or "content" not in data:
            raise GitHubApiError(f"{path} is not a file", 404)

        if data.get("encoding", "base64") != "base64":
            return data["content"]
        return base64.b64decode(data["content"]).decode("utf-8")


def _parse_github_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
