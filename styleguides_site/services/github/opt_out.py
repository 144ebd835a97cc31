"""
Contributor opt-out aggregation.

Builds the set of GitHub usernames that must be hidden from the public
contributors listing. Three independent sources are merged:

- a local exclusions file (one username per line, `#` comments)
- issues carrying an opt-out label, or matching an opt-out keyword
- conventional opt-out files in the repository, plus an opt-out section in README

All usernames are lower-cased. A failing or slow source contributes nothing;
it never aborts the other sources.
"""

import asyncio
import re
from collections.abc import Awaitable, Callable, Iterable, Sequence
from pathlib import Path
from typing import Protocol, TypeVar

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.github_domain import Issue
from styleguides_site.services.github.client import GitHubApiClient, GitHubApiError

logger = get_logger(__name__)

T = TypeVar("T")
C = TypeVar("C", bound="HasLogin")

OPT_OUT_VERBS = ("opt-out", "opt out", "opt me out", "remove", "exclude", "hide", "delete")
README_SECTION_PHRASES = (
    "contributor opt-out",
    "contributors opt-out",
    "opted out contributors",
    "excluded contributors",
)

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_LIST_MARKER_RE = re.compile(r"^[-*@\s]+")
_USERNAME_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,38})$", re.IGNORECASE)


class HasLogin(Protocol):
    login: str


OptOutIssuePredicate = Callable[[Issue, str], bool]


def is_opt_out_request(issue: Issue, keyword: str) -> bool:
    """
    Decide whether a keyword search hit is really an opt-out request.

    Accepted when the title carries the keyword and mentions contributors,
    or when the body mentions both an opt-out verb and contributors.
    """
    keyword = keyword.lower()
    title = issue.title.lower()
    body = (issue.body or "").lower()

    if keyword in title and "contributor" in title:
        return True

    mentions_verb = any(verb in body for verb in OPT_OUT_VERBS)
    return mentions_verb and "contributor" in body


def _normalize_username(raw: str) -> str | None:
    candidate = _LIST_MARKER_RE.sub("", raw.strip())
    if not candidate:
        return None
    candidate = candidate.split()[0].strip("`,;")
    candidate = candidate.lstrip("@")
    if not _USERNAME_RE.match(candidate):
        return None
    return candidate.lower()


def parse_opt_out_lines(text: str, require_list_marker: bool = False) -> list[str]:
    """
    Extract usernames from `username`, `@username`, `- username`, `* username` lines.

    Blank lines and `#` comments are skipped. With `require_list_marker`, bare
    lines are ignored too (used inside README prose).
    """
    usernames: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if require_list_marker and stripped[0] not in "-*@":
            continue
        username = _normalize_username(stripped)
        if username and username not in usernames:
            usernames.append(username)
    return usernames


def parse_readme_opt_out_section(text: str) -> list[str]:
    """
    Usernames listed under an opt-out heading in a README.

    The section closes at the next heading of the same or a higher level.
    """
    section_lines: list[str] = []
    section_level: int | None = None

    for line in text.splitlines():
        heading = _HEADING_RE.match(line.strip())
        if heading:
            level = len(heading.group(1))
            if section_level is not None:
                if level <= section_level:
                    break
                continue
            title = heading.group(2).lower()
            if any(phrase in title for phrase in README_SECTION_PHRASES):
                section_level = level
            continue

        if section_level is not None:
            section_lines.append(line)

    return parse_opt_out_lines("\n".join(section_lines), require_list_marker=True)


def read_exclusions_file(path: str | Path) -> list[str]:
    """Lower-cased, de-duplicated usernames from a local exclusions file."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No exclusions file", path=str(path))
        return []
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read exclusions file", path=str(path), error=str(e))
        return []

    usernames: list[str] = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        username = stripped.lower()
        if username not in usernames:
            usernames.append(username)
    return usernames


async def _gather_bounded(
    tasks: Sequence[tuple[str, Callable[[], Awaitable[T]]]],
    max_concurrency: int | None = None,
    timeout: float | None = None,
) -> list[T | None]:
    """
    Run task factories concurrently with a concurrency cap and a per-task timeout.

    A task that times out or raises yields None in its slot.
    """
    semaphore = asyncio.Semaphore(max_concurrency or settings.OPT_OUT_MAX_CONCURRENCY)
    timeout = timeout or settings.OPT_OUT_TASK_TIMEOUT

    async def run(name: str, factory: Callable[[], Awaitable[T]]) -> T | None:
        async with semaphore:
            try:
                return await asyncio.wait_for(factory(), timeout=timeout)
            except TimeoutError:
                logger.warning("Opt-out task timed out", task=name, timeout_seconds=timeout)
                return None
            except Exception as e:
                logger.error(
                    "Opt-out task failed",
                    task=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None

    return await asyncio.gather(*(run(name, factory) for name, factory in tasks))


async def search_opt_out_issues(
    client: GitHubApiClient,
    labels: Iterable[str] | None = None,
    keywords: Iterable[str] | None = None,
    predicate: OptOutIssuePredicate = is_opt_out_request,
    timeout: float | None = None,
) -> set[str]:
    """Authors of issues labelled for opt-out, or matching a keyword and `predicate`."""
    labels = list(settings.OPT_OUT_LABELS if labels is None else labels)
    keywords = list(settings.OPT_OUT_KEYWORDS if keywords is None else keywords)

    async def by_label(label: str) -> set[str]:
        try:
            issues = await client.search_issues(f'label:"{label}"')
        except GitHubApiError as e:
            logger.warning("Opt-out label search failed", label=label, status=e.status, error=str(e))
            return set()
        return {i.author_login.lower() for i in issues if i.author_login}

    async def by_keyword(keyword: str) -> set[str]:
        try:
            issues = await client.search_issues(f'"{keyword}" in:title,body')
        except GitHubApiError as e:
            logger.warning(
                "Opt-out keyword search failed", keyword=keyword, status=e.status, error=str(e)
            )
            return set()
        return {
            i.author_login.lower() for i in issues if i.author_login and predicate(i, keyword)
        }

    tasks = [(f"label:{label}", lambda label=label: by_label(label)) for label in labels]
    tasks += [(f"keyword:{kw}", lambda kw=kw: by_keyword(kw)) for kw in keywords]

    usernames: set[str] = set()
    for result in await _gather_bounded(tasks, timeout=timeout):
        if result:
            usernames |= result

    logger.info("Opt-out issue search completed", queries=len(tasks), usernames=len(usernames))
    return usernames


async def _fetch_optional_file(client: GitHubApiClient, path: str) -> str | None:
    """File content, or None when absent (404, silent) or unreadable (logged)."""
    try:
        return await client.get_file_content(path)
    except GitHubApiError as e:
        if e.status != 404:
            logger.warning("Could not read opt-out file", path=path, status=e.status, error=str(e))
        return None
    except UnicodeDecodeError as e:
        logger.warning("Opt-out file is not valid UTF-8", path=path, error=str(e))
        return None


async def scan_repository_opt_out_files(
    client: GitHubApiClient,
    file_paths: Iterable[str] | None = None,
    readme_names: Iterable[str] | None = None,
    timeout: float | None = None,
) -> set[str]:
    """Usernames from conventional opt-out files and the README opt-out section."""
    file_paths = list(settings.OPT_OUT_FILES if file_paths is None else file_paths)
    readme_names = list(settings.OPT_OUT_README_FILES if readme_names is None else readme_names)

    async def scan_file(path: str) -> set[str]:
        content = await _fetch_optional_file(client, path)
        return set(parse_opt_out_lines(content)) if content else set()

    async def scan_readme() -> set[str]:
        for name in readme_names:
            content = await _fetch_optional_file(client, name)
            if content is None:
                continue
            # Only the first README found is considered
            return set(parse_readme_opt_out_section(content))
        return set()

    tasks = [(f"file:{path}", lambda path=path: scan_file(path)) for path in file_paths]
    tasks.append(("readme", scan_readme))

    usernames: set[str] = set()
    for result in await _gather_bounded(tasks, timeout=timeout):
        if result:
            usernames |= result

    logger.info("Opt-out file scan completed", files=len(file_paths), usernames=len(usernames))
    return usernames


async def get_all_opt_out_exclusions(
    client: GitHubApiClient,
    exclusions_path: str | Path | None = None,
    search_issues: bool = True,
    scan_repo_files: bool = True,
    predicate: OptOutIssuePredicate = is_opt_out_request,
    timeout: float | None = None,
) -> set[str]:
    """Union of all enabled opt-out sources."""
    exclusions_path = exclusions_path or settings.CONTRIBUTORS_EXCLUSIONS_FILE

    async def from_file() -> set[str]:
        return set(await asyncio.to_thread(read_exclusions_file, exclusions_path))

    tasks: list[tuple[str, Callable[[], Awaitable[set[str]]]]] = [("exclusions_file", from_file)]
    if search_issues:
        tasks.append(
            ("issue_search", lambda: search_opt_out_issues(client, predicate=predicate, timeout=timeout))
        )
    if scan_repo_files:
        tasks.append(("repo_files", lambda: scan_repository_opt_out_files(client, timeout=timeout)))

    # Each source applies its own per-query timeout; the outer bound covers the whole source
    source_timeout = (timeout or settings.OPT_OUT_TASK_TIMEOUT) * 3
    results = await _gather_bounded(tasks, max_concurrency=len(tasks), timeout=source_timeout)

    exclusions: set[str] = set()
    for result in results:
        if result:
            exclusions |= result

    logger.info(
        "Opt-out exclusions aggregated",
        sources=[name for name, _ in tasks],
        total=len(exclusions),
    )
    return exclusions


def filter_excluded_contributors(contributors: list[C], exclusions: Iterable[str]) -> list[C]:
    """Drop contributors whose lower-cased login is excluded."""
    excluded = {e.lower() for e in exclusions}
    if not excluded:
        return contributors
    return [c for c in contributors if c.login.lower() not in excluded]
