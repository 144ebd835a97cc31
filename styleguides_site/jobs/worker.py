"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and runs it. Session cleanup is not listed here: the session stores
live in the web process, so that sweep is scheduled from the app lifespan.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger, setup_logging
from styleguides_site.services.versioning.sync_files import sync_files
from styleguides_site.services.versioning.version_manager import VersionManager

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[None]]


async def run_version_check() -> None:
    """Pre-build pass: report changes, refresh content hashes, sync public copies."""
    manager = VersionManager()
    changes = await asyncio.to_thread(manager.check_for_changes)
    await asyncio.to_thread(manager.update_content_hashes)
    summary = await asyncio.to_thread(sync_files, manager)
    logger.info(
        "Version check job completed",
        changed=len(changes),
        synced=summary.updated,
        sync_errors=summary.errors,
    )


async def run_post_build() -> None:
    """Post-build pass: validate the manifest and assemble the download package."""
    manager = VersionManager()
    report = await asyncio.to_thread(manager.post_build_version_check)
    if not report.all_valid:
        logger.warning("Post-build version check found problems", problems=report.problems)
    result = await asyncio.to_thread(manager.generate_versioned_package)
    logger.info("Post-build job completed", package=result.package_name)


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "version_check": run_version_check,
    "post_build": run_post_build,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "version_check").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await JOB_REGISTRY[name]()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(settings.log_level)
    asyncio.run(run_worker(_resolve_job_name()))


if __name__ == "__main__":
    main()
