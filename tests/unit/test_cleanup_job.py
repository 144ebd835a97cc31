import asyncio

import pytest

from styleguides_site.jobs import cleanup_job
from styleguides_site.jobs.cleanup_job import SessionCleanupJob, start_cleanup_scheduler


@pytest.fixture
def job(session_store, verification_store, clock):
    return SessionCleanupJob(session_store, verification_store, interval_minutes=60, clock=clock)


def test_run_once_sweeps_both_stores(job, session_store, verification_store, clock, make_user):
    session_store.create_session(make_user())
    verification_store.generate_verification_token(make_user())
    clock.advance(days=2)
    session_store.create_session(make_user(id="fresh"))

    metrics = job.run_once()

    assert metrics["sessions_removed"] == 0
    assert metrics["tokens_removed"] == 1
    assert metrics["sessions_remaining"] == 2
    assert metrics["tokens_remaining"] == 0

    clock.advance(days=29)
    assert job.run_once()["sessions_removed"] == 1


def test_run_once_skips_when_already_running(job):
    job.is_running = True

    assert job.run_once() == {"skipped": True, "reason": "already_running"}


def test_status_and_health(job, clock):
    assert job.health_check()["healthy"] is True
    assert job.get_job_status()["last_run_time"] is None

    job.run_once()
    assert job.get_job_status()["last_run_metrics"]["job_run"] == "session_cleanup"

    clock.advance(minutes=121)
    health = job.health_check()
    assert health["healthy"] is False
    assert health["is_overdue"] is True


def test_run_cleanup_once(session_store, verification_store):
    metrics = cleanup_job.run_cleanup_once(session_store, verification_store)

    assert metrics["sessions_removed"] == 0
    assert metrics["tokens_removed"] == 0


@pytest.mark.asyncio
async def test_scheduler_runs_until_cancelled(job, monkeypatch):
    runs = []
    monkeypatch.setattr(job, "run_once", lambda: runs.append(1))

    task = asyncio.create_task(start_cleanup_scheduler(job))
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert runs == [1]
