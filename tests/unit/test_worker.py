from datetime import date

import pytest

from styleguides_site.config import settings
from styleguides_site.jobs import worker


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch):
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    assert called["ok"] is True


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError, match="Available jobs: post_build, version_check"):
        await worker.run_worker("missing")


def test_job_name_from_environment(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["styleguides-worker"])
    monkeypatch.setenv("WORKER_JOB", " Post_Build ")

    assert worker._resolve_job_name() == "post_build"


def test_job_name_defaults_to_version_check(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["styleguides-worker"])
    monkeypatch.delenv("WORKER_JOB", raising=False)

    assert worker._resolve_job_name() == "version_check"


@pytest.fixture
def configured_versioning(tmp_path, styleguide_workspace, monkeypatch):
    guides, versions_file = styleguide_workspace
    monkeypatch.setattr(settings, "STYLEGUIDE_DIR", str(guides))
    monkeypatch.setattr(settings, "VERSIONS_FILE", str(versions_file))
    monkeypatch.setattr(settings, "PUBLIC_FILES_DIR", str(tmp_path / "public" / "files"))
    monkeypatch.setattr(settings, "PACKAGE_OUTPUT_DIR", str(tmp_path / "dist" / "zip-package"))
    monkeypatch.setattr(settings, "VERSION_GIT_ENABLED", False)
    return tmp_path


@pytest.mark.asyncio
async def test_version_check_job_syncs_public_files(configured_versioning):
    await worker.run_worker("version_check")

    public = configured_versioning / "public"
    assert (public / "files" / "Business Writing.md").exists()
    assert (public / "versions.json").exists()
    assert '"contentHash"' in (configured_versioning / "versions.json").read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_post_build_job_writes_package(configured_versioning, monkeypatch):
    monkeypatch.setattr(worker.VersionManager, "current_date", lambda self: date(2025, 3, 10).isoformat())

    await worker.run_worker("post_build")

    archives = list((configured_versioning / "dist").glob("*.zip"))
    assert [a.name for a in archives] == ["ki-styleguides-2025-02-20-2guides-1minor-1patch.zip"]
