from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
from fastapi.testclient import TestClient

from styleguides_site.models.domain.github_domain import ContributorDisplayData
from styleguides_site.routes import contributors
from styleguides_site.services.cache.file_cache import FileCache
from styleguides_site.services.github.cached_client import CachedGitHubClient

REPO_PATH = "/repos/chrisschwer/CS-Style-Guides"


def _fake_client(display=None):
    return SimpleNamespace(
        client=SimpleNamespace(owner="chrisschwer", repo="CS-Style-Guides"),
        get_cached_contributors_for_display_with_exclusions=AsyncMock(
            return_value=display or []
        ),
    )


def _display(login, is_owner=False):
    return ContributorDisplayData(
        login=login,
        name=login,
        avatar_url=f"https://github.com/{login}.png",
        html_url=f"https://github.com/{login}",
        contributions=5,
        is_owner=is_owner,
    )


def _create_client(build_app, fake):
    return TestClient(build_app(contributors.router, contributors_client=fake))


def test_list_contributors(build_app, monkeypatch):
    monkeypatch.setattr(
        "styleguides_site.routes.contributors.settings.CONTRIBUTORS_EXCLUSIONS_FILE", "/tmp/excl"
    )
    fake = _fake_client([_display("chrisschwer", True), _display("contributor2")])

    response = _create_client(build_app, fake).get("/api/contributors")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["repository"] == "chrisschwer/CS-Style-Guides"
    assert [(c["login"], c["is_owner"]) for c in data["contributors"]] == [
        ("chrisschwer", True),
        ("contributor2", False),
    ]
    fake.get_cached_contributors_for_display_with_exclusions.assert_awaited_once_with("/tmp/excl")


def test_list_contributors_limit(build_app):
    fake = _fake_client([_display("a", True), _display("b"), _display("c")])

    data = _create_client(build_app, fake).get("/api/contributors", params={"limit": 2}).json()

    assert [c["login"] for c in data["contributors"]] == ["a", "b"]
    assert data["total"] == 3


def test_list_contributors_rejects_bad_limit(build_app):
    response = _create_client(build_app, _fake_client()).get(
        "/api/contributors", params={"limit": 0}
    )

    assert response.status_code == 422


def _github_handler(contributors_status):
    def handler(request):
        if request.url.path == "/rate_limit":
            return httpx.Response(
                200, json={"rate": {"limit": 60, "remaining": 0, "reset": 1735689600}}
            )
        if request.url.path == f"{REPO_PATH}/contributors":
            return httpx.Response(contributors_status, json={"message": "unavailable"})
        if request.url.path == "/search/issues":
            return httpx.Response(200, json={"items": []})
        return httpx.Response(404)

    return handler


def test_list_contributors_rate_limited(build_app, make_github_client, tmp_path):
    cached = CachedGitHubClient(make_github_client(_github_handler(403)), FileCache(tmp_path))

    response = _create_client(build_app, cached).get("/api/contributors")

    assert response.status_code == 503
    assert response.json()["detail"] == "Contributors are temporarily unavailable"


def test_list_contributors_outage_serves_owner(build_app, make_github_client, tmp_path, monkeypatch):
    monkeypatch.setattr(
        "styleguides_site.routes.contributors.settings.CONTRIBUTORS_EXCLUSIONS_FILE",
        str(tmp_path / "no-exclusions"),
    )
    github = make_github_client(_github_handler(503), max_retries=0)
    cached = CachedGitHubClient(github, FileCache(tmp_path / "cache"))

    response = _create_client(build_app, cached).get("/api/contributors")

    assert response.status_code == 200
    assert [(c["login"], c["is_owner"]) for c in response.json()["contributors"]] == [
        ("chrisschwer", True)
    ]
    assert not (tmp_path / "cache" / "github-chrisschwer-CS-Style-Guides-contributors.json").exists()
