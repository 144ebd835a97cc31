import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from fastapi import FastAPI

from styleguides_site.models.domain.user_domain import OAuthProfile, User
from styleguides_site.services.auth.email_verification import EmailVerificationStore
from styleguides_site.services.auth.session_store import SessionStore
from styleguides_site.services.auth.user_store import UserStore
from styleguides_site.services.github.client import GitHubApiClient


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class FakeResolver:
    """Stands in for OAuthUserResolver; returns a fixed profile or None."""

    def __init__(self, profile: OAuthProfile | None = None):
        self.profile = profile
        self.calls: list[tuple[str, str]] = []

    async def resolve(self, provider: str, code: str) -> OAuthProfile | None:
        self.calls.append((provider, code))
        return self.profile


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_store(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def verification_store(clock):
    return EmailVerificationStore(clock=clock)


@pytest.fixture
def user_store(clock):
    return UserStore(clock=clock)


@pytest.fixture
def make_user(clock):
    def _make(**overrides) -> User:
        data = {
            "id": "user-1",
            "email": "anna@example.com",
            "name": "Anna",
            "provider": "email",
            "role": "contributor",
            "blocked": False,
            "email_verified": False,
            "created_at": clock(),
            "updated_at": clock(),
        }
        data.update(overrides)
        return User(**data)

    return _make


@pytest.fixture
def github_profile():
    return OAuthProfile(
        provider_user_id="42",
        provider="github",
        email="octo@example.com",
        name="Octo Cat",
    )


@pytest.fixture
def make_github_client():
    """GitHubApiClient whose HTTP calls are answered by `handler`, with no retry delay."""

    def _make(handler, **kwargs) -> GitHubApiClient:
        kwargs.setdefault("owner", "chrisschwer")
        kwargs.setdefault("repo", "CS-Style-Guides")
        kwargs.setdefault("token", "")
        kwargs.setdefault("retry_delay", 0)
        return GitHubApiClient(transport=httpx.MockTransport(handler), **kwargs)

    return _make


@pytest.fixture
def build_app(session_store, verification_store, user_store):
    """Bare FastAPI app with the stores on app.state and the given routers included."""

    def _build(*routers, **state) -> FastAPI:
        app = FastAPI()
        app.state.session_store = session_store
        app.state.verification_store = verification_store
        app.state.user_store = user_store
        for key, value in state.items():
            setattr(app.state, key, value)
        for router in routers:
            app.include_router(router)
        return app

    return _build


BUSINESS_GUIDE = """---
title: "Business Writing"
version: "1.0.0"
lastUpdated: "2025-01-01"
changeNotes: "Initial version"
---

# Business Writing

Klare Sätze, aktive Verben.
"""

SOCIAL_GUIDE = """---
title: "Social Media"
version: "1.2.0"
lastUpdated: "2025-02-20"
changeNotes: "Neue Beispiele"
---

# Social Media

Kurz und direkt.
"""


@pytest.fixture
def styleguide_workspace(tmp_path):
    """Two guides, an ignored README and a matching versions.json; returns (guides dir, manifest path)."""
    guides = tmp_path / "Styleguides"
    guides.mkdir()
    (guides / "Business Writing.md").write_text(BUSINESS_GUIDE, encoding="utf-8")
    (guides / "Social Media.md").write_text(SOCIAL_GUIDE, encoding="utf-8")
    (guides / "README.md").write_text("# Styleguides\n", encoding="utf-8")

    manifest = {
        "styleguides": {
            "business-writing": {
                "filename": "Business Writing.md",
                "title": "Business Writing",
                "version": "1.0.0",
                "lastUpdated": "2025-01-01",
                "changeNotes": "Initial version",
                "history": [{"version": "1.0.0", "date": "2025-01-01", "notes": "Initial version"}],
            },
            "social-media": {
                "filename": "Social Media.md",
                "title": "Social Media",
                "version": "1.2.0",
                "lastUpdated": "2025-02-20",
                "changeNotes": "Neue Beispiele",
                "history": [
                    {"version": "1.0.0", "date": "2025-01-01", "notes": "Initial version"},
                    {"version": "1.2.0", "date": "2025-02-20", "notes": "Neue Beispiele"},
                ],
            },
        },
        "schema": {"version": "1.0", "description": "Version manifest for style guides"},
    }
    versions_file = tmp_path / "versions.json"
    versions_file.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return guides, versions_file


@pytest.fixture
def make_resolver():
    return FakeResolver
