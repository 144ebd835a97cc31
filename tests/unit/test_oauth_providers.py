import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from styleguides_site.config import settings
from styleguides_site.services.auth.oauth_providers import (
    OAuthProviderError,
    OAuthUserResolver,
    build_authorization_url,
    get_providers,
    resolve_with_timeout,
)


@pytest.fixture
def oauth_credentials(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_GITHUB_ID", "gh-id")
    monkeypatch.setattr(settings, "AUTH_GITHUB_SECRET", "gh-secret")
    monkeypatch.setattr(settings, "AUTH_GOOGLE_ID", "g-id")
    monkeypatch.setattr(settings, "AUTH_GOOGLE_SECRET", "g-secret")
    monkeypatch.setattr(settings, "SITE_URL", "https://styleguides.example.com")
    monkeypatch.setattr(settings, "OAUTH_REDIRECT_BASE_URL", None)


def test_get_providers_skips_unconfigured(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_GITHUB_ID", "gh-id")
    monkeypatch.setattr(settings, "AUTH_GITHUB_SECRET", "gh-secret")
    monkeypatch.setattr(settings, "AUTH_GOOGLE_ID", None)
    monkeypatch.setattr(settings, "AUTH_GOOGLE_SECRET", None)

    assert [p.name for p in get_providers()] == ["github"]


def test_build_authorization_url_for_github(oauth_credentials):
    url = build_authorization_url("github", "state-123")

    parsed = urlparse(url)
    params = parse_qs(parsed.query)
    assert parsed.netloc == "github.com"
    assert params["client_id"] == ["gh-id"]
    assert params["state"] == ["state-123"]
    assert params["scope"] == ["read:user user:email"]
    assert params["redirect_uri"] == [
        "https://styleguides.example.com/api/auth/callback?provider=github"
    ]


def test_build_authorization_url_for_google_adds_consent_prompt(oauth_credentials):
    params = parse_qs(urlparse(build_authorization_url("google", "s")).query)

    assert params["prompt"] == ["consent"]
    assert params["access_type"] == ["offline"]


def test_build_authorization_url_rejects_unknown_provider(oauth_credentials):
    with pytest.raises(OAuthProviderError) as exc_info:
        build_authorization_url("twitter", "s")

    assert exc_info.value.error_code == "invalid_provider"


def test_build_authorization_url_unconfigured(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_GITHUB_ID", None)

    with pytest.raises(OAuthProviderError) as exc_info:
        build_authorization_url("github", "s")

    assert exc_info.value.error_code == "config_error"


@pytest.mark.asyncio
async def test_resolve_github_profile_with_private_email(oauth_credentials):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/login/oauth/access_token":
            return httpx.Response(200, json={"access_token": "tok"})
        if request.url.path == "/user":
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(200, json={"id": 42, "login": "octo", "email": None})
        if request.url.path == "/user/emails":
            return httpx.Response(
                200,
                json=[
                    {"email": "other@example.com", "primary": False},
                    {"email": "octo@example.com", "primary": True},
                ],
            )
        return httpx.Response(404)

    resolver = OAuthUserResolver(transport=httpx.MockTransport(handler))

    profile = await resolver.resolve("github", "code-1")

    assert profile.provider_user_id == "42"
    assert profile.email == "octo@example.com"
    assert profile.name == "octo"


@pytest.mark.asyncio
async def test_resolve_google_profile(oauth_credentials):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": "tok"})
        return httpx.Response(
            200,
            json={"sub": "g-1", "email": "anna@example.com", "name": "Anna", "email_verified": True},
        )

    resolver = OAuthUserResolver(transport=httpx.MockTransport(handler))

    profile = await resolver.resolve("google", "code")

    assert profile.provider == "google"
    assert profile.provider_user_id == "g-1"
    assert profile.name == "Anna"


@pytest.mark.asyncio
async def test_resolve_returns_none_when_token_exchange_fails(oauth_credentials):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "bad_verification_code"})

    resolver = OAuthUserResolver(transport=httpx.MockTransport(handler))

    assert await resolver.resolve("github", "bad") is None


@pytest.mark.asyncio
async def test_resolve_returns_none_on_http_error(oauth_credentials):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    resolver = OAuthUserResolver(transport=httpx.MockTransport(handler))

    assert await resolver.resolve("github", "code") is None


@pytest.mark.asyncio
async def test_resolve_with_timeout_returns_none_when_slow():
    class SlowResolver:
        async def resolve(self, provider, code):
            await asyncio.sleep(1)

    assert await resolve_with_timeout(SlowResolver(), "github", "code", timeout=0.01) is None


@pytest.mark.asyncio
async def test_resolve_with_timeout_passes_result_through(github_profile):
    class FixedResolver:
        async def resolve(self, provider, code):
            return github_profile

    assert await resolve_with_timeout(FixedResolver(), "github", "code") == github_profile
