"""
OAuth provider configuration for Google and GitHub sign-in.
Handles authorization URL generation, code exchange, and profile mapping.

Only minimal scopes are requested: email address and display name.
"""

import asyncio
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger
from styleguides_site.models.domain.user_domain import OAuthProfile

logger = get_logger(__name__)

REQUEST_TIMEOUT = 10  # seconds
SUPPORTED_PROVIDERS = ("google", "github")


class OAuthProviderError(Exception):
    """Custom exception for OAuth provider errors."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


@dataclass(frozen=True)
class OAuthProviderConfig:
    name: str
    client_id: str
    client_secret: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str
    extra_params: tuple[tuple[str, str], ...] = ()


def get_google_provider() -> OAuthProviderConfig:
    if not settings.AUTH_GOOGLE_ID or not settings.AUTH_GOOGLE_SECRET:
        raise OAuthProviderError(
            "Google OAuth credentials not configured. Set AUTH_GOOGLE_ID and AUTH_GOOGLE_SECRET.",
            error_code="config_error",
        )
    return OAuthProviderConfig(
        name="google",
        client_id=settings.AUTH_GOOGLE_ID,
        client_secret=settings.AUTH_GOOGLE_SECRET,
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        scope="openid email profile",
        extra_params=(("prompt", "consent"), ("access_type", "offline")),
    )


def get_github_provider() -> OAuthProviderConfig:
    if not settings.AUTH_GITHUB_ID or not settings.AUTH_GITHUB_SECRET:
        raise OAuthProviderError(
            "GitHub OAuth credentials not configured. Set AUTH_GITHUB_ID and AUTH_GITHUB_SECRET.",
            error_code="config_error",
        )
    return OAuthProviderConfig(
        name="github",
        client_id=settings.AUTH_GITHUB_ID,
        client_secret=settings.AUTH_GITHUB_SECRET,
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        userinfo_url="https://api.github.com/user",
        scope="read:user user:email",
    )


_PROVIDER_FACTORIES = {
    "google": get_google_provider,
    "github": get_github_provider,
}


def get_provider(name: str) -> OAuthProviderConfig:
    factory = _PROVIDER_FACTORIES.get(name)
    if factory is None:
        raise OAuthProviderError(f"Unsupported provider '{name}'", error_code="invalid_provider")
    return factory()


def get_providers() -> list[OAuthProviderConfig]:
    """All providers with credentials configured."""
    providers = []
    for name, factory in _PROVIDER_FACTORIES.items():
        try:
            providers.append(factory())
        except OAuthProviderError as e:
            logger.warning("OAuth provider not configured", provider=name, error=str(e))
    return providers


def build_authorization_url(provider: str, state: str) -> str:
    config = get_provider(provider)
    params = {
        "client_id": config.client_id,
        "redirect_uri": settings.oauth_redirect_uri(provider),
        "response_type": "code",
        "scope": config.scope,
        "state": state,
        **dict(config.extra_params),
    }
    return f"{config.authorize_url}?{urlencode(params)}"


class OAuthUserResolver:
    """Exchange an authorization code for the signed-in user's profile."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT), transport=self._transport)

    async def resolve(self, provider: str, code: str) -> OAuthProfile | None:
        """
        Returns:
            OAuthProfile, or None if the exchange or profile lookup failed
        """
        try:
            config = get_provider(provider)
            async with self._create_client() as client:
                access_token = await self._exchange_code(client, config, code)
                headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

                response = await client.get(config.userinfo_url, headers=headers)
                response.raise_for_status()
                data = response.json()

                if provider == "github":
                    return await self._map_github_profile(client, headers, data)
                return self._map_google_profile(data)

        except (OAuthProviderError, httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(
                "OAuth callback resolution failed",
                provider=provider,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _exchange_code(
        self, client: httpx.AsyncClient, config: OAuthProviderConfig, code: str
    ) -> str:
        response = await client.post(
            config.token_url,
            data={
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": settings.oauth_redirect_uri(config.name),
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        payload = response.json()

        access_token = payload.get("access_token")
        if not access_token:
            raise OAuthProviderError(
                payload.get("error_description", "No access token in response"),
                error_code=payload.get("error", "token_exchange_failed"),
            )
        return access_token

    def _map_google_profile(self, data: dict) -> OAuthProfile:
        return OAuthProfile(
            provider_user_id=str(data["sub"]),
            provider="google",
            email=data["email"],
            name=data.get("name") or data["email"],
            image=data.get("picture"),
            email_verified=bool(data.get("email_verified", True)),
        )

    async def _map_github_profile(
        self, client: httpx.AsyncClient, headers: dict, data: dict
    ) -> OAuthProfile:
        email = data.get("email")
        if not email:
            # Private addresses are only exposed through the emails endpoint
            response = await client.get("https://api.github.com/user/emails", headers=headers)
            response.raise_for_status()
            primary = next((e for e in response.json() if e.get("primary")), None)
            if primary is None:
                raise OAuthProviderError("GitHub account has no primary email", "missing_email")
            email = primary["email"]

        return OAuthProfile(
            provider_user_id=str(data["id"]),
            provider="github",
            email=email,
            name=data.get("name") or data["login"],
            image=data.get("avatar_url"),
        )


async def resolve_with_timeout(
    resolver: OAuthUserResolver, provider: str, code: str, timeout: float = 30.0
) -> OAuthProfile | None:
    try:
        return await asyncio.wait_for(resolver.resolve(provider, code), timeout=timeout)
    except TimeoutError:
        logger.error("OAuth callback resolution timed out", provider=provider, timeout=timeout)
        return None
