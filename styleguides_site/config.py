from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent
ENV_PATH = PROJECT_ROOT / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    SITE_URL: str = "http://localhost:8000"

    # Session settings
    SESSION_COOKIE_NAME: str = "ki-styleguides-session"
    SESSION_TTL_DAYS: int = 30
    SESSION_ID_LENGTH: int = 32
    CSRF_TOKEN_LENGTH: int = 32
    OAUTH_STATE_COOKIE_NAME: str = "oauth-state"
    RETURN_URL_COOKIE_NAME: str = "return-url"
    SHORT_COOKIE_MAX_AGE: int = 600  # 10 minutes

    # Email verification settings
    VERIFICATION_TOKEN_LENGTH: int = 32
    VERIFICATION_TTL_HOURS: int = 24
    VERIFICATION_MAX_ATTEMPTS: int = 3
    VERIFICATION_COOLDOWN_MINUTES: int = 5
    VERIFICATION_RECORD_IDLE_HOURS: int = 24

    # OAuth settings
    AUTH_GOOGLE_ID: str | None = None
    AUTH_GOOGLE_SECRET: str | None = None
    AUTH_GITHUB_ID: str | None = None
    AUTH_GITHUB_SECRET: str | None = None
    OAUTH_REDIRECT_BASE_URL: str | None = None

    # GitHub API settings
    GITHUB_API_BASE_URL: str = "https://api.github.com"
    GITHUB_OWNER: str = "chrisschwer"
    GITHUB_REPO: str = "CS-Style-Guides"
    GITHUB_TOKEN: str | None = None
    GITHUB_USER_AGENT: str = "CS-Style-Guides-Website"
    GITHUB_REQUEST_TIMEOUT: float = 15.0
    GITHUB_MAX_RETRIES: int = 3
    GITHUB_RETRY_DELAY: float = 1.0

    # Contributor opt-out settings
    CONTRIBUTORS_EXCLUSIONS_FILE: str = ".contributors-exclusions"
    OPT_OUT_LABELS: list[str] = ["contributor-opt-out", "opt-out"]
    OPT_OUT_KEYWORDS: list[str] = ["opt-out", "opt out", "remove me from contributors"]
    OPT_OUT_FILES: list[str] = [
        ".github/CONTRIBUTORS_OPT_OUT",
        ".github/CONTRIBUTORS_OPT_OUT.md",
        ".github/contributors-opt-out.txt",
        "CONTRIBUTORS_OPT_OUT",
        "CONTRIBUTORS_OPT_OUT.md",
        ".contributors-opt-out",
        ".contributors-exclusions",
        "docs/contributors-opt-out.md",
    ]
    OPT_OUT_README_FILES: list[str] = ["README.md", "readme.md", "Readme.md", "README"]
    OPT_OUT_MAX_CONCURRENCY: int = 4
    OPT_OUT_TASK_TIMEOUT: float = 20.0

    # Cache settings
    CACHE_DIR: str = ".cache"
    CONTRIBUTORS_CACHE_HOURS: int = 24
    EXCLUSIONS_CACHE_HOURS: int = 1

    # Version tracking settings
    STYLEGUIDE_DIR: str = str(PROJECT_ROOT / "Styleguides")
    VERSIONS_FILE: str = str(PROJECT_ROOT / "versions.json")
    PUBLIC_FILES_DIR: str = str(PROJECT_ROOT / "public" / "files")
    PACKAGE_OUTPUT_DIR: str = str(PROJECT_ROOT / "dist" / "zip-package")
    VERSION_IGNORED_FILES: list[str] = ["README.md", "LICENSE"]
    VERSION_GIT_ENABLED: bool = True

    # Background jobs
    CLEANUP_INTERVAL_MINUTES: int = 60
    CLEANUP_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def is_production(self) -> bool:
        return self.environment == "production"

    def cookie_secure(self) -> bool:
        """Cookies are HTTPS-only in production."""
        return self.is_production()

    def session_max_age_seconds(self) -> int:
        return self.SESSION_TTL_DAYS * 24 * 60 * 60

    def oauth_redirect_uri(self, provider: str) -> str:
        """OAuth callback URL for a provider, with local fallback."""
        base = (self.OAUTH_REDIRECT_BASE_URL or self.SITE_URL).rstrip("/")
        return f"{base}/api/auth/callback?provider={provider}"

    def github_repo_url(self) -> str:
        return f"https://github.com/{self.GITHUB_OWNER}/{self.GITHUB_REPO}"


settings = Settings()
