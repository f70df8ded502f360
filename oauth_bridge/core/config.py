"""
Application configuration with environment-based settings.

This module uses Pydantic Settings for automatic environment variable loading
and validation. Variable names match the ones the Heroku pipeline already
sets on every app (OAUTH_SALESFORCE_*, HEROKU_APP_NAME, SFDX_AUTH_URL).
"""

import os
import tomllib
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_app_version_from_pyproject() -> str:
    """Load application version from pyproject.toml"""
    try:
        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"

        if not pyproject_path.exists():
            # Fallback for when running from an installed wheel
            return "0.0.0"

        with open(pyproject_path, "rb") as f:
            config = tomllib.load(f)
            return config.get("project", {}).get("version") or "0.0.0"

    except (OSError, tomllib.TOMLDecodeError):
        return "0.0.0"


class Settings(BaseSettings):
    """
    Application settings with validation.

    All settings except the connected app credentials have defaults, so a
    review app only needs HEROKU_APP_NAME (set by Heroku) plus the shared
    OAUTH_SALESFORCE_* values inherited from the pipeline.
    """

    model_config = SettingsConfigDict(
        # Disable .env loading when TESTING=1 (set by conftest.py)
        env_file=None if os.getenv("TESTING") else ".env",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=True,
    )

    PROJECT_NAME: str = "Salesforce Login Bridge"
    APP_VERSION: str = _load_app_version_from_pyproject()
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Salesforce connected app
    # The redirect URI registered on the connected app usually points at a
    # single app of the pipeline; callbacks are forwarded from there.
    OAUTH_SALESFORCE_LOGIN_URL: str = "https://login.salesforce.com"
    OAUTH_SALESFORCE_CLIENT_ID: str | None = None
    OAUTH_SALESFORCE_CLIENT_SECRET: str | None = None
    OAUTH_SALESFORCE_REDIRECT_URI: str | None = None
    OAUTH_SCOPE: str = "id"
    PROVIDER_TIMEOUT: float = 30.0

    # Instance identity
    # Heroku sets HEROKU_APP_NAME when the dyno-metadata lab feature is on.
    # PUBLIC_ORIGIN overrides the derived https://<name>.herokuapp.com origin
    # (custom domains, local development).
    HEROKU_APP_NAME: str | None = None
    PUBLIC_ORIGIN: str | None = None

    # Org credentials
    # Long-lived apps are configured with SFDX_AUTH_URL. Review apps are not;
    # the buildpack writes the scratch org auth URL to
    # <SFDX_CREDENTIAL_DIR>/<SFDX_CREDENTIAL_PREFIX><HEROKU_APP_NAME> instead.
    SFDX_AUTH_URL: str | None = None
    SFDX_CREDENTIAL_DIR: str = "vendor/sfdx"
    SFDX_CREDENTIAL_PREFIX: str = "ra-"
    # Per-request credential files; None means the system temp directory
    CREDENTIAL_WORK_DIR: str | None = None

    # Salesforce CLI
    SFDX_CLI_PATH: str = "sfdx"
    SFDX_CLI_TIMEOUT: float = 120.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def public_origin(self) -> str | None:
        """Public origin of this instance, or None if it must come from the request"""
        if self.PUBLIC_ORIGIN:
            return self.PUBLIC_ORIGIN.rstrip("/")
        if self.HEROKU_APP_NAME:
            return f"https://{self.HEROKU_APP_NAME}.herokuapp.com"
        return None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def oauth_redirect_uri(self) -> str | None:
        """Callback URL sent to Salesforce; must match the connected app"""
        if self.OAUTH_SALESFORCE_REDIRECT_URI:
            return self.OAUTH_SALESFORCE_REDIRECT_URI
        if self.public_origin:
            return f"{self.public_origin}/oauth2/callback"
        return None


# Create settings instance
settings = Settings()
