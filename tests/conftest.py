"""
Pytest configuration and fixtures for the login bridge tests.

This module is automatically loaded by pytest and provides:
- TESTING environment flag to disable .env loading
- Explicit connected app settings for test isolation
- Shared fixtures for the test client and per-test settings
"""

import os

# Set TESTING flag BEFORE any app imports
# This prevents loading .env file during tests, ensuring test isolation
os.environ["TESTING"] = "1"

# Connected app test credentials - explicit values for test isolation
os.environ["OAUTH_SALESFORCE_LOGIN_URL"] = "https://test.salesforce.com"
os.environ["OAUTH_SALESFORCE_CLIENT_ID"] = "test-client-id"
os.environ["OAUTH_SALESFORCE_CLIENT_SECRET"] = "test-client-secret"
os.environ["OAUTH_SALESFORCE_REDIRECT_URI"] = "https://app.example.com/oauth2/callback"

# The instance origin comes from the request host in tests
for name in ("HEROKU_APP_NAME", "PUBLIC_ORIGIN", "SFDX_AUTH_URL", "CREDENTIAL_WORK_DIR"):
    os.environ.pop(name, None)

import pytest
from fastapi.testclient import TestClient

from oauth_bridge.core.config import Settings
from oauth_bridge.main import app

APP_HOST = "app.example.com"
TEST_SFDX_AUTH_URL = "force://PlatformCLI::5Aep861TestRefreshToken@test-org.my.salesforce.com"


@pytest.fixture(name="bridge_settings")
def bridge_settings_fixture(tmp_path) -> Settings:
    """Settings with an org credential and a private work directory."""
    return Settings(
        SFDX_AUTH_URL=TEST_SFDX_AUTH_URL,
        SFDX_CREDENTIAL_DIR=str(tmp_path / "vendor" / "sfdx"),
        CREDENTIAL_WORK_DIR=str(tmp_path / "work"),
    )


@pytest.fixture(name="client")
def client_fixture():
    """Create a test client that sends requests to https://app.example.com."""
    client = TestClient(app, base_url=f"https://{APP_HOST}")
    yield client
    app.dependency_overrides.clear()
