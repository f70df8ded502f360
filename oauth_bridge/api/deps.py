"""
FastAPI dependencies.

Settings and the clients built from them are created once and shared by
every request. Tests replace them through app.dependency_overrides.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from oauth_bridge.core.config import Settings, settings
from oauth_bridge.services.salesforce_oauth import SalesforceOAuthClient
from oauth_bridge.services.sfdx_cli import SfdxCli


def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_oauth_client() -> SalesforceOAuthClient:
    """
    Get the shared Salesforce OAuth client.

    Raises:
        ProviderConfigurationError: If the connected app is not configured
    """
    return SalesforceOAuthClient.from_settings(settings)


@lru_cache(maxsize=1)
def get_sfdx_cli() -> SfdxCli:
    return SfdxCli.from_settings(settings)


SettingsDep = Annotated[Settings, Depends(get_settings)]
OAuthClientDep = Annotated[SalesforceOAuthClient, Depends(get_oauth_client)]
SfdxCliDep = Annotated[SfdxCli, Depends(get_sfdx_cli)]
