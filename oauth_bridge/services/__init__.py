"""
Services package for the login bridge.

Usage:
    from oauth_bridge.services import SalesforceOAuthClient, SfdxCli, open_org_session

Available services:
    - salesforce_oauth: Salesforce OAuth web server flow
    - instance_router: forwarding callbacks between pipeline apps
    - credentials: org credential resolution and hand-off files
    - sfdx_cli: Salesforce CLI calls
    - login_bridge: the login pipeline tying them together
"""

from .credentials import CredentialNotFoundError, CredentialWriteError
from .instance_router import MalformedStateError, RoutingDecision, route_callback
from .login_bridge import open_org_session
from .salesforce_oauth import (
    ProviderConfigurationError,
    ProviderExchangeError,
    SalesforceIdentity,
    SalesforceOAuthClient,
)
from .sfdx_cli import CliOpenError, CliStoreError, SfdxCli

__all__ = [
    # Salesforce OAuth
    "ProviderConfigurationError",
    "ProviderExchangeError",
    "SalesforceIdentity",
    "SalesforceOAuthClient",
    # Routing
    "MalformedStateError",
    "RoutingDecision",
    "route_callback",
    # Credentials
    "CredentialNotFoundError",
    "CredentialWriteError",
    # CLI
    "CliOpenError",
    "CliStoreError",
    "SfdxCli",
    # Pipeline
    "open_org_session",
]
