"""
Login pipeline run when a callback is completed on this app.

Each step either returns its result or raises a BridgeError; nothing is
retried, the first failure ends the request.
"""

import logging

from oauth_bridge.core.config import Settings
from oauth_bridge.services.credentials import materialize_credential
from oauth_bridge.services.salesforce_oauth import SalesforceOAuthClient
from oauth_bridge.services.sfdx_cli import SfdxCli

logger = logging.getLogger(__name__)


async def open_org_session(
    code: str | None,
    *,
    oauth_client: SalesforceOAuthClient,
    cli: SfdxCli,
    settings: Settings,
) -> str:
    """
    Complete a login and return the URL to send the browser to.

    1. Exchange the authorization code to confirm who logged in
    2. Resolve the org credential and write it to a per-request file
    3. Store it in the CLI under a per-request alias (file removed after)
    4. Ask the CLI for a one-time login URL

    Args:
        code: Authorization code from the callback
        oauth_client: Salesforce OAuth client
        cli: Salesforce CLI wrapper
        settings: Application settings

    Returns:
        One-time frontdoor URL into the org

    Raises:
        BridgeError: Any step failed
    """
    identity = await oauth_client.exchange_code(code)
    logger.info(
        f"Salesforce user {identity.user_id} of org {identity.organization_id} authorized"
    )

    alias = cli.new_alias()
    async with materialize_credential(
        settings.HEROKU_APP_NAME,
        env_credential=settings.SFDX_AUTH_URL,
        directory=settings.SFDX_CREDENTIAL_DIR,
        prefix=settings.SFDX_CREDENTIAL_PREFIX,
        work_dir=settings.CREDENTIAL_WORK_DIR,
    ) as credential_path:
        await cli.store_credential(alias, credential_path)

    url = await cli.open_session(alias)
    logger.info(f"Opening org session for user {identity.user_id} via {alias}")
    return url
