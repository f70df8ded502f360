"""
Login routes.

- GET /                 sends the browser to Salesforce to log in
- GET /oauth2/callback  forwards the callback to the app the login started
                        on, or completes it and opens the org

Failures raise BridgeError and are answered by the application's error
handler with a generic 403.
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse

from oauth_bridge.api.deps import OAuthClientDep, SettingsDep, SfdxCliDep
from oauth_bridge.services.instance_router import (
    CALLBACK_PATH,
    AuthorizationState,
    encode_state,
    route_callback,
)
from oauth_bridge.services.login_bridge import open_org_session
from oauth_bridge.services.salesforce_oauth import ProviderExchangeError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/")
async def start_login(
    request: Request,
    settings: SettingsDep,
    oauth_client: OAuthClientDep,
) -> RedirectResponse:
    """
    Redirect to the Salesforce authorization URL.

    The state carries this app's origin so that whichever app receives the
    callback can send it back here.
    """
    origin = settings.public_origin or f"https://{request.url.netloc}"
    state = encode_state(AuthorizationState(redirect_url=origin))
    authorization_url = oauth_client.build_authorization_url(settings.OAUTH_SCOPE, state)

    logger.info(f"Redirecting to Salesforce authorization for {origin}")
    return _redirect(authorization_url)


@router.get(CALLBACK_PATH)
async def oauth_callback(
    request: Request,
    settings: SettingsDep,
    oauth_client: OAuthClientDep,
    cli: SfdxCliDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
) -> RedirectResponse:
    """
    Handle the OAuth callback from Salesforce.

    If the login started on another app of the pipeline, redirect the
    callback there untouched. Otherwise exchange the code, open the org
    through the CLI, and redirect into it.
    """
    decision = route_callback(
        request.url.hostname,
        state,
        code,
        extra_params={"error": error, "error_description": error_description},
    )

    if not decision.is_local:
        return _redirect(decision.target_url)

    # Salesforce reports a denied or failed authorization in place of a code
    if error:
        raise ProviderExchangeError(error, error_description)

    session_url = await open_org_session(
        code,
        oauth_client=oauth_client,
        cli=cli,
        settings=settings,
    )
    return _redirect(session_url)
