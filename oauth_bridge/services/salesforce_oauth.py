"""
Salesforce OAuth 2.0 web server flow client.

Builds the authorization URL the browser is sent to and exchanges the
authorization code returned on the callback for an access token and the
identity of the user who logged in.

The client is an immutable value built once from settings and shared by
every request; it holds no per-request state.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urlencode, urlsplit

import httpx

from oauth_bridge.core.config import Settings
from oauth_bridge.core.errors import BridgeError, BridgeTimeoutError

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/services/oauth2/authorize"
TOKEN_PATH = "/services/oauth2/token"


class ProviderConfigurationError(BridgeError):
    """The connected app credentials are not configured."""


class ProviderExchangeError(BridgeError):
    """Error during the authorization code exchange."""

    def __init__(self, error: str, description: str | None = None):
        self.error = error
        self.description = description
        super().__init__(f"{error}: {description}" if description else error)


@dataclass(frozen=True)
class SalesforceIdentity:
    """Identity reported by Salesforce for the user who authorized."""

    user_id: str
    organization_id: str
    identity_url: str
    instance_url: str | None = None


def parse_identity_url(identity_url: str) -> tuple[str, str]:
    """
    Split a Salesforce identity URL into (organization_id, user_id).

    Identity URLs look like https://login.salesforce.com/id/<orgId>/<userId>.

    Raises:
        ProviderExchangeError: If the URL does not have that shape
    """
    parts = [p for p in urlsplit(identity_url).path.split("/") if p]
    if len(parts) < 3 or parts[-3] != "id":
        raise ProviderExchangeError(
            "invalid_identity", f"Unexpected identity URL: {identity_url}"
        )
    return parts[-2], parts[-1]


@dataclass(frozen=True)
class SalesforceOAuthClient:
    """Connected app settings plus the two calls of the web server flow."""

    login_url: str
    client_id: str
    client_secret: str
    redirect_uri: str | None
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SalesforceOAuthClient":
        """
        Build a client from application settings.

        Raises:
            ProviderConfigurationError: If client id or secret is missing
        """
        if not settings.OAUTH_SALESFORCE_CLIENT_ID or not settings.OAUTH_SALESFORCE_CLIENT_SECRET:
            raise ProviderConfigurationError(
                "OAUTH_SALESFORCE_CLIENT_ID and OAUTH_SALESFORCE_CLIENT_SECRET must be set"
            )

        return cls(
            login_url=settings.OAUTH_SALESFORCE_LOGIN_URL.rstrip("/"),
            client_id=settings.OAUTH_SALESFORCE_CLIENT_ID,
            client_secret=settings.OAUTH_SALESFORCE_CLIENT_SECRET,
            redirect_uri=settings.oauth_redirect_uri,
            timeout=settings.PROVIDER_TIMEOUT,
        )

    @property
    def authorize_url(self) -> str:
        return f"{self.login_url}{AUTHORIZE_PATH}"

    @property
    def token_url(self) -> str:
        return f"{self.login_url}{TOKEN_PATH}"

    def build_authorization_url(self, scope: str, state: str) -> str:
        """
        Build the Salesforce authorization URL.

        Args:
            scope: Space separated OAuth scopes (e.g. "id")
            state: Opaque value Salesforce echoes back on the callback

        Returns:
            Authorization URL to redirect the browser to
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": scope,
            "state": state,
        }
        if self.redirect_uri:
            params["redirect_uri"] = self.redirect_uri

        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str | None) -> SalesforceIdentity:
        """
        Exchange an authorization code for an access token and identity.

        The code is single use, so a failed exchange is never retried.

        Args:
            code: Authorization code from the OAuth callback

        Returns:
            SalesforceIdentity of the user who authorized

        Raises:
            ProviderExchangeError: If the code is missing or the exchange fails
            BridgeTimeoutError: If Salesforce does not answer in time
        """
        if not code:
            raise ProviderExchangeError("invalid_request", "Missing authorization code")

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if self.redirect_uri:
            data["redirect_uri"] = self.redirect_uri

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.TimeoutException as e:
            raise BridgeTimeoutError(
                f"Token request to {self.token_url} timed out: {e}", self.timeout
            )
        except httpx.HTTPError as e:
            raise ProviderExchangeError("connection_error", str(e))

        try:
            result = response.json()
        except ValueError:
            raise ProviderExchangeError(
                "invalid_response",
                f"HTTP {response.status_code} with non-JSON body from token endpoint",
            )

        if not isinstance(result, dict):
            raise ProviderExchangeError(
                "invalid_response",
                f"HTTP {response.status_code} with non-object JSON from token endpoint",
            )

        if response.status_code != 200:
            raise ProviderExchangeError(
                result.get("error", "unknown_error"),
                result.get("error_description"),
            )

        if not result.get("access_token") or not result.get("id"):
            raise ProviderExchangeError(
                "invalid_response", "Token response lacks access_token or id"
            )

        organization_id, user_id = parse_identity_url(result["id"])

        return SalesforceIdentity(
            user_id=user_id,
            organization_id=organization_id,
            identity_url=result["id"],
            instance_url=result.get("instance_url"),
        )
