"""
Callback routing between the apps of a pipeline.

The connected app can only redirect to the callback URLs registered on it,
so the browser may come back to a different app than the one it started
on. The state parameter carries the origin of the app that started the
flow; this module decides whether the current app finishes the login or
sends the callback on to that origin.
"""

import json
import logging
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlencode, urlsplit, urlunsplit

from oauth_bridge.core.errors import BridgeError

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/oauth2/callback"

# Key kept as-is so apps deployed earlier in the pipeline can read our state
STATE_REDIRECT_KEY = "redirectURL"

# Provider error parameters passed along with a forwarded callback
FORWARDED_ERROR_PARAMS = ("error", "error_description")


class MalformedStateError(BridgeError):
    """The callback state is missing or cannot be decoded."""


@dataclass(frozen=True)
class AuthorizationState:
    """State echoed through the Salesforce round-trip."""

    redirect_url: str


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of routing a callback: finish here, or forward to target_url."""

    action: Literal["local", "forward"]
    target_url: str | None = None

    @property
    def is_local(self) -> bool:
        return self.action == "local"


def encode_state(state: AuthorizationState) -> str:
    """Serialize state as compact JSON, e.g. {"redirectURL":"https://a.example.com"}"""
    return json.dumps({STATE_REDIRECT_KEY: state.redirect_url}, separators=(",", ":"))


def parse_state(raw: str | None) -> AuthorizationState:
    """
    Decode the state parameter of a callback.

    Args:
        raw: The state query parameter as received

    Returns:
        AuthorizationState with the origin the flow started on

    Raises:
        MalformedStateError: If state is missing, not a JSON object, or
            does not hold an absolute http(s) redirect URL
    """
    if not raw:
        raise MalformedStateError("Missing state parameter")

    try:
        data = json.loads(raw)
    except ValueError:
        raise MalformedStateError(f"State is not valid JSON: {raw!r}")

    if not isinstance(data, dict):
        raise MalformedStateError(f"State is not a JSON object: {raw!r}")

    redirect_url = data.get(STATE_REDIRECT_KEY)
    if not isinstance(redirect_url, str) or not redirect_url:
        raise MalformedStateError(f"State has no {STATE_REDIRECT_KEY}: {raw!r}")

    try:
        parts = urlsplit(redirect_url)
        hostname = parts.hostname
    except ValueError:
        raise MalformedStateError(f"Invalid {STATE_REDIRECT_KEY}: {redirect_url!r}")

    if parts.scheme not in ("http", "https") or not hostname:
        raise MalformedStateError(f"Invalid {STATE_REDIRECT_KEY}: {redirect_url!r}")

    return AuthorizationState(redirect_url=redirect_url)


def build_forward_url(
    redirect_url: str,
    state: str,
    code: str | None,
    extra_params: dict[str, str] | None = None,
) -> str:
    """
    Rewrite redirect_url to the callback path of that app.

    state and code are appended as received, after any query the
    redirect URL already has.
    """
    parts = urlsplit(redirect_url)

    params = [("state", state)]
    if code is not None:
        params.append(("code", code))
    for name in FORWARDED_ERROR_PARAMS:
        if extra_params and extra_params.get(name):
            params.append((name, extra_params[name]))

    query = urlencode(params)
    if parts.query:
        query = f"{parts.query}&{query}"

    return urlunsplit((parts.scheme, parts.netloc, CALLBACK_PATH, query, parts.fragment))


def route_callback(
    request_host: str | None,
    state: str | None,
    code: str | None,
    extra_params: dict[str, str] | None = None,
) -> RoutingDecision:
    """
    Decide whether this app completes the callback or forwards it.

    Args:
        request_host: Hostname the callback request was sent to
        state: Raw state query parameter
        code: Raw authorization code query parameter
        extra_params: Other callback parameters (provider errors)

    Returns:
        RoutingDecision, local when the state origin is this host

    Raises:
        MalformedStateError: If the state cannot be decoded
    """
    authorization_state = parse_state(state)
    target_host = urlsplit(authorization_state.redirect_url).hostname

    if request_host and target_host == request_host.lower():
        return RoutingDecision(action="local")

    target_url = build_forward_url(
        authorization_state.redirect_url, state, code, extra_params
    )
    logger.info(f"Forwarding OAuth callback from {request_host} to {target_host}")
    return RoutingDecision(action="forward", target_url=target_url)
