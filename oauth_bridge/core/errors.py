"""
Base error types shared by the login bridge services.

Every failure while completing a login is a BridgeError. The application
registers a single handler (see oauth_bridge.main) that logs the detail and
answers with GENERIC_ERROR_MESSAGE, so provider and CLI internals never
reach the browser.
"""

GENERIC_ERROR_MESSAGE = "Unexpected internal error"


class BridgeError(Exception):
    """Base class for errors that abort a login request."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BridgeTimeoutError(BridgeError, TimeoutError):
    """A provider call or CLI invocation did not finish in time."""

    def __init__(self, message: str, timeout: float | None = None):
        self.timeout = timeout
        super().__init__(message)
