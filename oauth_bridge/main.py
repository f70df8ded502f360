"""Salesforce Login Bridge - log in with Salesforce, land in the app's org."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from oauth_bridge.api.routes.router import router
from oauth_bridge.core.config import settings
from oauth_bridge.core.errors import GENERIC_ERROR_MESSAGE, BridgeError

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: log the configuration problems we can see early."""
    logger.info(f"Starting {settings.PROJECT_NAME} {settings.APP_VERSION}")

    if not settings.OAUTH_SALESFORCE_CLIENT_ID or not settings.OAUTH_SALESFORCE_CLIENT_SECRET:
        logger.warning("OAUTH_SALESFORCE_CLIENT_ID/SECRET not set, logins will fail")
    if not settings.public_origin:
        logger.warning(
            "Neither PUBLIC_ORIGIN nor HEROKU_APP_NAME is set, "
            "the origin of each request will be used"
        )
    if not settings.SFDX_AUTH_URL and not settings.HEROKU_APP_NAME:
        logger.warning("No SFDX_AUTH_URL and no HEROKU_APP_NAME, no org credential available")

    yield

    logger.info(f"Stopping {settings.PROJECT_NAME}")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)


async def internal_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Log the failure in full, tell the client nothing about it."""
    detail = exc.message if isinstance(exc, BridgeError) else str(exc)
    logger.error(
        f"Login failed on {request.url.path}: {type(exc).__name__}: {detail}",
        exc_info=exc,
    )
    return PlainTextResponse(GENERIC_ERROR_MESSAGE, status_code=status.HTTP_403_FORBIDDEN)


# BridgeError is answered by the exception middleware; anything else reaches
# Starlette's server error middleware, which uses the same handler
app.add_exception_handler(BridgeError, internal_error_handler)
app.add_exception_handler(Exception, internal_error_handler)


app.include_router(router)


def run() -> None:
    """Console entry point: serve the app on $PORT."""
    import uvicorn

    uvicorn.run(
        "oauth_bridge.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
