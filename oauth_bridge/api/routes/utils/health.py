import logging
import shutil

from fastapi import APIRouter

from oauth_bridge.api.deps import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health-check")
async def health_check(settings: SettingsDep):
    """
    Health check endpoint that verifies the Salesforce CLI can be found.
    """
    cli_path = shutil.which(settings.SFDX_CLI_PATH)
    if cli_path:
        cli_status = "healthy"
        cli_message = f"Salesforce CLI found at {cli_path}"
    else:
        logger.error(f"Salesforce CLI health check failed: {settings.SFDX_CLI_PATH} not found")
        cli_status = "unhealthy"
        cli_message = "Salesforce CLI not found"

    # Overall status is healthy only if the CLI is available
    overall_status = "healthy" if cli_status == "healthy" else "unhealthy"

    return {
        "status": overall_status,
        "message": "Login bridge is running",
        "version": settings.APP_VERSION,
        "cli": {"status": cli_status, "message": cli_message},
    }
