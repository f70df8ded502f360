"""
Org credential resolution and hand-off to the Salesforce CLI.

The credential is an SFDX auth URL (force://<clientId>:<secret>:<refreshToken>@<instance>).
It comes from the SFDX_AUTH_URL environment variable on long-lived apps, or
from a file the buildpack writes for review apps. The CLI only reads it from
a file, so each request writes it to its own temporary file which is
removed as soon as the CLI has stored it.
"""

import asyncio
import logging
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from oauth_bridge.core.errors import BridgeError

logger = logging.getLogger(__name__)

CREDENTIAL_FILE_PREFIX = "sfdxurl-"


class CredentialNotFoundError(BridgeError):
    """No credential is configured for this app."""


class CredentialWriteError(BridgeError):
    """The credential could not be written for the CLI."""


def mask_secret(secret: str, show_chars: int = 4) -> str:
    """Mask a secret value for safe logging.

    Examples:
        >>> mask_secret("force://PlatformCLI::5Aep861@example.my.salesforce.com")
        'forc****...****.com'
        >>> mask_secret("short")
        '****'
    """
    if not secret or len(secret) <= show_chars * 2:
        return "****"
    return f"{secret[:show_chars]}****...****{secret[-show_chars:]}"


def credential_source_path(
    directory: str | Path,
    instance_name: str,
    prefix: str = "ra-",
) -> Path:
    """Path of the per-instance credential file written by the buildpack."""
    return Path(directory) / f"{prefix}{instance_name}"


async def resolve_credential(
    instance_name: str | None,
    *,
    env_credential: str | None,
    directory: str | Path,
    prefix: str = "ra-",
) -> str:
    """
    Resolve the org credential for this app.

    Args:
        instance_name: Public name of this app (HEROKU_APP_NAME)
        env_credential: Value of SFDX_AUTH_URL, preferred when set
        directory: Directory holding per-instance credential files
        prefix: File name prefix of per-instance credential files

    Returns:
        The credential string

    Raises:
        CredentialNotFoundError: If neither source yields a credential
    """
    if env_credential and env_credential.strip():
        logger.info("Using org credential from SFDX_AUTH_URL")
        return env_credential.strip()

    if not instance_name:
        raise CredentialNotFoundError(
            "SFDX_AUTH_URL is not set and HEROKU_APP_NAME is unknown"
        )

    path = credential_source_path(directory, instance_name, prefix)
    try:
        credential = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialNotFoundError(
            f"SFDX_AUTH_URL is not set and {path} cannot be read: {e}"
        )

    credential = credential.strip()
    if not credential:
        raise CredentialNotFoundError(f"SFDX_AUTH_URL is not set and {path} is empty")

    logger.info(f"Using org credential from {path}")
    return credential


def _write_credential_file(credential: str, directory: str | None) -> Path:
    if directory:
        Path(directory).mkdir(parents=True, exist_ok=True)

    # mkstemp creates the file with mode 0600
    fd, name = tempfile.mkstemp(prefix=CREDENTIAL_FILE_PREFIX, dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(credential)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        os.unlink(name)
        raise
    return Path(name)


def _remove_credential_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove credential file {path}: {e}")


@asynccontextmanager
async def credential_file(
    credential: str,
    directory: str | None = None,
) -> AsyncIterator[Path]:
    """
    Write the credential to a file unique to this request.

    The file is fully written and synced to disk before its path is
    yielded, and removed when the block exits, whatever the outcome.

    Args:
        credential: The credential string
        directory: Where to create the file (system temp dir when None)

    Yields:
        Path of the credential file

    Raises:
        CredentialWriteError: If the file cannot be written
    """
    try:
        path = await asyncio.to_thread(_write_credential_file, credential, directory)
    except (OSError, UnicodeEncodeError) as e:
        raise CredentialWriteError(f"Cannot write credential file: {e}")

    logger.debug(f"Wrote credential {mask_secret(credential)} to {path}")
    try:
        yield path
    finally:
        await asyncio.to_thread(_remove_credential_file, path)


@asynccontextmanager
async def materialize_credential(
    instance_name: str | None,
    *,
    env_credential: str | None,
    directory: str | Path,
    prefix: str = "ra-",
    work_dir: str | None = None,
) -> AsyncIterator[Path]:
    """Resolve the credential and write it for the CLI in one step."""
    credential = await resolve_credential(
        instance_name,
        env_credential=env_credential,
        directory=directory,
        prefix=prefix,
    )
    async with credential_file(credential, work_dir) as path:
        yield path
