"""
Salesforce CLI wrapper.

Turns an org credential into a one-time frontdoor login URL with two
CLI calls, run one after the other:

    sfdx force:auth:sfdxurl:store --setalias <alias> --sfdxurlfile <file> --noprompt --json
    sfdx force:org:open --targetusername <alias> --urlonly --json

Every request stores its credential under its own alias so concurrent
logins cannot open each other's org.
"""

import asyncio
import json
import logging
import os
import uuid
from pathlib import Path

from oauth_bridge.core.config import Settings
from oauth_bridge.core.errors import BridgeError, BridgeTimeoutError

logger = logging.getLogger(__name__)

ALIAS_PREFIX = "login-bridge-"

# Make the CLI print errors as JSON on stdout and skip its update check
CLI_ENVIRONMENT = {
    "SFDX_JSON_TO_STDOUT": "true",
    "SFDX_DISABLE_AUTOUPDATE": "true",
}


class SfdxCliError(BridgeError):
    """Base error for a failed CLI call."""

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


class CliStoreError(SfdxCliError):
    """force:auth:sfdxurl:store failed."""


class CliOpenError(SfdxCliError):
    """force:org:open failed or returned no URL."""


def _error_detail(stdout: bytes, stderr: bytes) -> str:
    """Best description of a CLI failure: the JSON message, else raw output."""
    try:
        payload = json.loads(stdout)
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
    except ValueError:
        pass
    return stderr.decode(errors="replace").strip() or stdout.decode(errors="replace").strip()


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill a CLI process that is still running and reap it."""
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        # Exited between the timeout and the kill
        pass
    await process.wait()


class SfdxCli:
    """Runs Salesforce CLI commands with JSON output and a timeout."""

    def __init__(self, executable: str = "sfdx", timeout: float = 120.0):
        self.executable = executable
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SfdxCli":
        return cls(executable=settings.SFDX_CLI_PATH, timeout=settings.SFDX_CLI_TIMEOUT)

    @staticmethod
    def new_alias() -> str:
        """Alias unique to one login request."""
        return f"{ALIAS_PREFIX}{uuid.uuid4().hex[:12]}"

    async def _run(self, args: list[str], error_cls: type[SfdxCliError]) -> dict:
        """
        Run one CLI command and return its parsed JSON output.

        Raises:
            error_cls: If the CLI cannot be started, exits non-zero, or
                prints something other than a JSON object
            BridgeTimeoutError: If the command does not finish in time
        """
        cmd = [self.executable, *args]
        logger.debug(f"Running {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **CLI_ENVIRONMENT},
            )
        except OSError as e:
            raise error_cls(f"Cannot run {self.executable}: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError:
            await _terminate(process)
            raise BridgeTimeoutError(
                f"{self.executable} {args[0]} timed out after {self.timeout} seconds",
                self.timeout,
            )
        except BaseException:
            # Request cancelled (client went away); do not leave the CLI running
            await _terminate(process)
            raise

        if process.returncode != 0:
            raise error_cls(
                f"{self.executable} {args[0]} exited with {process.returncode}: "
                f"{_error_detail(stdout, stderr)}",
                process.returncode,
            )

        try:
            payload = json.loads(stdout)
        except ValueError:
            raise error_cls(
                f"{self.executable} {args[0]} printed invalid JSON: "
                f"{stdout.decode(errors='replace')[:200]!r}",
                process.returncode,
            )

        if not isinstance(payload, dict):
            raise error_cls(
                f"{self.executable} {args[0]} printed unexpected JSON: {payload!r}",
                process.returncode,
            )

        return payload

    async def store_credential(self, alias: str, credential_path: Path | str) -> dict:
        """
        Authorize the org from a credential file and save it under alias.

        Args:
            alias: Alias to store the org authorization under
            credential_path: File holding the SFDX auth URL

        Returns:
            The "result" object of the CLI output

        Raises:
            CliStoreError: If the CLI call fails
            BridgeTimeoutError: If the CLI call does not finish in time
        """
        payload = await self._run(
            [
                "force:auth:sfdxurl:store",
                "--setalias",
                alias,
                "--sfdxurlfile",
                str(credential_path),
                "--noprompt",
                "--json",
            ],
            CliStoreError,
        )
        result = payload.get("result") or {}
        logger.info(
            f"Stored org authorization for {result.get('username', 'unknown user')} as {alias}"
        )
        return result

    async def open_session(self, alias: str) -> str:
        """
        Get a one-time frontdoor URL for the org stored under alias.

        Args:
            alias: Alias passed to store_credential

        Returns:
            Login URL that opens the org without credentials

        Raises:
            CliOpenError: If the CLI call fails or returns no URL
            BridgeTimeoutError: If the CLI call does not finish in time
        """
        payload = await self._run(
            ["force:org:open", "--targetusername", alias, "--urlonly", "--json"],
            CliOpenError,
        )

        result = payload.get("result")
        url = result.get("url") if isinstance(result, dict) else None
        if not isinstance(url, str) or not url:
            raise CliOpenError(f"force:org:open returned no result.url for {alias}")

        return url
