"""
Tests for the Salesforce CLI wrapper.

The CLI is never run: asyncio.create_subprocess_exec is patched to return
a mock process with canned output.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from oauth_bridge.core.errors import BridgeTimeoutError
from oauth_bridge.services.sfdx_cli import ALIAS_PREFIX, CliOpenError, CliStoreError, SfdxCli

SESSION_URL = "https://org.my.salesforce.com/secret"


def _mock_process(stdout: bytes, returncode: int = 0, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    process.returncode = returncode
    return process


class TestStoreCredential:
    """Tests for force:auth:sfdxurl:store."""

    @pytest.mark.asyncio
    async def test_store_credential_runs_cli(self):
        cli = SfdxCli("/app/vendor/sfdx/cli/bin/sfdx", timeout=10)
        process = _mock_process(
            json.dumps({"status": 0, "result": {"username": "admin@test-org.com"}}).encode()
        )

        with patch("asyncio.create_subprocess_exec", return_value=process) as mock_exec:
            result = await cli.store_credential("login-bridge-abc", "/tmp/sfdxurl-123")

        assert result == {"username": "admin@test-org.com"}
        assert mock_exec.call_args.args == (
            "/app/vendor/sfdx/cli/bin/sfdx",
            "force:auth:sfdxurl:store",
            "--setalias",
            "login-bridge-abc",
            "--sfdxurlfile",
            "/tmp/sfdxurl-123",
            "--noprompt",
            "--json",
        )
        env = mock_exec.call_args.kwargs["env"]
        assert env["SFDX_JSON_TO_STDOUT"] == "true"

    @pytest.mark.asyncio
    async def test_store_credential_non_zero_exit(self):
        cli = SfdxCli()
        process = _mock_process(
            b'{"status": 1, "name": "InvalidSfdxAuthUrl", "message": "Invalid SFDX auth URL"}',
            returncode=1,
        )

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(CliStoreError, match="Invalid SFDX auth URL") as exc_info:
                await cli.store_credential("login-bridge-abc", "/tmp/sfdxurl-123")

        assert exc_info.value.returncode == 1

    @pytest.mark.asyncio
    async def test_store_credential_non_zero_exit_uses_stderr(self):
        cli = SfdxCli()
        process = _mock_process(b"", returncode=127, stderr=b"sfdx: command failed")

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(CliStoreError, match="command failed"):
                await cli.store_credential("login-bridge-abc", "/tmp/sfdxurl-123")

    @pytest.mark.asyncio
    async def test_store_credential_malformed_json(self):
        cli = SfdxCli()
        process = _mock_process(b"Warning: update available\n{not json")

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(CliStoreError, match="invalid JSON"):
                await cli.store_credential("login-bridge-abc", "/tmp/sfdxurl-123")

    @pytest.mark.asyncio
    async def test_store_credential_cli_missing(self):
        cli = SfdxCli("does-not-exist")

        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("does-not-exist")):
            with pytest.raises(CliStoreError, match="Cannot run"):
                await cli.store_credential("login-bridge-abc", "/tmp/sfdxurl-123")


class TestOpenSession:
    """Tests for force:org:open."""

    @pytest.mark.asyncio
    async def test_open_session_returns_url(self):
        cli = SfdxCli()
        process = _mock_process(json.dumps({"status": 0, "result": {"url": SESSION_URL}}).encode())

        with patch("asyncio.create_subprocess_exec", return_value=process) as mock_exec:
            url = await cli.open_session("login-bridge-abc")

        assert url == SESSION_URL
        assert mock_exec.call_args.args == (
            "sfdx",
            "force:org:open",
            "--targetusername",
            "login-bridge-abc",
            "--urlonly",
            "--json",
        )

    @pytest.mark.parametrize(
        "payload",
        [
            {"status": 0},
            {"status": 0, "result": None},
            {"status": 0, "result": {"orgId": "00D000000000001EAA"}},
            {"status": 0, "result": {"url": ""}},
            {"status": 0, "result": "https://org.my.salesforce.com"},
        ],
    )
    @pytest.mark.asyncio
    async def test_open_session_without_url(self, payload):
        cli = SfdxCli()
        process = _mock_process(json.dumps(payload).encode())

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(CliOpenError, match="result.url"):
                await cli.open_session("login-bridge-abc")

    @pytest.mark.asyncio
    async def test_open_session_non_zero_exit(self):
        cli = SfdxCli()
        process = _mock_process(b'{"status": 1, "message": "No org found"}', returncode=1)

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(CliOpenError, match="No org found"):
                await cli.open_session("login-bridge-abc")

    @pytest.mark.asyncio
    async def test_open_session_json_array(self):
        cli = SfdxCli()
        process = _mock_process(b"[]")

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(CliOpenError, match="unexpected JSON"):
                await cli.open_session("login-bridge-abc")


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        """A CLI call past its timeout is killed and reported as a timeout."""
        cli = SfdxCli(timeout=3)
        process = _mock_process(b"")
        process.returncode = None

        async def mock_wait_for(coro, timeout):
            coro.close()
            raise TimeoutError

        with patch("asyncio.create_subprocess_exec", return_value=process), \
             patch("asyncio.wait_for", side_effect=mock_wait_for):
            with pytest.raises(BridgeTimeoutError) as exc_info:
                await cli.store_credential("login-bridge-abc", "/tmp/sfdxurl-123")

        process.kill.assert_called_once()
        assert exc_info.value.timeout == 3
        assert not isinstance(exc_info.value, CliStoreError)

    @pytest.mark.asyncio
    async def test_timeout_when_process_already_exited(self):
        """A CLI that exits right after the timeout still reports a timeout."""
        cli = SfdxCli(timeout=3)
        process = _mock_process(b"")
        process.returncode = None
        process.kill.side_effect = ProcessLookupError

        async def mock_wait_for(coro, timeout):
            coro.close()
            raise TimeoutError

        with patch("asyncio.create_subprocess_exec", return_value=process), \
             patch("asyncio.wait_for", side_effect=mock_wait_for):
            with pytest.raises(BridgeTimeoutError):
                await cli.open_session("login-bridge-abc")

        process.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancelled_call_kills_process(self):
        """A cancelled request does not leave the CLI running."""
        cli = SfdxCli(timeout=3)
        process = _mock_process(b"")
        process.returncode = None

        async def mock_wait_for(coro, timeout):
            coro.close()
            raise asyncio.CancelledError

        with patch("asyncio.create_subprocess_exec", return_value=process), \
             patch("asyncio.wait_for", side_effect=mock_wait_for):
            with pytest.raises(asyncio.CancelledError):
                await cli.store_credential("login-bridge-abc", "/tmp/sfdxurl-123")

        process.kill.assert_called_once()
        process.wait.assert_awaited_once()


def test_new_alias_is_unique():
    aliases = {SfdxCli.new_alias() for _ in range(50)}

    assert len(aliases) == 50
    assert all(alias.startswith(ALIAS_PREFIX) for alias in aliases)
