"""Tests for the reflected parameters plugin."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import EchoServer
from plugins.vulns.reflected_params import ReflectedParams, __vuln_info__
from scanner.config import ScanConfig


def echo_client(server: EchoServer) -> MagicMock:
    client = MagicMock()
    client.send = server
    return client


class TestReflectedParams:
    """Tests for ReflectedParams.verify."""

    def test_vuln_info(self) -> None:
        """Test plugin metadata."""
        assert __vuln_info__["vuln_id"] == "REFLECTED-PARAMS"
        assert "xss" in __vuln_info__["tags"]

    @pytest.mark.asyncio
    async def test_reports_reflection(self) -> None:
        """Test a reflecting target is reported vulnerable."""
        plugin = ReflectedParams(ScanConfig(check_response_header_reflections=False))
        client = echo_client(EchoServer())
        sink = AsyncMock()

        result = await plugin.verify("https://example.com/search?q=hello", client, sink=sink)

        assert result["vulnerable"] is True
        assert result["severity"] == "medium"
        assert result["details"][0]["name"] == "q"
        assert result["details"][0]["allowed_chars"] == ["<"]
        sink.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_escaping_target(self) -> None:
        """Test an escaping target is not vulnerable."""
        plugin = ReflectedParams(ScanConfig(check_response_header_reflections=False))
        client = echo_client(EchoServer(escape=True))

        result = await plugin.verify("https://example.com/search?q=hello", client)

        assert result["vulnerable"] is False
        assert result["details"] == []

    @pytest.mark.asyncio
    async def test_session_tracks_and_cleanup_resets(self) -> None:
        """Test parameters are tested once per session until cleanup."""
        plugin = ReflectedParams(ScanConfig(check_response_header_reflections=False))
        client = echo_client(EchoServer())
        target = "https://example.com/search?q=hello"

        assert (await plugin.verify(target, client))["vulnerable"] is True
        assert (await plugin.verify(target, client))["vulnerable"] is False

        await plugin.cleanup(target)
        assert (await plugin.verify(target, client))["vulnerable"] is True

    @pytest.mark.asyncio
    async def test_baseline_failure(self) -> None:
        """Test a failed baseline request is reported as an error."""
        client = MagicMock()
        client.send = AsyncMock(side_effect=httpx.ConnectError("connection refused"))

        result = await ReflectedParams().verify("https://example.com/?q=hello", client)

        assert result["vulnerable"] is False
        assert "connection refused" in result["error"]
