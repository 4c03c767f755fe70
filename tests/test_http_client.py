"""Tests for the httpx-backed probe transport."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from common.models import HttpRequest
from plugins.tools.http_client import HttpClient


def echo_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"Content-Type": "text/html"},
        text=f"<p>{request.url.query.decode()}</p>",
    )


class TestHttpClient:
    """Tests for HttpClient."""

    @pytest.mark.asyncio
    async def test_send_snapshots_response(self) -> None:
        """Test a request is sent and the response snapshotted."""
        client = HttpClient(transport=httpx.MockTransport(echo_handler))

        response = await client.send(HttpRequest.from_url("https://example.com/search?q=abc"))
        await client.close()

        assert response.get_code() == 200
        assert response.get_body() == "<p>q=abc</p>"
        assert response.get_header("content-type") == ["text/html"]
        assert client.get_stats() == {"sent": 1, "retries": 0}

    @pytest.mark.asyncio
    async def test_mutated_body_is_sent(self) -> None:
        """Test the request body and headers go out as set."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        client = HttpClient(transport=httpx.MockTransport(handler))
        request = HttpRequest.from_url(
            "https://example.com/form",
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded", "Content-Length": "3"},
            body="a=1",
        )
        request.set_body("a=12345")

        await client.send(request)
        await client.close()

        assert seen[0].method == "POST"
        assert seen[0].content == b"a=12345"
        assert seen[0].headers["Content-Length"] == "7"

    @pytest.mark.asyncio
    async def test_redirects_are_not_followed(self) -> None:
        """Test a redirect response is returned as-is."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "/next?q=abc"})

        client = HttpClient(transport=httpx.MockTransport(handler))

        response = await client.get("https://example.com/go?q=abc")
        await client.close()

        assert response.get_code() == 302
        assert response.get_header("Location") == ["/next?q=abc"]

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self) -> None:
        """Test transient transport errors are retried."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, text="ok")

        client = HttpClient(transport=httpx.MockTransport(handler))
        with patch("plugins.tools.http_client.asyncio.sleep", new=AsyncMock()):
            response = await client.get("https://example.com/")
        await client.close()

        assert response.get_body() == "ok"
        assert client.get_stats() == {"sent": 1, "retries": 2}

    @pytest.mark.asyncio
    async def test_raises_after_last_attempt(self) -> None:
        """Test the last transport error propagates."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = HttpClient(max_retries=2, transport=httpx.MockTransport(handler))
        with patch("plugins.tools.http_client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.ConnectError):
                await client.get("https://example.com/")
        await client.close()

        assert client.get_stats()["retries"] == 1
