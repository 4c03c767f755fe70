"""HTTP Client Tool - Sends scanner probes over httpx."""

import asyncio
import logging

import httpx

from common.models import HttpRequest, HttpResponse
from scanner.security import RateLimiter, TimeoutConfig

logger = logging.getLogger(__name__)


class HttpClient:
    """HTTP client with connection pooling, retries and per-host throttling."""

    def __init__(
        self,
        timeout: TimeoutConfig | None = None,
        max_retries: int = 3,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout or TimeoutConfig()
        self._max_retries = max_retries
        self._rate_limiter = rate_limiter or RateLimiter()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._sent = 0
        self._retries = 0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            # Redirects are not followed: Location is itself a reflection sink
            self._client = httpx.AsyncClient(
                timeout=self._timeout.to_httpx_timeout(),
                follow_redirects=False,
                verify=False,
                transport=self._transport,
            )
        return self._client

    async def send(self, request: HttpRequest) -> HttpResponse:
        """
        Send one request and snapshot the response.

        Args:
            request: Request to send

        Returns:
            Response snapshot

        Raises:
            httpx.TransportError: If every attempt failed
        """
        client = await self._get_client()
        await self._rate_limiter.wait(request.get_host())
        for attempt in range(self._max_retries):
            try:
                response = await client.send(request.to_httpx())
                self._sent += 1
                return HttpResponse.from_httpx(response)
            except httpx.TransportError as e:
                if attempt == self._max_retries - 1:
                    raise
                self._retries += 1
                logger.debug(f"Retrying {request.method} {request.url} after {e!r}")
                await asyncio.sleep(0.5 * (attempt + 1))

        raise RuntimeError("Unreachable")

    async def get(self, url: str, headers: dict[str, str] | None = None) -> HttpResponse:
        """Send GET request."""
        return await self.send(HttpRequest.from_url(url, headers=headers))

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def get_stats(self) -> dict[str, int]:
        return {"sent": self._sent, "retries": self._retries}
