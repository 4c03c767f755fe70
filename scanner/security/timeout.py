"""Scan Budget - Transport timeouts and the wall-clock budget around a scan."""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from common.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_SCAN_TIMEOUT,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TimeoutConfig:
    """Per-request transport timeouts."""

    connect: float = DEFAULT_CONNECT_TIMEOUT  # Connection timeout in seconds
    read: float = DEFAULT_READ_TIMEOUT  # Read timeout in seconds

    def to_httpx_timeout(self) -> httpx.Timeout:
        """Convert to an httpx timeout."""
        return httpx.Timeout(
            connect=self.connect,
            read=self.read,
            write=self.read,  # Use read timeout for write
            pool=self.connect,
        )


class ScanBudget:
    """
    Wall-clock budget wrapping a whole scan.

    The budget is not per probe: when it runs out the remaining work is
    abandoned and nothing computed so far is returned.
    """

    def __init__(self, default_timeout: float = DEFAULT_SCAN_TIMEOUT) -> None:
        self._default_timeout = default_timeout
        self._host_timeouts: dict[str, float] = {}
        self._expired = 0
        self._completed = 0

    def set_timeout(self, host: str, timeout: float) -> None:
        """Set a custom budget for a host."""
        self._host_timeouts[host.lower()] = timeout

    def get_timeout(self, host: str | None = None) -> float:
        if host and host.lower() in self._host_timeouts:
            return self._host_timeouts[host.lower()]
        return self._default_timeout

    async def execute_with_timeout(
        self,
        coro: Awaitable[T],
        timeout: float | None = None,
        host: str | None = None,
    ) -> T:
        """
        Execute a coroutine within the budget.

        Args:
            coro: Coroutine to execute
            timeout: Optional budget override
            host: Optional host for a custom budget

        Returns:
            Coroutine result

        Raises:
            TimeoutError: If the budget is exceeded
        """
        if timeout is None:
            timeout = self.get_timeout(host)
        return await asyncio.wait_for(coro, timeout=timeout)

    async def run_or_abandon(
        self,
        coro: Awaitable[T],
        timeout: float | None = None,
        host: str | None = None,
    ) -> T | None:
        """Execute within the budget, returning None once it is exceeded."""
        try:
            result = await self.execute_with_timeout(coro, timeout=timeout, host=host)
        except TimeoutError:
            self._expired += 1
            logger.debug(f"Scan budget exceeded for {host or 'scan'}; abandoning")
            return None
        self._completed += 1
        return result

    def get_stats(self) -> dict[str, Any]:
        """Get scan budget statistics."""
        return {
            "default_timeout": self._default_timeout,
            "custom_timeouts": len(self._host_timeouts),
            "completed": self._completed,
            "expired": self._expired,
        }
