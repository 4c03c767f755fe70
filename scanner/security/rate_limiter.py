"""Probe Throttle - Token buckets limiting probe sends per host."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from common.constants import (
    DEFAULT_RATE_LIMIT_CAPACITY,
    DEFAULT_RATE_LIMIT_RATE,
)


@dataclass
class TokenBucket:
    """Token bucket for one host."""

    capacity: float = DEFAULT_RATE_LIMIT_CAPACITY
    rate: float = DEFAULT_RATE_LIMIT_RATE  # tokens per second
    _tokens: float = field(default=0.0, init=False)
    _last_update: float = field(default_factory=time.monotonic, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = self.capacity

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self.capacity, self._tokens + (now - self._last_update) * self.rate)
        self._last_update = now

    async def consume(self, tokens: float = 1.0) -> bool:
        """Take tokens if available; never waits."""
        async with self._lock:
            self._refill()
            if self._tokens < tokens:
                return False
            self._tokens -= tokens
            return True

    async def acquire(self, tokens: float = 1.0) -> None:
        """Wait until tokens can be taken."""
        while not await self.consume(tokens):
            async with self._lock:
                shortfall = tokens - self._tokens
            await asyncio.sleep(max(shortfall, 0.0) / self.rate)

    @property
    def available_tokens(self) -> float:
        return self._tokens


class RateLimiter:
    """Per-host probe throttle."""

    def __init__(
        self,
        capacity: float = DEFAULT_RATE_LIMIT_CAPACITY,
        rate: float = DEFAULT_RATE_LIMIT_RATE,
    ) -> None:
        self._capacity = capacity
        self._rate = rate
        self._buckets: dict[str, TokenBucket] = {}
        self._waits = 0

    def _bucket(self, host: str) -> TokenBucket:
        key = host.lower()
        if key not in self._buckets:
            self._buckets[key] = TokenBucket(capacity=self._capacity, rate=self._rate)
        return self._buckets[key]

    async def check(self, host: str) -> bool:
        """Take one token for a host without waiting."""
        return await self._bucket(host).consume()

    async def wait(self, host: str) -> None:
        """Block until a probe to ``host`` may be sent."""
        bucket = self._bucket(host)
        if not await bucket.consume():
            self._waits += 1
            await bucket.acquire()

    def reset(self, host: str | None = None) -> None:
        if host is None:
            self._buckets.clear()
        else:
            self._buckets.pop(host.lower(), None)

    def get_stats(self) -> dict[str, Any]:
        """Get throttle statistics."""
        return {
            "hosts": len(self._buckets),
            "capacity": self._capacity,
            "rate": self._rate,
            "throttled_sends": self._waits,
        }
