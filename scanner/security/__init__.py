"""Security module - Probe throttling and the scan budget."""

from scanner.security.rate_limiter import RateLimiter, TokenBucket
from scanner.security.timeout import ScanBudget, TimeoutConfig

__all__ = [
    "RateLimiter",
    "TokenBucket",
    "ScanBudget",
    "TimeoutConfig",
]
