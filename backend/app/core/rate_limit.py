"""Fixed-window attempt counters keyed by action and client address."""

import logging

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


class AttemptLimiter:
    def __init__(self):
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    def is_limited(self, action: str, client_address: str, limit: int = 5, seconds: int = 300) -> bool:
        """Count one attempt and report whether it exceeds `limit` within the window."""
        item = RateLimitItemPerSecond(limit, seconds)
        allowed = self.strategy.hit(item, action, client_address or "unknown")
        if not allowed:
            logger.warning("Rate limit reached for %s from %s", action, client_address)
        return not allowed

    def reset(self) -> None:
        self.storage.reset()


attempt_limiter = AttemptLimiter()
