# maintainer_api/services/rate_limiter.py
"""
Fixed-window rate limiter, one instance per tier.

Counting is done by the ``limits`` fixed-window strategy over in-memory
storage: a client's window starts with its first request and lasts the
tier's expiry. Every hit is counted before the decision; hits beyond the
limit inside the window are rejected. When the window has elapsed the next
hit opens a fresh window. Expired windows are dropped by the storage.

This class only adds the tier name, its client-facing message and
admitted/rejected metrics.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Union

from limits import RateLimitItem, parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter as FixedWindowStrategy

from maintainer_api.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitDecision:
    """Result of a single hit against one tier"""
    tier: str
    allowed: bool
    limit: int
    remaining: int
    reset_after: int       # seconds until the window closes
    window_seconds: int

    @property
    def policy(self) -> str:
        """Value for the RateLimit-Policy header, e.g. ``30;w=60``"""
        return f"{self.limit};w={self.window_seconds}"


class FixedWindowRateLimiter:
    """Counts requests per client key inside fixed windows"""

    def __init__(
        self,
        name: str,
        limit: Union[str, RateLimitItem],
        message: Optional[str] = None,
        storage: Optional[Storage] = None
    ):
        self.item = parse(limit) if isinstance(limit, str) else limit
        self.name = name
        self.max_requests = self.item.amount
        self.window_seconds = self.item.get_expiry()
        self.message = message
        self.storage = storage or MemoryStorage()
        self.strategy = FixedWindowStrategy(self.storage)

        # Metrics
        self._metrics_lock = threading.Lock()
        self._admitted = 0
        self._rejected = 0

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it is admitted"""
        allowed = self.strategy.hit(self.item, self.name, key)
        reset_time, remaining = self.strategy.get_window_stats(self.item, self.name, key)

        with self._metrics_lock:
            if allowed:
                self._admitted += 1
            else:
                self._rejected += 1

        return RateLimitDecision(
            tier=self.name,
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(int(remaining), 0),
            reset_after=max(math.ceil(reset_time - time.time()), 0),
            window_seconds=self.window_seconds,
        )

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one client's window, or all of them"""
        if key is None:
            self.storage.reset()
        else:
            self.strategy.clear(self.item, self.name, key)
        logger.debug("rate_limit_reset", tier=self.name, client=key)

    def get_metrics(self) -> Dict[str, int]:
        with self._metrics_lock:
            return {
                "admitted": self._admitted,
                "rejected": self._rejected,
            }
