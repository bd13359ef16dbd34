"""Per-client fixed-window rate limiting."""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

from .config import config

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    """Request count for one client in the current window."""
    count: int
    expires_at: float


@dataclass(frozen=True)
class Admission:
    """Outcome of an admission check."""
    allowed: bool
    retry_after: int = 0
    count: int = 0


class RateLimiter:
    """
    Fixed-window request counter keyed by client identifier.

    State is in-process only: entries for inactive clients stay in memory
    until the same client shows up again after its window expired. Swap
    the instance (see `api.get_rate_limiter`) for a shared store when
    running more than one process.
    """

    def __init__(
        self,
        window: float = 60.0,
        max_requests: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window = window
        self.max_requests = max_requests
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = asyncio.Lock()

    async def admit(self, client_id: str) -> Admission:
        """Count a request for `client_id` and decide whether to let it through."""
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(client_id)

            if entry is None or now >= entry.expires_at:
                self._entries[client_id] = RateLimitEntry(count=1, expires_at=now + self.window)
                return Admission(allowed=True, count=1)

            if entry.count < self.max_requests:
                entry.count += 1
                return Admission(allowed=True, count=entry.count)

            retry_after = math.ceil(entry.expires_at - now)
            logger.info(f"Rate limited client {client_id}: retry in {retry_after}s")
            return Admission(allowed=False, retry_after=retry_after, count=entry.count)

    def get(self, client_id: str) -> Optional[RateLimitEntry]:
        return self._entries.get(client_id)

    @property
    def client_count(self) -> int:
        """Number of tracked clients."""
        return len(self._entries)


def client_id_from(request: Request) -> str:
    """
    Identify the caller for rate limiting.

    Uses the first address in X-Forwarded-For when behind a proxy,
    otherwise the connection address.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


# Global instance
limiter = RateLimiter(window=config.rate_limit_window, max_requests=config.rate_limit_max)
