"""Per-client upload rate limiting.

One limiter instance lives on ``app.state``; nothing is module-global, so
tests can build their own and reset it freely.
"""
import logging
import time
from collections import deque
from typing import Callable

from fastapi import Request

from filedrop.errors import RateLimited

logger = logging.getLogger(__name__)


class UploadRateLimiter:
    """Sliding-window counter keyed by client address.

    Expired hits are swept on every access, and clients whose window has
    emptied are dropped from the map entirely.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def hit(self, client: str) -> bool:
        """Record an attempt. Returns False when ``client`` is over the limit."""
        if not self.enabled:
            return True

        now = self._clock()
        self._sweep(now)
        hits = self._hits.setdefault(client, deque())
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    def tracked_clients(self) -> int:
        self._sweep(self._clock())
        return len(self._hits)

    def reset(self) -> None:
        self._hits.clear()

    def _sweep(self, now: float) -> None:
        cutoff = now - self.window_seconds
        for client in list(self._hits):
            hits = self._hits[client]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if not hits:
                del self._hits[client]


async def enforce_upload_rate_limit(request: Request) -> None:
    """FastAPI dependency guarding the upload route."""
    limiter: UploadRateLimiter = request.app.state.upload_rate_limiter
    client = request.client.host if request.client else "unknown"
    if not limiter.hit(client):
        logger.warning("Upload rate limit hit for %s", client)
        raise RateLimited()
