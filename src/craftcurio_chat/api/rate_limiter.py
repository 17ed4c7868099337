"""Sliding window rate limiter for chatbot messages."""

import asyncio
import time
from typing import Dict, List, Optional

from fastapi import Request
from structlog import get_logger

from ..domain.models import User

logger = get_logger()


class RateLimitExceeded(Exception):
    """Exception raised when rate limit is exceeded."""
    pass


class RateLimiter:
    """Per-key sliding window limiter."""

    def __init__(self, rate_limit: int = 20, time_window: int = 600):
        self.rate_limit = rate_limit
        self.time_window = time_window  # in seconds
        self.requests: Dict[str, List[float]] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None
        logger.info(
            "rate_limiter_initialized",
            rate_limit=rate_limit,
            time_window=time_window
        )

    async def start(self):
        """Start the rate limiter cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._periodic_cleanup())

    async def stop(self):
        """Stop the rate limiter cleanup task."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def _periodic_cleanup(self):
        """Periodically drop keys whose timestamps all fell out of the window."""
        while True:
            try:
                await asyncio.sleep(self.time_window)
                async with self._lock:
                    cutoff_time = time.time() - self.time_window
                    for key in list(self.requests.keys()):
                        self.requests[key] = [
                            ts for ts in self.requests[key]
                            if ts > cutoff_time
                        ]
                        if not self.requests[key]:
                            del self.requests[key]

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("rate_limiter_cleanup_error", error=str(e))

    async def check_rate_limit(self, key: str) -> None:
        """Record a request for ``key`` or raise if the window is full."""
        current_time = time.time()

        async with self._lock:
            cutoff_time = current_time - self.time_window
            timestamps = [ts for ts in self.requests.get(key, []) if ts > cutoff_time]

            if len(timestamps) >= self.rate_limit:
                self.requests[key] = timestamps
                logger.warning(
                    "rate_limit_exceeded",
                    key=key,
                    current_requests=len(timestamps),
                    rate_limit=self.rate_limit
                )
                raise RateLimitExceeded(
                    f"Rate limit of {self.rate_limit} requests per {self.time_window} seconds exceeded"
                )

            timestamps.append(current_time)
            self.requests[key] = timestamps

    async def get_remaining_requests(self, key: str) -> int:
        """Get remaining requests for the key."""
        async with self._lock:
            cutoff_time = time.time() - self.time_window
            current = [ts for ts in self.requests.get(key, []) if ts > cutoff_time]
            return max(0, self.rate_limit - len(current))


def rate_limit_key(request: Request, user: Optional[User] = None) -> str:
    """Limit signed-in users by id and guests by client address."""
    if user is not None:
        return f"user:{user.id}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"
