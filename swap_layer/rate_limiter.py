"""
Fixed-Window Rate Limiter

Request-admission gate keyed by caller identity:
- First request for a key (or first after the window expired) opens a new
  window with count = 1
- Requests inside the window are allowed while count < max_requests
- At capacity, requests are denied until the window resets (no partial refill)

Denials are not errors: is_allowed() simply returns False.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

import httpx

from swap_layer.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateWindow:
    """Request count and reset timestamp for one key. Replaced, never mutated in place."""
    count: int
    reset_time: float


class RateLimiter:
    """
    Fixed-window limiter, one window per key.

    Defaults: 100 requests per 60 seconds.
    """

    DEFAULT_WINDOW_SECONDS: float = 60.0
    DEFAULT_MAX_REQUESTS: int = 100

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()

        # Stats
        self.total_allowed = 0
        self.total_throttled = 0

        logger.debug(
            f"RateLimiter initialized: {self.max_requests} req / {self.window_seconds:.0f}s"
        )

    def _expired(self, window: Optional[RateWindow], now: float) -> bool:
        return window is None or now > window.reset_time

    def is_allowed(self, key: str) -> bool:
        """
        Admit or deny one request for `key`.

        Returns:
            True if the request fits in the current window
        """
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if self._expired(window, now):
                self._windows[key] = RateWindow(count=1, reset_time=now + self.window_seconds)
                self.total_allowed += 1
                return True

            if window.count < self.max_requests:
                self._windows[key] = RateWindow(count=window.count + 1, reset_time=window.reset_time)
                self.total_allowed += 1
                return True

            self.total_throttled += 1
            logger.debug(f"🚦 Rate limited '{key}': {window.count}/{self.max_requests}")
            return False

    def remaining(self, key: str) -> int:
        """Requests still available for `key` in its current window."""
        with self._lock:
            window = self._windows.get(key)
            if self._expired(window, self._clock()):
                return self.max_requests
            return max(0, self.max_requests - window.count)

    def reset_time(self, key: str) -> float:
        """Timestamp at which the window for `key` resets."""
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return self._clock() + self.window_seconds
            return window.reset_time

    async def wait_for_slot(self, key: str) -> None:
        """Wait until a request for `key` is admitted (async blocking)."""
        while not self.is_allowed(key):
            wait_time = max(0.1, self.reset_time(key) - self._clock())
            logger.info(f"⏳ Waiting {wait_time:.1f}s for '{key}' rate window to reset")
            await asyncio.sleep(wait_time)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> dict:
        """Get rate limiter status."""
        with self._lock:
            keys = {
                key: {"count": w.count, "reset_time": round(w.reset_time, 1)}
                for key, w in self._windows.items()
            }
        return {
            "window_seconds": self.window_seconds,
            "max_requests": self.max_requests,
            "total_allowed": self.total_allowed,
            "total_throttled": self.total_throttled,
            "keys": keys,
        }

    def __repr__(self) -> str:
        return (
            f"RateLimiter("
            f"{self.max_requests}/{self.window_seconds:.0f}s, "
            f"keys={len(self._windows)}, "
            f"throttled={self.total_throttled})"
        )


class RateLimitedClient:
    """
    Wrapper to add rate limiting to an httpx.AsyncClient.

    Every request waits for a slot keyed by host + last path segment,
    so /quote and /swap are throttled independently.
    """

    def __init__(self, client: httpx.AsyncClient, rate_limiter: RateLimiter):
        self._client = client
        self._rate_limiter = rate_limiter

    def _get_key(self, url: str) -> str:
        """Derive the limiter key from a URL."""
        parsed = urlparse(str(self._client.base_url.join(url)))
        segment = parsed.path.rstrip("/").rsplit("/", 1)[-1]
        return f"{parsed.netloc}/{segment}"

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a rate-limited request."""
        await self._rate_limiter.wait_for_slot(self._get_key(url))

        response = await self._client.request(method, url, **kwargs)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(f"🚦 429 from {url} (Retry-After: {retry_after})")
            raise ProviderError(f"Rate limited by upstream: {url}")

        return response

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
