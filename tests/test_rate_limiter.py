#!/usr/bin/env python3
"""
Rate Limiter Tests - tests/test_rate_limiter.py

Run with: python -m pytest tests/test_rate_limiter.py -v
"""

import sys
import unittest
from pathlib import Path

import httpx

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeClock
from swap_layer.errors import ProviderError
from swap_layer.rate_limiter import RateLimiter, RateLimitedClient


class TestRateLimiter(unittest.TestCase):
    """Fixed-window admission per key."""

    def setUp(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(window_seconds=60.0, max_requests=3, clock=self.clock)

    def test_allows_exactly_max_requests_per_window(self):
        results = [self.limiter.is_allowed("quote") for _ in range(5)]
        self.assertEqual(results, [True, True, True, False, False])

    def test_window_resets_after_expiry(self):
        for _ in range(3):
            self.limiter.is_allowed("quote")
        self.assertFalse(self.limiter.is_allowed("quote"))

        self.clock.advance(60.1)
        self.assertTrue(self.limiter.is_allowed("quote"))
        self.assertEqual(self.limiter.remaining("quote"), 2)

    def test_no_partial_refill_inside_window(self):
        for _ in range(3):
            self.limiter.is_allowed("swap")
        self.clock.advance(59.0)
        self.assertFalse(self.limiter.is_allowed("swap"))

    def test_keys_are_independent(self):
        for _ in range(3):
            self.limiter.is_allowed("quote")
        self.assertFalse(self.limiter.is_allowed("quote"))
        self.assertTrue(self.limiter.is_allowed("swap"))

    def test_remaining_for_unseen_key_is_max(self):
        self.assertEqual(self.limiter.remaining("never-seen"), 3)

    def test_remaining_decrements(self):
        self.limiter.is_allowed("quote")
        self.assertEqual(self.limiter.remaining("quote"), 2)

    def test_reset_time_for_unseen_key_is_now_plus_window(self):
        self.assertEqual(self.limiter.reset_time("never-seen"), self.clock.now + 60.0)

    def test_reset_time_is_fixed_by_first_request(self):
        start = self.clock.now
        self.limiter.is_allowed("quote")
        self.clock.advance(10)
        self.limiter.is_allowed("quote")
        self.assertEqual(self.limiter.reset_time("quote"), start + 60.0)

    def test_defaults(self):
        limiter = RateLimiter()
        self.assertEqual(limiter.window_seconds, 60.0)
        self.assertEqual(limiter.max_requests, 100)

    def test_status_counts_throttled(self):
        for _ in range(4):
            self.limiter.is_allowed("quote")
        status = self.limiter.get_status()
        self.assertEqual(status["total_allowed"], 3)
        self.assertEqual(status["total_throttled"], 1)
        self.assertEqual(status["keys"]["quote"]["count"], 3)


class TestRateLimitedClient(unittest.IsolatedAsyncioTestCase):
    """httpx wrapper that waits on the limiter."""

    def _client(self, status_code=200):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(status_code, json={"ok": True})

        http = httpx.AsyncClient(
            base_url="https://quote-api.jup.ag/v6",
            transport=httpx.MockTransport(handler),
        )
        limiter = RateLimiter(window_seconds=60.0, max_requests=10)
        return RateLimitedClient(http, limiter), limiter, seen

    async def test_requests_consume_per_endpoint_slots(self):
        client, limiter, seen = self._client()
        await client.get("/quote")
        await client.get("/quote")
        await client.post("/swap", json={})
        await client.aclose()

        self.assertEqual(seen, ["/v6/quote", "/v6/quote", "/v6/swap"])
        keys = limiter.get_status()["keys"]
        self.assertEqual(keys["quote-api.jup.ag/quote"]["count"], 2)
        self.assertEqual(keys["quote-api.jup.ag/swap"]["count"], 1)

    async def test_upstream_429_raises_provider_error(self):
        client, _, _ = self._client(status_code=429)
        with self.assertRaises(ProviderError):
            await client.get("/quote")
        await client.aclose()


if __name__ == "__main__":
    unittest.main(verbosity=2)
