"""
New Market Detector

Poll-and-diff over a pool provider:
1. start_listening() seeds the known-pools set with one full fetch, so
   pools that already exist never fire the callback
2. Every poll_interval the full pool set is fetched again and diffed
3. Each unseen pool is added to known pools, then the callback fires once

Best-effort: a pool created and removed between two ticks, or one outside
what the provider returns, is never observed.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, Set, Union

from swap_layer.circuit_breaker import CircuitBreaker
from swap_layer.models import PoolInfo

logger = logging.getLogger(__name__)

NewMarketCallback = Callable[[PoolInfo], Union[None, Awaitable[None]]]


class PoolProvider(ABC):
    """Source of the full set of currently listed pools."""

    @abstractmethod
    async def list_pools(self) -> List[PoolInfo]:
        """Return every pool the provider can currently see."""
        pass

    async def reference_liquidity(self, pool: PoolInfo) -> float:
        """SOL on the pool's reference side. Providers that cannot tell report 0.0."""
        return 0.0


class MarketDetector:
    """
    Periodic poller that emits only pools it has never seen.

    idle -> listening -> idle. The known-pools set only grows.
    """

    DEFAULT_POLL_INTERVAL: float = 10.0

    def __init__(
        self,
        provider: PoolProvider,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.provider = provider
        self.poll_interval = poll_interval
        self.breaker = breaker
        self._known_pools: Set[str] = set()
        self._callback: Optional[NewMarketCallback] = None
        self._task: Optional[asyncio.Task] = None
        self._pending_start: Optional[object] = None
        self._listening = False
        self.ticks = 0
        self.failed_ticks = 0

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def is_starting(self) -> bool:
        """True while start_listening() is still seeding."""
        return self._pending_start is not None

    @property
    def known_pool_count(self) -> int:
        return len(self._known_pools)

    def is_known(self, address: str) -> bool:
        return address in self._known_pools

    async def _fetch(self) -> List[PoolInfo]:
        if self.breaker is not None:
            return await self.breaker.execute(self.provider.list_pools)
        return await self.provider.list_pools()

    async def start_listening(self, callback: NewMarketCallback) -> None:
        """
        Seed known pools and start polling.

        Raises whatever the seeding fetch raises; the detector stays idle then.
        A stop_listening() during the seed cancels the start.
        """
        if self._listening or self._pending_start is not None:
            logger.info("Already listening for new markets")
            return

        start = self._pending_start = object()
        logger.info("Initializing known markets")
        try:
            pools = await self._fetch()
        finally:
            stopped = self._pending_start is not start
            if not stopped:
                self._pending_start = None
        if stopped:
            logger.info("📡 Stopped while seeding known markets, not listening")
            return

        self._known_pools.update(p.address for p in pools)
        logger.info(f"📡 Initialized with {len(self._known_pools)} known markets")

        self._callback = callback
        self._listening = True
        self._task = asyncio.create_task(self._poll_loop(), name="market-detector")
        logger.info(f"📡 Listening for new markets every {self.poll_interval:.0f}s")

    async def stop_listening(self) -> None:
        """Stop polling, or cancel a start still seeding. No callback fires after this returns."""
        if self._pending_start is not None:
            self._pending_start = None
            logger.info("📡 Cancelled pending start")

        if not self._listening:
            logger.info("Not currently listening for new markets")
            return

        self._listening = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("📡 Stopped listening for new markets")

    async def _poll_loop(self) -> None:
        # One tick runs to completion before the next sleep: ticks never overlap.
        while self._listening:
            await asyncio.sleep(self.poll_interval)
            if not self._listening:
                break
            await self.poll_once()

    async def poll_once(self) -> List[PoolInfo]:
        """
        Run one poll tick.

        Errors are logged and swallowed; a failed tick adds nothing.

        Returns:
            The pools that were new on this tick
        """
        self.ticks += 1
        try:
            pools = await self._fetch()
        except Exception as e:
            self.failed_ticks += 1
            logger.error(f"Error checking for new markets: {e}")
            return []

        new_pools: List[PoolInfo] = []
        for pool in pools:
            if pool.address in self._known_pools:
                continue
            self._known_pools.add(pool.address)
            new_pools.append(pool)

        if new_pools:
            logger.info(f"🆕 {len(new_pools)} new market(s) detected")

        for pool in new_pools:
            await self._dispatch(pool)

        return new_pools

    async def _dispatch(self, pool: PoolInfo) -> None:
        if self._callback is None:
            return
        try:
            result = self._callback(pool)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"New market callback failed for {pool.address}: {e}")

    def get_status(self) -> dict:
        return {
            "listening": self._listening,
            "known_pools": len(self._known_pools),
            "poll_interval": self.poll_interval,
            "ticks": self.ticks,
            "failed_ticks": self.failed_ticks,
        }
