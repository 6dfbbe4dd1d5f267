"""
Trading Bot - quote/swap orchestrator

Two independent activities under one object:
1. Steady-state loop: quote a fixed pair, swap unconditionally, persist,
   sleep LOOP_INTERVAL (RETRY_INTERVAL after a failure)
2. Market-triggered path: every new Raydium pool with a SOL leg is
   recorded as a first-seen token and, if enabled, auto-bought in the
   background after a RiskManager check

Both paths share the RiskManager and the trade store. Check -> swap -> record
is serialised by one asyncio.Lock. Every quote/swap goes through the rate
limiter and its circuit breaker.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, Set

from solders.keypair import Keypair

from swap_layer.circuit_breaker import CircuitBreaker
from swap_layer.errors import ConfigurationError, NoRouteError
from swap_layer.executors import SwapExecutor
from swap_layer.market_detector import MarketDetector, PoolProvider
from swap_layer.models import (
    LAMPORTS_PER_SOL,
    WSOL_MINT,
    PoolInfo,
    Quote,
    TokenInfo,
    Trade,
)
from swap_layer.rate_limiter import RateLimiter
from swap_layer.risk_manager import RiskManager
from swap_layer.trade_store import CsvTradeStore, InMemoryTradeStore, TradeStore
from swap_layer.utils.jupiter_client import JupiterClient
from swap_layer.utils.raydium_client import RaydiumApiClient, RaydiumPoolProvider
from swap_layer.utils.solana_client import SolanaLedger
from utils.notifier import TelegramNotifier

if TYPE_CHECKING:
    from config.settings import BotConfig

logger = logging.getLogger(__name__)


class SocialVerifier(Protocol):
    """Screens a new token's social presence before it may be auto-bought."""

    async def verify(self, token: TokenInfo) -> bool:
        ...


def sol_leg_amount(quote: Quote) -> float:
    """SOL moved by a quote, in SOL. 0.0 if neither side is wrapped SOL."""
    if quote.input_mint == WSOL_MINT:
        return quote.in_amount / LAMPORTS_PER_SOL
    if quote.output_mint == WSOL_MINT:
        return quote.out_amount / LAMPORTS_PER_SOL
    return 0.0


def risk_asset(quote: Quote) -> str:
    """The non-SOL side of a quote, used as the RiskManager exposure key."""
    return quote.output_mint if quote.input_mint == WSOL_MINT else quote.input_mint


class TradingBot:
    """
    Orchestrates quoting, swapping, market detection and auto-buys.

    Construction validates the signing key; initialize() checks the RPC and
    Jupiter endpoints. Nothing runs in the background until
    monitor_and_trade() is called.
    """

    def __init__(
        self,
        config: "BotConfig",
        *,
        jupiter: Optional[JupiterClient] = None,
        ledger: Optional[SolanaLedger] = None,
        pool_provider: Optional[PoolProvider] = None,
        store: Optional[TradeStore] = None,
        notifier: Optional[TelegramNotifier] = None,
        social_verifier: Optional[SocialVerifier] = None,
        risk_manager: Optional[RiskManager] = None,
        rate_limiter: Optional[RateLimiter] = None,
        raydium_api: Optional[RaydiumApiClient] = None,
        executor: Optional[SwapExecutor] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._clock = clock
        self.keypair = self._load_wallet(config)
        logger.info(f"🔑 Wallet public key: {self.keypair.pubkey()}")

        self._owned_clients = []

        self.rate_limiter = rate_limiter or RateLimiter(
            window_seconds=config.rate_limit_window,
            max_requests=config.rate_limit_max_requests,
        )
        self.risk_manager = risk_manager or RiskManager(config.risk_parameters())

        if jupiter is None:
            logger.info(f"Initializing Jupiter API client with endpoint: {config.jupiter_api_url}")
            jupiter = JupiterClient(config.jupiter_api_url)
            self._owned_clients.append(jupiter)
        self.jupiter = jupiter

        if ledger is None:
            logger.info(f"Initializing Solana connection to: {config.solana_rpc_url}")
            ledger = SolanaLedger(config.solana_rpc_url)
            self._owned_clients.append(ledger)
        self.ledger = ledger

        if raydium_api is None:
            raydium_api = RaydiumApiClient()
            self._owned_clients.append(raydium_api)
        self.raydium_api = raydium_api

        self.pool_provider = pool_provider or RaydiumPoolProvider(self.ledger)

        if store is None:
            store = (
                CsvTradeStore(config.trade_store_dir)
                if config.trade_store_dir
                else InMemoryTradeStore()
            )
        self.store = store

        self.notifier = notifier or TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
        self.social_verifier = social_verifier

        self.executor = executor or SwapExecutor(
            self.jupiter,
            self.ledger,
            self.keypair,
            dry_run=config.dry_run,
            confirm_timeout=config.confirm_timeout,
        )

        # NoRouteError does not count toward the quote breaker
        self.quote_breaker = self._breaker("quote", excluded=(NoRouteError,))
        self.swap_breaker = self._breaker("swap")
        self.pools_breaker = self._breaker("pools")
        self.detector = MarketDetector(
            self.pool_provider,
            poll_interval=config.poll_interval,
            breaker=self.pools_breaker,
        )

        self._ready = False
        self._shutdown = asyncio.Event()
        self._trade_lock = asyncio.Lock()
        self._cycle_task: Optional[asyncio.Task] = None
        self._auto_buy_tasks: Set[asyncio.Task] = set()
        self._new_markets: List[PoolInfo] = []

        # Stats
        self.cycles = 0
        self.failed_cycles = 0
        self.trades_executed = 0
        self.auto_buys = 0

    @staticmethod
    def _load_wallet(config: "BotConfig") -> Keypair:
        secret = config.secret_key_bytes()
        if len(secret) != 64:
            raise ConfigurationError(
                f"Invalid secret key length: {len(secret)}. Expected 64 bytes."
            )
        try:
            return Keypair.from_bytes(bytes(secret))
        except Exception as e:
            raise ConfigurationError(f"Failed to initialize wallet: {e}") from e

    def _breaker(self, name: str, excluded=()) -> CircuitBreaker:
        return CircuitBreaker(
            name=name,
            excluded=excluded,
            failure_threshold=self.config.breaker_failure_threshold,
            reset_timeout=self.config.breaker_reset_timeout,
            half_open_success_required=self.config.breaker_half_open_successes,
        )

    @property
    def wallet_address(self) -> str:
        return str(self.keypair.pubkey())

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        """
        Check RPC and Jupiter reachability.

        Raises:
            ConfigurationError: an endpoint is unreachable; is_ready() stays False
        """
        if not await self.ledger.get_health():
            raise ConfigurationError(f"Solana RPC unreachable: {self.config.solana_rpc_url}")
        if not await self.jupiter.ping():
            raise ConfigurationError(f"Jupiter API unreachable: {self.config.jupiter_api_url}")

        self._ready = True
        logger.info("✅ Trading bot successfully initialized")

    async def stop(self) -> None:
        """
        Stop everything. No swap or market callback happens after this returns.
        """
        logger.info("🛑 Stopping trading bot")
        self._shutdown.set()

        await self.stop_detecting_new_markets()

        tasks = list(self._auto_buy_tasks)
        if self._cycle_task is not None:
            tasks.append(self._cycle_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._auto_buy_tasks.clear()
        self._cycle_task = None

        for client in self._owned_clients:
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing {type(client).__name__}: {e}")
        self._owned_clients = []

        self._ready = False
        logger.info("🛑 Trading bot stopped")

    async def wait_until_stopped(self) -> None:
        await self._shutdown.wait()

    async def _sleep(self, seconds: float) -> None:
        """Sleep that wakes early on shutdown."""
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # =========================================================================
    # QUOTE & SWAP
    # =========================================================================

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: Optional[int] = None,
    ) -> Quote:
        """
        Quote `amount` base units of input_mint into output_mint.

        Raises:
            NoRouteError, ProviderError, CircuitOpenError
        """
        bps = self.config.quote_slippage_bps if slippage_bps is None else slippage_bps
        logger.info(f"Getting quote for {amount} of {input_mint} to {output_mint} ({bps} bps)")
        return await self.quote_breaker.execute(
            lambda: self.jupiter.get_quote(input_mint, output_mint, amount, bps)
        )

    async def execute_swap(self, quote: Quote) -> str:
        """
        Sign, submit and confirm the swap for `quote`. Not retried here.

        Returns:
            The transaction signature
        """
        return await self.swap_breaker.execute(lambda: self.executor.execute(quote))

    async def _swap_and_record(self, quote: Quote) -> Trade:
        """Swap, then commit the trade to the RiskManager and the store."""
        async with self._trade_lock:
            tx_id = await self.execute_swap(quote)
            trade = Trade.from_quote(quote, tx_id, timestamp=self._clock())
            self.risk_manager.record_trade(risk_asset(quote), sol_leg_amount(quote))
            self.trades_executed += 1
        await self.store.save_trade(trade)
        return trade

    # =========================================================================
    # STEADY-STATE LOOP
    # =========================================================================

    async def monitor_and_trade(self, max_iterations: Optional[int] = None) -> None:
        """
        Run the bot until stop() (or for max_iterations swap cycles).

        Starts market detection if enabled. Returns at once when swap
        execution is disabled; detection keeps running until stop().
        """
        if not self._ready:
            raise ConfigurationError("Trading bot is not initialized")

        if self.config.detect_new_markets:
            try:
                await self.start_detecting_new_markets()
            except Exception as e:
                logger.error(f"Error starting market detection: {e}")

        if not self.config.execute_swaps:
            logger.info("Swap execution disabled, monitoring only")
            return

        token = self.config.initial_input_token
        logger.info(
            f"🔁 Swap loop: {self.config.initial_input_amount} {token.value} -> "
            f"{token.counter_mint} every {self.config.loop_interval:.0f}s"
        )

        iterations = 0
        while not self._shutdown.is_set():
            iterations += 1
            self._cycle_task = asyncio.create_task(self._run_cycle(), name="swap-cycle")
            try:
                ok = await self._cycle_task
            except asyncio.CancelledError:
                if self._shutdown.is_set():
                    break
                raise
            finally:
                self._cycle_task = None

            if max_iterations is not None and iterations >= max_iterations:
                logger.info(f"Reached {max_iterations} iterations, leaving swap loop")
                break
            await self._sleep(self.config.loop_interval if ok else self.config.retry_interval)

    async def _run_cycle(self) -> bool:
        """One quote -> swap -> persist cycle. Returns False on any failure."""
        self.cycles += 1
        token = self.config.initial_input_token
        input_mint, output_mint = token.mint, token.counter_mint
        amount = self.config.initial_input_amount

        if not self.rate_limiter.is_allowed("quote"):
            logger.warning(f"🚦 Quote rate limit reached, skipping cycle {self.cycles}")
            return False

        try:
            quote = await self.get_quote(input_mint, output_mint, amount)

            if not self.rate_limiter.is_allowed("swap"):
                logger.warning(f"🚦 Swap rate limit reached, skipping cycle {self.cycles}")
                return False

            trade = await self._swap_and_record(quote)
        except Exception as e:
            self.failed_cycles += 1
            logger.error(
                f"❌ Swap cycle {self.cycles} failed ({amount} of {input_mint} -> "
                f"{output_mint}): {type(e).__name__}: {e}"
            )
            return False

        logger.info(
            f"✅ Swap executed: {trade.input_amount} -> {trade.output_amount} "
            f"(price {trade.price:.6g}), tx {trade.tx_id}"
        )
        return True

    # =========================================================================
    # MARKET DETECTION
    # =========================================================================

    async def start_detecting_new_markets(self) -> None:
        if self.detector.is_listening or self.detector.is_starting:
            logger.info("Already detecting new markets")
            return
        if self._shutdown.is_set():
            logger.info("Shutting down, not starting market detection")
            return
        await self.detector.start_listening(self.handle_new_market)
        if self._shutdown.is_set():
            # stop() ran while the known pools were being seeded
            await self.detector.stop_listening()
            return
        if self.detector.is_listening:
            logger.info("Successfully started detecting new Raydium markets")

    async def stop_detecting_new_markets(self) -> None:
        if not (self.detector.is_listening or self.detector.is_starting):
            return
        await self.detector.stop_listening()
        logger.info("Successfully stopped detecting new Raydium markets")

    async def handle_new_market(self, pool: PoolInfo) -> None:
        """Record a newly listed pool's token and optionally queue an auto-buy."""
        logger.info(
            f"🆕 New market {pool.address}: base {pool.base_mint}, quote {pool.quote_mint}"
        )
        self._new_markets.append(pool)

        token_mint = pool.target_mint()
        if token_mint is None:
            logger.info(f"Neither leg of {pool.address} is SOL, skipping")
            return

        try:
            metadata = await self.jupiter.get_token_metadata(token_mint)
        except Exception as e:
            logger.warning(f"Error getting token metadata for {token_mint}: {e}")
            metadata = None

        token = TokenInfo.first_seen_now(token_mint, metadata)
        try:
            await self.store.save_token(token)
        except Exception as e:
            logger.error(f"Failed to save token {token.symbol} ({token_mint}): {e}")

        try:
            liquidity = await self.pool_provider.reference_liquidity(pool)
        except Exception as e:
            logger.warning(f"Could not read liquidity of {pool.address}: {e}")
            liquidity = 0.0

        verified: Optional[bool] = None
        if self.social_verifier is not None and self.config.require_social_verification:
            try:
                verified = await self.social_verifier.verify(token)
            except Exception as e:
                logger.warning(f"Social verification of {token.symbol} failed: {e}")
                verified = False

        await self.notifier.notify_new_token(token.symbol, token.address, liquidity, verified)

        if not self.config.auto_buy_new_tokens or self._shutdown.is_set():
            return
        if verified is False:
            logger.info(f"⛔ Not auto-buying {token.symbol}: social verification failed")
            return

        task = asyncio.create_task(self._auto_buy(token, liquidity), name=f"auto-buy-{token_mint[:8]}")
        self._auto_buy_tasks.add(task)
        task.add_done_callback(self._auto_buy_tasks.discard)

    async def _auto_buy(self, token: TokenInfo, liquidity: float) -> Optional[Trade]:
        """Buy auto_buy_amount lamports of `token`. Logs and returns None on any failure."""
        amount = self.config.auto_buy_amount
        amount_sol = amount / LAMPORTS_PER_SOL

        try:
            async with self._trade_lock:
                allowed, reason = self.risk_manager.can_trade(token.address, amount_sol, liquidity)
                if not allowed:
                    logger.info(f"⛔ Auto-buy of {token.symbol} ({token.address}) denied: {reason}")
                    return None

                if not self.rate_limiter.is_allowed("quote"):
                    logger.warning(f"🚦 Quote rate limit reached, skipping auto-buy of {token.symbol}")
                    return None

                logger.info(f"🛒 Auto-buying new token {token.address} with {amount_sol} SOL")
                quote = await self.get_quote(
                    WSOL_MINT, token.address, amount, slippage_bps=self.config.auto_buy_slippage_bps
                )

                if not self.rate_limiter.is_allowed("swap"):
                    logger.warning(f"🚦 Swap rate limit reached, skipping auto-buy of {token.symbol}")
                    return None

                tx_id = await self.execute_swap(quote)
                trade = Trade.from_quote(quote, tx_id, timestamp=self._clock())
                self.risk_manager.record_trade(token.address, amount_sol)
                self.trades_executed += 1
                self.auto_buys += 1

            await self.store.save_trade(trade)
        except Exception as e:
            logger.error(
                f"❌ Auto-buy of {token.symbol} ({token.address}) for {amount_sol} SOL failed: "
                f"{type(e).__name__}: {e}"
            )
            return None

        logger.info(f"✅ Auto-buy successful: {tx_id}")
        price_sol = amount_sol / quote.out_amount if quote.out_amount else 0.0
        await self.notifier.notify_trade("BUY", token.symbol, token.address, amount_sol, price_sol, tx_id)
        return trade

    def get_new_markets(self) -> List[PoolInfo]:
        """Pools detected since start (or the last clear)."""
        return list(self._new_markets)

    def clear_new_markets(self) -> None:
        self._new_markets = []

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    async def get_top_tokens(self, limit: int = 20) -> List[TokenInfo]:
        """Top SOL-paired tokens from Raydium, falling back to Jupiter, else []."""
        try:
            return await self.raydium_api.get_top_tokens(limit)
        except Exception as e:
            logger.warning(f"Error fetching top tokens from Raydium: {e}")

        try:
            logger.info("Falling back to Jupiter token list")
            return await self.jupiter.get_top_tokens(limit)
        except Exception as e:
            logger.warning(f"Error fetching top tokens from Jupiter: {e}")

        logger.info("All token sources failed, returning empty token list")
        return []

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> dict:
        return {
            "ready": self._ready,
            "wallet": self.wallet_address,
            "dry_run": self.config.dry_run,
            "execute_swaps": self.config.execute_swaps,
            "auto_buy_new_tokens": self.config.auto_buy_new_tokens,
            "cycles": self.cycles,
            "failed_cycles": self.failed_cycles,
            "trades_executed": self.trades_executed,
            "auto_buys": self.auto_buys,
            "pending_auto_buys": len(self._auto_buy_tasks),
            "new_markets": len(self._new_markets),
            "detector": self.detector.get_status(),
            "breakers": {
                b.name: b.get_status()
                for b in (self.quote_breaker, self.swap_breaker, self.pools_breaker)
            },
            "risk": self.risk_manager.get_status(),
            "rate_limiter": self.rate_limiter.get_status(),
        }

    def __repr__(self) -> str:
        return (
            f"TradingBot(wallet={self.wallet_address[:8]}…, ready={self._ready}, "
            f"trades={self.trades_executed}, failed_cycles={self.failed_cycles})"
        )
