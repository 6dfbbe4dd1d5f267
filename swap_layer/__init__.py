"""
Solana Swap Bot - Trading Orchestration Core

Core Components:
- RateLimiter: Fixed-window request admission per key
- CircuitBreaker: Failure isolation for quote, swap and pool calls
- RiskManager: Pre-trade admission (size, daily volume, exposure, liquidity, cooldown)
- MarketDetector: Poll-and-diff detection of new Raydium pools
- TradingBot: Quote/swap orchestrator tying it all together
"""

from swap_layer.errors import (
    BotError,
    ConfigurationError,
    ProviderError,
    NoRouteError,
    SwapExecutionError,
    ConfirmationTimeoutError,
    CircuitOpenError,
)
from swap_layer.models import PoolInfo, Quote, Trade, TokenInfo, TokenMetadata, SwapToken
from swap_layer.rate_limiter import RateLimiter, RateLimitedClient
from swap_layer.circuit_breaker import CircuitBreaker, CircuitState
from swap_layer.risk_manager import RiskManager, RiskParameters
from swap_layer.market_detector import MarketDetector, PoolProvider
from swap_layer.trade_store import TradeStore, InMemoryTradeStore, CsvTradeStore
from swap_layer.executors import SwapExecutor
from swap_layer.trading_bot import TradingBot, SocialVerifier

__all__ = [
    # Errors
    "BotError",
    "ConfigurationError",
    "ProviderError",
    "NoRouteError",
    "SwapExecutionError",
    "ConfirmationTimeoutError",
    "CircuitOpenError",
    # Models
    "PoolInfo",
    "Quote",
    "Trade",
    "TokenInfo",
    "TokenMetadata",
    "SwapToken",
    # Admission & isolation
    "RateLimiter",
    "RateLimitedClient",
    "CircuitBreaker",
    "CircuitState",
    "RiskManager",
    "RiskParameters",
    # Detection, storage, execution
    "MarketDetector",
    "PoolProvider",
    "TradeStore",
    "InMemoryTradeStore",
    "CsvTradeStore",
    "SwapExecutor",
    # Orchestrator
    "TradingBot",
    "SocialVerifier",
]
