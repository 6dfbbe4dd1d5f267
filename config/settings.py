"""
Solana Swap Bot Configuration
Central configuration for the trading bot, its providers and risk limits
"""
import json
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings
from solders.keypair import Keypair

from swap_layer.errors import ConfigurationError
from swap_layer.models import SwapToken
from swap_layer.risk_manager import RiskParameters

# Load .env from project root
load_dotenv(Path(__file__).parent.parent / ".env")


def load_secret_key(raw: str) -> List[int]:
    """
    Parse a wallet secret key.

    Accepts a JSON byte array (solana-keygen format) or a base58 string.
    Length is not checked here; the trading bot rejects anything but 64 bytes.
    """
    raw = raw.strip()
    if not raw:
        raise ConfigurationError("SECRET_KEY is not set")

    if raw.startswith("["):
        try:
            values = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"SECRET_KEY is not a valid JSON array: {e}") from e
        if not all(isinstance(v, int) and 0 <= v <= 255 for v in values):
            raise ConfigurationError("SECRET_KEY array must contain byte values")
        return values

    try:
        return list(bytes(Keypair.from_base58_string(raw)))
    except Exception as e:
        raise ConfigurationError(f"SECRET_KEY is not valid base58: {e}") from e


class BotConfig(BaseSettings):
    """Main configuration for the swap bot"""

    # Endpoints
    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        validation_alias="SOLANA_RPC_URL",
    )
    jupiter_api_url: str = Field(
        default="https://quote-api.jup.ag/v6",
        validation_alias="JUPITER_API_URL",
    )

    # Wallet
    secret_key: str = Field(default="", validation_alias="SECRET_KEY")

    # Steady-state trading pair
    initial_input_token: SwapToken = Field(default=SwapToken.USDC, validation_alias="INITIAL_INPUT_TOKEN")
    initial_input_amount: int = Field(default=1_000_000, validation_alias="INITIAL_INPUT_AMOUNT")

    # Feature switches
    detect_new_markets: bool = Field(default=True, validation_alias="DETECT_NEW_MARKETS")
    execute_swaps: bool = Field(default=False, validation_alias="EXECUTE_SWAPS")
    auto_buy_new_tokens: bool = Field(default=False, validation_alias="AUTO_BUY_NEW_TOKENS")
    require_social_verification: bool = Field(
        default=False, validation_alias="REQUIRE_SOCIAL_VERIFICATION"
    )
    dry_run: bool = Field(default=True, validation_alias="DRY_RUN")

    # Swap sizing (lamports / token base units) and slippage
    auto_buy_amount: int = Field(default=10_000_000, validation_alias="AUTO_BUY_AMOUNT")  # 0.01 SOL
    quote_slippage_bps: int = Field(default=50, validation_alias="QUOTE_SLIPPAGE_BPS")
    auto_buy_slippage_bps: int = Field(default=10_000, validation_alias="AUTO_BUY_SLIPPAGE_BPS")

    # Cadence (seconds)
    loop_interval: float = Field(default=60.0, validation_alias="LOOP_INTERVAL")
    retry_interval: float = Field(default=5.0, validation_alias="RETRY_INTERVAL")
    poll_interval: float = Field(default=10.0, validation_alias="POLL_INTERVAL")
    confirm_timeout: float = Field(default=60.0, validation_alias="CONFIRM_TIMEOUT")

    # Risk limits (SOL)
    max_trade_amount: float = Field(default=0.1, validation_alias="MAX_TRADE_AMOUNT")
    max_daily_trade_volume: float = Field(default=1.0, validation_alias="MAX_DAILY_TRADE_VOLUME")
    max_exposure_per_token: float = Field(default=0.2, validation_alias="MAX_EXPOSURE_PER_TOKEN")
    stop_loss_percentage: float = Field(default=0.05, validation_alias="STOP_LOSS_PERCENTAGE")
    take_profit_percentage: float = Field(default=0.10, validation_alias="TAKE_PROFIT_PERCENTAGE")
    max_slippage: float = Field(default=0.01, validation_alias="MAX_SLIPPAGE")
    min_liquidity: float = Field(default=1.0, validation_alias="MIN_LIQUIDITY")
    cooldown_period: float = Field(default=60.0, validation_alias="COOLDOWN_PERIOD")

    # Circuit breaker / rate limiter
    breaker_failure_threshold: int = Field(default=5, validation_alias="BREAKER_FAILURE_THRESHOLD")
    breaker_reset_timeout: float = Field(default=60.0, validation_alias="BREAKER_RESET_TIMEOUT")
    breaker_half_open_successes: int = Field(default=3, validation_alias="BREAKER_HALF_OPEN_SUCCESSES")
    rate_limit_window: float = Field(default=60.0, validation_alias="RATE_LIMIT_WINDOW")
    rate_limit_max_requests: int = Field(default=100, validation_alias="RATE_LIMIT_MAX_REQUESTS")

    # Notifications
    telegram_bot_token: str = Field(default="", validation_alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str = Field(default="", validation_alias="TELEGRAM_CHAT_ID")

    # Persistence ("" keeps trades in memory)
    trade_store_dir: str = Field(default="", validation_alias="TRADE_STORE_DIR")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",  # Ignore unknown env vars
        "populate_by_name": True,  # Allow both field name and alias
    }

    def secret_key_bytes(self) -> List[int]:
        return load_secret_key(self.secret_key)

    def risk_parameters(self) -> RiskParameters:
        return RiskParameters(
            max_trade_amount=self.max_trade_amount,
            max_daily_trade_volume=self.max_daily_trade_volume,
            max_exposure_per_token=self.max_exposure_per_token,
            stop_loss_percentage=self.stop_loss_percentage,
            take_profit_percentage=self.take_profit_percentage,
            max_slippage=self.max_slippage,
            min_liquidity=self.min_liquidity,
            cooldown_period=self.cooldown_period,
        )

    def is_configured(self) -> bool:
        """Check if minimum required config is present."""
        return bool(self.secret_key and self.secret_key != "REPLACE_ME")


# Global config instance (CLI only; the bot takes its config explicitly)
config = BotConfig()
