"""
Risk Manager - pre-trade admission control

Every auto-buy passes through can_trade() before a swap is attempted.

Checks (in order, first failure wins):
1. Trade amount <= max single-trade amount
2. Daily volume + amount <= max daily volume
3. Token exposure + amount <= max exposure per token
4. Pool liquidity >= minimum liquidity
5. Time since last trade in the token >= cooldown period

can_trade() never mutates state; the caller commits with record_trade()
after a successful execution. Daily volume resets at local midnight.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class RiskParameters:
    """Risk limits. Amounts are in SOL, durations in seconds."""
    max_trade_amount: float = 0.1
    max_daily_trade_volume: float = 1.0
    max_exposure_per_token: float = 0.2
    stop_loss_percentage: float = 0.05
    take_profit_percentage: float = 0.10
    max_slippage: float = 0.01
    min_liquidity: float = 1.0
    cooldown_period: float = 60.0


@dataclass
class RiskState:
    """Mutable risk aggregate owned by one RiskManager."""
    day: date
    daily_trade_volume: float = 0.0
    token_exposure: Dict[str, float] = field(default_factory=dict)
    last_trade_time: Dict[str, float] = field(default_factory=dict)


class RiskManager:
    """
    Stateful admission control over trade size, exposure, liquidity and cooldown.

    One instance per orchestrator; shared by the steady-state loop and the
    new-market path, so every state access goes through the lock.
    """

    def __init__(
        self,
        parameters: Optional[RiskParameters] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.parameters = parameters or RiskParameters()
        self._clock = clock
        self._lock = threading.Lock()
        self._state = RiskState(day=self._today())

        logger.info(
            f"🔒 RiskManager initialized:\n"
            f"   • MAX_TRADE: {self.parameters.max_trade_amount} SOL\n"
            f"   • MAX_DAILY_VOLUME: {self.parameters.max_daily_trade_volume} SOL\n"
            f"   • MAX_EXPOSURE/TOKEN: {self.parameters.max_exposure_per_token} SOL\n"
            f"   • MIN_LIQUIDITY: {self.parameters.min_liquidity} SOL\n"
            f"   • COOLDOWN: {self.parameters.cooldown_period:.0f}s"
        )

    def _today(self) -> date:
        return datetime.fromtimestamp(self._clock()).date()

    def _roll_day_locked(self) -> None:
        """Reset the daily window if the local calendar day has changed."""
        today = self._today()
        if today != self._state.day:
            logger.info(
                f"📊 New trading day {today}: daily volume reset "
                f"(previous: {self._state.daily_trade_volume:.4f} SOL)"
            )
            self._state.day = today
            self._state.daily_trade_volume = 0.0

    # =========================================================================
    # PARAMETERS
    # =========================================================================

    def update_parameters(self, **changes) -> None:
        """Update risk parameters in place."""
        known = {f.name for f in fields(RiskParameters)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown risk parameters: {sorted(unknown)}")
        with self._lock:
            for name, value in changes.items():
                setattr(self.parameters, name, value)
        logger.info(f"🔒 Risk parameters updated: {changes}")

    # =========================================================================
    # CORE TRADING CHECKS
    # =========================================================================

    def can_trade(
        self,
        token_address: str,
        trade_amount: float,
        token_liquidity: float,
    ) -> Tuple[bool, Optional[str]]:
        """
        Check whether a trade is allowed. Does not record anything.

        Returns:
            Tuple of (allowed, reason); reason is None when allowed
        """
        p = self.parameters

        with self._lock:
            self._roll_day_locked()

            if trade_amount > p.max_trade_amount:
                return False, (
                    f"Trade amount {trade_amount} exceeds max trade amount {p.max_trade_amount}"
                )

            if self._state.daily_trade_volume + trade_amount > p.max_daily_trade_volume:
                return False, (
                    f"Daily trade volume {self._state.daily_trade_volume:.4f} + {trade_amount} "
                    f"would exceed max daily trade volume {p.max_daily_trade_volume}"
                )

            exposure = self._state.token_exposure.get(token_address, 0.0)
            if exposure + trade_amount > p.max_exposure_per_token:
                return False, (
                    f"Token exposure {exposure:.4f} + {trade_amount} would exceed "
                    f"max exposure per token {p.max_exposure_per_token}"
                )

            if token_liquidity < p.min_liquidity:
                return False, (
                    f"Token liquidity {token_liquidity} is below minimum {p.min_liquidity}"
                )

            last_trade = self._state.last_trade_time.get(token_address)
            if last_trade is not None:
                elapsed = self._clock() - last_trade
                if elapsed < p.cooldown_period:
                    return False, (
                        f"In cooldown period for this token "
                        f"({p.cooldown_period - elapsed:.0f}s remaining)"
                    )

        return True, None

    def record_trade(self, token_address: str, trade_amount: float) -> None:
        """Record an executed trade: daily volume, exposure and last-trade time."""
        with self._lock:
            self._roll_day_locked()
            self._state.daily_trade_volume += trade_amount
            self._state.token_exposure[token_address] = (
                self._state.token_exposure.get(token_address, 0.0) + trade_amount
            )
            self._state.last_trade_time[token_address] = self._clock()
            daily = self._state.daily_trade_volume

        logger.info(
            f"📒 Trade recorded: {trade_amount} SOL in {token_address[:8]}… "
            f"(daily: {daily:.4f}/{self.parameters.max_daily_trade_volume} SOL)"
        )

    def reset_daily_volume(self) -> None:
        """Force a daily volume reset."""
        with self._lock:
            old = self._state.daily_trade_volume
            self._state.daily_trade_volume = 0.0
            self._state.day = self._today()
        logger.info(f"📊 Daily volume reset. Previous: {old:.4f} SOL")

    # =========================================================================
    # EXIT PRICES
    # =========================================================================

    def calculate_stop_loss(self, entry_price: float) -> float:
        return entry_price * (1 - self.parameters.stop_loss_percentage)

    def calculate_take_profit(self, entry_price: float) -> float:
        return entry_price * (1 + self.parameters.take_profit_percentage)

    # =========================================================================
    # STATUS & METRICS
    # =========================================================================

    def get_daily_volume(self) -> float:
        with self._lock:
            self._roll_day_locked()
            return self._state.daily_trade_volume

    def get_exposure(self, token_address: str) -> float:
        with self._lock:
            return self._state.token_exposure.get(token_address, 0.0)

    def get_status(self) -> dict:
        """Get complete risk manager status."""
        with self._lock:
            self._roll_day_locked()
            return {
                "day": self._state.day.isoformat(),
                "daily_trade_volume": round(self._state.daily_trade_volume, 6),
                "max_daily_trade_volume": self.parameters.max_daily_trade_volume,
                "tokens_held": len(self._state.token_exposure),
                "total_exposure": round(sum(self._state.token_exposure.values()), 6),
                "max_trade_amount": self.parameters.max_trade_amount,
                "min_liquidity": self.parameters.min_liquidity,
                "cooldown_period": self.parameters.cooldown_period,
            }

    def __repr__(self) -> str:
        return (
            f"RiskManager("
            f"daily={self._state.daily_trade_volume:.4f}/"
            f"{self.parameters.max_daily_trade_volume} SOL, "
            f"tokens={len(self._state.token_exposure)})"
        )
