"""
Core data model for the swap bot.

- PoolInfo: a Raydium liquidity pool (immutable once observed)
- Quote: a routing-service estimate, consumed within one cycle
- Trade: an executed swap (append-only)
- TokenInfo / TokenMetadata: assets seen by the bot
"""

import time
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any


# Network reference asset (wrapped SOL) and the default stable leg
WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

LAMPORTS_PER_SOL = 1_000_000_000


class SwapToken(Enum):
    """Input side of the steady-state trading pair."""
    SOL = "SOL"
    USDC = "USDC"

    @property
    def mint(self) -> str:
        return WSOL_MINT if self is SwapToken.SOL else USDC_MINT

    @property
    def counter_mint(self) -> str:
        return USDC_MINT if self is SwapToken.SOL else WSOL_MINT


@dataclass(frozen=True)
class PoolInfo:
    """A tradable pair observed on the AMM program."""
    address: str
    base_mint: str
    quote_mint: str
    lp_mint: str
    base_vault: str = ""
    quote_vault: str = ""
    program_id: str = ""

    @property
    def is_base_reference(self) -> bool:
        return self.base_mint == WSOL_MINT

    @property
    def is_quote_reference(self) -> bool:
        return self.quote_mint == WSOL_MINT

    def target_mint(self) -> Optional[str]:
        """The non-reference leg, or None if neither leg is wrapped SOL."""
        if self.is_quote_reference:
            return self.base_mint
        if self.is_base_reference:
            return self.quote_mint
        return None

    def reference_vault(self) -> Optional[str]:
        """Vault holding the wrapped SOL side of the pool."""
        if self.is_quote_reference:
            return self.quote_vault or None
        if self.is_base_reference:
            return self.base_vault or None
        return None


@dataclass
class Quote:
    """Quote returned by the routing service."""
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    min_out_amount: int        # slippage-adjusted threshold
    swap_mode: str = "ExactIn"
    slippage_bps: int = 0
    price_impact_pct: float = 0.0
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_jupiter(cls, data: dict) -> "Quote":
        """Build a Quote from a Jupiter /quote response body."""
        return cls(
            input_mint=data["inputMint"],
            output_mint=data["outputMint"],
            in_amount=int(data["inAmount"]),
            out_amount=int(data["outAmount"]),
            min_out_amount=int(data.get("otherAmountThreshold", 0)),
            swap_mode=data.get("swapMode", "ExactIn"),
            slippage_bps=int(data.get("slippageBps", 0)),
            price_impact_pct=float(data.get("priceImpactPct") or 0.0),
            raw=data,
        )


@dataclass(frozen=True)
class Trade:
    """An executed swap. Written once, never mutated."""
    input_token: str
    output_token: str
    input_amount: int
    output_amount: int
    price: float
    timestamp: float
    tx_id: str

    @classmethod
    def from_quote(cls, quote: Quote, tx_id: str, timestamp: Optional[float] = None) -> "Trade":
        price = quote.out_amount / quote.in_amount if quote.in_amount else 0.0
        return cls(
            input_token=quote.input_mint,
            output_token=quote.output_mint,
            input_amount=quote.in_amount,
            output_amount=quote.out_amount,
            price=price,
            timestamp=time.time() if timestamp is None else timestamp,
            tx_id=tx_id,
        )

    def involves(self, mint: str) -> bool:
        return mint in (self.input_token, self.output_token)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, row: dict) -> "Trade":
        return cls(
            input_token=row["input_token"],
            output_token=row["output_token"],
            input_amount=int(row["input_amount"]),
            output_amount=int(row["output_amount"]),
            price=float(row["price"]),
            timestamp=float(row["timestamp"]),
            tx_id=row["tx_id"],
        )


@dataclass(frozen=True)
class TokenMetadata:
    """Human-readable metadata from a token registry."""
    symbol: str
    name: str


@dataclass
class TokenInfo:
    """A token the bot has seen."""
    address: str
    symbol: str
    name: str = ""
    price: float = 0.0
    volume_24h: float = 0.0
    change_24h: float = 0.0
    first_seen: Optional[str] = None

    @classmethod
    def first_seen_now(cls, address: str, metadata: Optional[TokenMetadata]) -> "TokenInfo":
        """Build a first-seen record, substituting synthetic names when metadata is missing."""
        short = address[:5]
        symbol = metadata.symbol if metadata and metadata.symbol else f"NEW_{short}"
        name = metadata.name if metadata and metadata.name else f"New Token {short}"
        return cls(
            address=address,
            symbol=symbol,
            name=name,
            first_seen=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, row: dict) -> "TokenInfo":
        return cls(
            address=row["address"],
            symbol=row["symbol"],
            name=row.get("name") or "",
            price=float(row.get("price") or 0.0),
            volume_24h=float(row.get("volume_24h") or 0.0),
            change_24h=float(row.get("change_24h") or 0.0),
            first_seen=row.get("first_seen") or None,
        )
