"""
Trade Store - persistence sink for trades and first-seen tokens

The orchestrator only needs save_trade / save_token / get_all_trades /
get_all_tokens. Two sinks ship:
- InMemoryTradeStore: process-local lists (default, tests)
- CsvTradeStore: append-only trades.csv and tokens.csv (last token row wins)

Trades are append-only. Tokens are keyed by mint address.
"""

import asyncio
import csv
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from swap_layer.models import Trade, TokenInfo

logger = logging.getLogger(__name__)


class TradeStore(ABC):
    """Storage interface consumed by the trading bot."""

    @abstractmethod
    async def save_trade(self, trade: Trade) -> None:
        pass

    @abstractmethod
    async def save_token(self, token: TokenInfo) -> None:
        pass

    @abstractmethod
    async def get_all_trades(self) -> List[Trade]:
        pass

    @abstractmethod
    async def get_all_tokens(self) -> List[TokenInfo]:
        pass

    async def get_token(self, address: str) -> Optional[TokenInfo]:
        for token in await self.get_all_tokens():
            if token.address == address:
                return token
        return None

    async def get_trades_for_token(self, address: str) -> List[Trade]:
        """Trades where `address` is either the input or the output token."""
        return [t for t in await self.get_all_trades() if t.involves(address)]


class InMemoryTradeStore(TradeStore):
    """Process-local store."""

    def __init__(self):
        self._trades: List[Trade] = []
        self._tokens: Dict[str, TokenInfo] = {}
        self._lock = asyncio.Lock()

    async def save_trade(self, trade: Trade) -> None:
        async with self._lock:
            self._trades.append(trade)
        logger.info(f"💾 Trade saved: {trade.tx_id}")

    async def save_token(self, token: TokenInfo) -> None:
        async with self._lock:
            self._tokens[token.address] = token
        logger.info(f"💾 Token {token.symbol} ({token.address}) saved")

    async def get_all_trades(self) -> List[Trade]:
        async with self._lock:
            return list(self._trades)

    async def get_all_tokens(self) -> List[TokenInfo]:
        async with self._lock:
            return list(self._tokens.values())


class CsvTradeStore(TradeStore):
    """
    CSV-backed store.

    Both files are only ever appended to. A token saved again gets a new
    tokens.csv row; on read the last row for each address wins. File I/O
    runs in a worker thread so the event loop never blocks on disk.
    """

    TRADES_FILE = "trades.csv"
    TOKENS_FILE = "tokens.csv"
    TRADE_COLUMNS = [
        "input_token", "output_token", "input_amount", "output_amount",
        "price", "timestamp", "tx_id",
    ]
    TOKEN_COLUMNS = [
        "address", "symbol", "name", "price", "volume_24h", "change_24h", "first_seen",
    ]

    def __init__(self, directory: str = "logs"):
        self.directory = Path(directory)
        self.trades_path = self.directory / self.TRADES_FILE
        self.tokens_path = self.directory / self.TOKENS_FILE
        self._lock = asyncio.Lock()
        self._ensure_dir()
        self._init_csv(self.trades_path, self.TRADE_COLUMNS)
        self._init_csv(self.tokens_path, self.TOKEN_COLUMNS)
        logger.info(f"💾 CsvTradeStore writing to {self.directory}/")

    def _ensure_dir(self):
        """Create the store directory if it doesn't exist."""
        self.directory.mkdir(parents=True, exist_ok=True)

    def _init_csv(self, path: Path, columns: List[str]):
        """Initialize CSV file with headers if it doesn't exist."""
        if not os.path.exists(path):
            with open(path, "w", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=columns)
                writer.writeheader()

    @staticmethod
    def _append_row(path: Path, columns: List[str], row: dict) -> None:
        with open(path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writerow(row)

    @staticmethod
    def _read_rows(path: Path) -> List[dict]:
        with open(path, "r", newline="") as f:
            return list(csv.DictReader(f))

    async def save_trade(self, trade: Trade) -> None:
        row = trade.to_dict()
        # repr() keeps floats exact through the text round-trip
        row["price"] = repr(trade.price)
        row["timestamp"] = repr(trade.timestamp)
        async with self._lock:
            await asyncio.to_thread(self._append_row, self.trades_path, self.TRADE_COLUMNS, row)
        logger.info(f"💾 Trade saved: {trade.tx_id}")

    async def save_token(self, token: TokenInfo) -> None:
        row = token.to_dict()
        row["first_seen"] = row["first_seen"] or ""
        async with self._lock:
            await asyncio.to_thread(self._append_row, self.tokens_path, self.TOKEN_COLUMNS, row)
        logger.info(f"💾 Token {token.symbol} ({token.address}) saved")

    async def get_all_trades(self) -> List[Trade]:
        async with self._lock:
            rows = await asyncio.to_thread(self._read_rows, self.trades_path)
        return [Trade.from_dict(row) for row in rows]

    async def get_all_tokens(self) -> List[TokenInfo]:
        async with self._lock:
            rows = await asyncio.to_thread(self._read_rows, self.tokens_path)
        # dicts keep first-insertion order; later rows overwrite earlier ones
        latest: Dict[str, dict] = {}
        for row in rows:
            latest[row["address"]] = row
        return [TokenInfo.from_dict(row) for row in latest.values()]
