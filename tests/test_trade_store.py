#!/usr/bin/env python3
"""
Trade Store Tests - tests/test_trade_store.py

Run with: python -m pytest tests/test_trade_store.py -v
"""

import sys
import tempfile
import unittest
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import TOKEN_MINT, OTHER_MINT
from swap_layer.models import Quote, Trade, TokenInfo, TokenMetadata, WSOL_MINT
from swap_layer.trade_store import CsvTradeStore, InMemoryTradeStore


def make_trade(output_mint=TOKEN_MINT, in_amount=3, out_amount=7, tx_id="tx1") -> Trade:
    quote = Quote(
        input_mint=WSOL_MINT,
        output_mint=output_mint,
        in_amount=in_amount,
        out_amount=out_amount,
        min_out_amount=out_amount,
    )
    return Trade.from_quote(quote, tx_id, timestamp=1_700_000_000.123)


class TradeStoreContract:
    """Behaviour every store must share. Mixed into concrete TestCases."""

    def make_store(self):
        raise NotImplementedError

    async def test_trade_round_trip_preserves_fields_and_price(self):
        store = self.make_store()
        trade = make_trade()
        await store.save_trade(trade)

        [loaded] = await store.get_all_trades()
        self.assertEqual(loaded.input_token, WSOL_MINT)
        self.assertEqual(loaded.output_token, TOKEN_MINT)
        self.assertEqual(loaded.input_amount, 3)
        self.assertEqual(loaded.output_amount, 7)
        self.assertEqual(loaded.price, 7 / 3)
        self.assertEqual(loaded, trade)

    async def test_trades_are_append_only(self):
        store = self.make_store()
        await store.save_trade(make_trade(tx_id="tx1"))
        await store.save_trade(make_trade(tx_id="tx2"))
        trades = await store.get_all_trades()
        self.assertEqual([t.tx_id for t in trades], ["tx1", "tx2"])

    async def test_trades_for_token(self):
        store = self.make_store()
        await store.save_trade(make_trade(output_mint=TOKEN_MINT, tx_id="tx1"))
        await store.save_trade(make_trade(output_mint=OTHER_MINT, tx_id="tx2"))

        trades = await store.get_trades_for_token(OTHER_MINT)
        self.assertEqual([t.tx_id for t in trades], ["tx2"])
        self.assertEqual(len(await store.get_trades_for_token(WSOL_MINT)), 2)

    async def test_token_upsert_by_address(self):
        store = self.make_store()
        await store.save_token(TokenInfo.first_seen_now(TOKEN_MINT, None))
        await store.save_token(TokenInfo.first_seen_now(TOKEN_MINT, TokenMetadata("RAY", "Raydium")))

        tokens = await store.get_all_tokens()
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].symbol, "RAY")

        token = await store.get_token(TOKEN_MINT)
        self.assertEqual(token.name, "Raydium")
        self.assertIsNone(await store.get_token(OTHER_MINT))


class TestInMemoryTradeStore(TradeStoreContract, unittest.IsolatedAsyncioTestCase):

    def make_store(self):
        return InMemoryTradeStore()


class TestCsvTradeStore(TradeStoreContract, unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def make_store(self):
        return CsvTradeStore(self.directory)

    async def test_survives_reopen(self):
        await self.make_store().save_trade(make_trade())
        trades = await self.make_store().get_all_trades()
        self.assertEqual(len(trades), 1)
        self.assertEqual(trades[0].price, 7 / 3)

    async def test_synthetic_token_fields(self):
        store = self.make_store()
        await store.save_token(TokenInfo.first_seen_now(TOKEN_MINT, None))
        token = await store.get_token(TOKEN_MINT)
        self.assertEqual(token.symbol, f"NEW_{TOKEN_MINT[:5]}")
        self.assertEqual(token.name, f"New Token {TOKEN_MINT[:5]}")
        self.assertIsNotNone(token.first_seen)
        self.assertTrue(token.first_seen.endswith("+00:00"))

    async def test_token_saves_append_and_last_row_wins(self):
        store = self.make_store()
        await store.save_token(TokenInfo.first_seen_now(TOKEN_MINT, None))
        await store.save_token(TokenInfo.first_seen_now(OTHER_MINT, None))
        await store.save_token(TokenInfo.first_seen_now(TOKEN_MINT, TokenMetadata("RAY", "Raydium")))

        with open(store.tokens_path, newline="") as f:
            self.assertEqual(len(f.read().splitlines()), 4)

        tokens = await store.get_all_tokens()
        self.assertEqual([t.address for t in tokens], [TOKEN_MINT, OTHER_MINT])
        self.assertEqual(tokens[0].symbol, "RAY")


if __name__ == "__main__":
    unittest.main(verbosity=2)
