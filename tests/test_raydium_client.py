#!/usr/bin/env python3
"""
Raydium Client Tests - tests/test_raydium_client.py

Run with: python -m pytest tests/test_raydium_client.py -v
"""

import sys
import unittest
from pathlib import Path
from types import SimpleNamespace

import httpx
from solders.pubkey import Pubkey

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import TOKEN_MINT, OTHER_MINT
from swap_layer.errors import ProviderError
from swap_layer.models import WSOL_MINT
from swap_layer.utils.raydium_client import (
    AMM_V4_ACCOUNT_SIZE,
    AMM_V4_SLICE_LENGTH,
    AMM_V4_SLICE_OFFSET,
    RaydiumApiClient,
    RaydiumPoolProvider,
    decode_amm_v4_slice,
)

BASE_VAULT = Pubkey.new_unique()
QUOTE_VAULT = Pubkey.new_unique()
LP_MINT = Pubkey.new_unique()


def amm_slice(base_mint: str = TOKEN_MINT, quote_mint: str = WSOL_MINT) -> bytes:
    return b"".join(bytes(k) for k in (
        BASE_VAULT,
        QUOTE_VAULT,
        Pubkey.from_string(base_mint),
        Pubkey.from_string(quote_mint),
        LP_MINT,
    ))


class FakeRpc:
    """Stands in for solana AsyncClient.get_program_accounts / get_token_account_balance."""

    def __init__(self, accounts, balance=7.5, error=None):
        self.accounts = accounts
        self.balance = balance
        self.error = error
        self.program_calls = []

    async def get_program_accounts(self, program, **kwargs):
        self.program_calls.append((program, kwargs))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(value=[
            SimpleNamespace(pubkey=address, account=SimpleNamespace(data=data))
            for address, data in self.accounts
        ])


class FakeLedger:
    def __init__(self, client, balance=7.5):
        self.client = client
        self.balance = balance
        self.balance_calls = []

    async def get_token_balance(self, account):
        self.balance_calls.append(account)
        return self.balance


class TestDecode(unittest.TestCase):

    def test_decode_field_order(self):
        pool = decode_amm_v4_slice("pool-x", amm_slice())
        self.assertEqual(pool.base_vault, str(BASE_VAULT))
        self.assertEqual(pool.quote_vault, str(QUOTE_VAULT))
        self.assertEqual(pool.base_mint, TOKEN_MINT)
        self.assertEqual(pool.quote_mint, WSOL_MINT)
        self.assertEqual(pool.lp_mint, str(LP_MINT))
        self.assertEqual(pool.target_mint(), TOKEN_MINT)
        self.assertEqual(pool.reference_vault(), str(QUOTE_VAULT))

    def test_short_slice_rejected(self):
        with self.assertRaises(ValueError):
            decode_amm_v4_slice("pool-x", amm_slice()[:100])


class TestRaydiumPoolProvider(unittest.IsolatedAsyncioTestCase):

    async def test_list_pools_requests_slice_and_skips_bad_accounts(self):
        rpc = FakeRpc([("pool-a", amm_slice()), ("pool-bad", b"\x00" * 10), ("pool-b", amm_slice(OTHER_MINT))])
        provider = RaydiumPoolProvider(FakeLedger(rpc))

        pools = await provider.list_pools()
        self.assertEqual([p.address for p in pools], ["pool-a", "pool-b"])
        self.assertEqual(pools[1].base_mint, OTHER_MINT)

        _, kwargs = rpc.program_calls[0]
        self.assertEqual(kwargs["data_slice"].offset, AMM_V4_SLICE_OFFSET)
        self.assertEqual(kwargs["data_slice"].length, AMM_V4_SLICE_LENGTH)
        self.assertEqual(kwargs["filters"], [AMM_V4_ACCOUNT_SIZE])

    async def test_rpc_failure_is_provider_error(self):
        provider = RaydiumPoolProvider(FakeLedger(FakeRpc([], error=ConnectionError("rpc down"))))
        with self.assertRaises(ProviderError):
            await provider.list_pools()

    async def test_reference_liquidity_reads_sol_vault(self):
        ledger = FakeLedger(FakeRpc([]), balance=7.5)
        pool = decode_amm_v4_slice("pool-x", amm_slice())
        self.assertEqual(await RaydiumPoolProvider(ledger).reference_liquidity(pool), 7.5)
        self.assertEqual(ledger.balance_calls, [str(QUOTE_VAULT)])

    async def test_reference_liquidity_without_sol_leg(self):
        ledger = FakeLedger(FakeRpc([]))
        pool = decode_amm_v4_slice("pool-x", amm_slice(TOKEN_MINT, OTHER_MINT))
        self.assertEqual(await RaydiumPoolProvider(ledger).reference_liquidity(pool), 0.0)
        self.assertEqual(ledger.balance_calls, [])


class TestRaydiumApiClient(unittest.IsolatedAsyncioTestCase):

    PAIRS = [
        {"name": "RAY/SOL", "baseMint": TOKEN_MINT, "quoteMint": WSOL_MINT, "price": 0.01, "volume24h": 1000},
        {"name": "RAY/USDC", "baseMint": TOKEN_MINT, "quoteMint": "usdc", "price": 1.5},
        {"name": "SOL/BONK", "baseMint": WSOL_MINT, "quoteMint": OTHER_MINT, "price": 5000},
    ]

    def client(self, response) -> RaydiumApiClient:
        return RaydiumApiClient(transport=httpx.MockTransport(lambda request: response))

    async def test_sol_pairs_only(self):
        client = self.client(httpx.Response(200, json=self.PAIRS))
        try:
            tokens = await client.get_top_tokens()
        finally:
            await client.close()

        self.assertEqual([(t.symbol, t.address) for t in tokens], [("RAY", TOKEN_MINT), ("BONK", OTHER_MINT)])
        self.assertEqual(tokens[0].volume_24h, 1000.0)

    async def test_wrapped_response_and_limit(self):
        client = self.client(httpx.Response(200, json={"data": self.PAIRS}))
        try:
            tokens = await client.get_top_tokens(limit=1)
        finally:
            await client.close()
        self.assertEqual(len(tokens), 1)

    async def test_http_error(self):
        client = self.client(httpx.Response(502))
        try:
            with self.assertRaises(ProviderError):
                await client.get_top_tokens()
        finally:
            await client.close()


if __name__ == "__main__":
    unittest.main(verbosity=2)
