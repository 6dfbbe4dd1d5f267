#!/usr/bin/env python3
"""
Jupiter Client Tests - tests/test_jupiter_client.py

HTTP is served by httpx.MockTransport; nothing leaves the process.

Run with: python -m pytest tests/test_jupiter_client.py -v
"""

import json
import sys
import unittest
from pathlib import Path

import httpx

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import TOKEN_MINT, OTHER_MINT
from swap_layer.errors import NoRouteError, ProviderError
from swap_layer.models import USDC_MINT, WSOL_MINT
from swap_layer.utils.jupiter_client import JupiterClient

QUOTE_BODY = {
    "inputMint": WSOL_MINT,
    "outputMint": USDC_MINT,
    "inAmount": "1000000",
    "outAmount": "150000",
    "otherAmountThreshold": "149250",
    "swapMode": "ExactIn",
    "slippageBps": 50,
    "priceImpactPct": "0.001",
    "routePlan": [{"swapInfo": {"label": "Raydium"}, "percent": 100}],
}


class TestJupiterClient(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.requests = []
        self.routes = {}

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, response in self.routes.items():
            if request.url.path.endswith(suffix):
                return response(request) if callable(response) else response
        return httpx.Response(404, json={"error": "not found"})

    async def asyncSetUp(self):
        self.client = JupiterClient(transport=httpx.MockTransport(self._handler))

    async def asyncTearDown(self):
        await self.client.close()

    # =========================================================================
    # QUOTE
    # =========================================================================

    async def test_quote_parses_amounts(self):
        self.routes["/quote"] = httpx.Response(200, json=QUOTE_BODY)
        quote = await self.client.get_quote(WSOL_MINT, USDC_MINT, 1_000_000, slippage_bps=50)

        self.assertEqual(quote.in_amount, 1_000_000)
        self.assertEqual(quote.out_amount, 150_000)
        self.assertEqual(quote.min_out_amount, 149_250)
        self.assertEqual(quote.swap_mode, "ExactIn")

        params = self.requests[0].url.params
        self.assertEqual(params["inputMint"], WSOL_MINT)
        self.assertEqual(params["amount"], "1000000")
        self.assertEqual(params["slippageBps"], "50")
        self.assertEqual(self.requests[0].url.path, "/v6/quote")

    async def test_error_body_is_no_route(self):
        self.routes["/quote"] = httpx.Response(200, json={"error": "Could not find any route"})
        with self.assertRaises(NoRouteError):
            await self.client.get_quote(WSOL_MINT, TOKEN_MINT, 1000)

    async def test_bad_request_is_no_route(self):
        self.routes["/quote"] = httpx.Response(400, json={"error": "TOKEN_NOT_TRADABLE"})
        with self.assertRaises(NoRouteError):
            await self.client.get_quote(WSOL_MINT, TOKEN_MINT, 1000)

    async def test_empty_route_plan_is_no_route(self):
        self.routes["/quote"] = httpx.Response(200, json=dict(QUOTE_BODY, routePlan=[]))
        with self.assertRaises(NoRouteError):
            await self.client.get_quote(WSOL_MINT, USDC_MINT, 1000)

    async def test_server_error_is_provider_error(self):
        self.routes["/quote"] = httpx.Response(503, text="unavailable")
        with self.assertRaises(ProviderError) as ctx:
            await self.client.get_quote(WSOL_MINT, USDC_MINT, 1000)
        self.assertNotIsInstance(ctx.exception, NoRouteError)

    async def test_transport_error_is_provider_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.routes["/quote"] = boom
        with self.assertRaises(ProviderError):
            await self.client.get_quote(WSOL_MINT, USDC_MINT, 1000)

    async def test_ping(self):
        self.routes["/quote"] = httpx.Response(200, json=QUOTE_BODY)
        self.assertTrue(await self.client.ping())

        self.routes["/quote"] = httpx.Response(500)
        self.assertFalse(await self.client.ping())

    # =========================================================================
    # SWAP
    # =========================================================================

    async def test_swap_transaction_request(self):
        self.routes["/quote"] = httpx.Response(200, json=QUOTE_BODY)
        self.routes["/swap"] = httpx.Response(200, json={"swapTransaction": "AQID"})

        quote = await self.client.get_quote(WSOL_MINT, USDC_MINT, 1_000_000)
        blob = await self.client.get_swap_transaction(quote, "WalletPubkey111")

        self.assertEqual(blob, "AQID")
        body = json.loads(self.requests[-1].content)
        self.assertEqual(body["userPublicKey"], "WalletPubkey111")
        self.assertEqual(body["quoteResponse"], QUOTE_BODY)

    async def test_swap_without_transaction_fails(self):
        self.routes["/quote"] = httpx.Response(200, json=QUOTE_BODY)
        self.routes["/swap"] = httpx.Response(200, json={})
        quote = await self.client.get_quote(WSOL_MINT, USDC_MINT, 1_000_000)
        with self.assertRaises(ProviderError):
            await self.client.get_swap_transaction(quote, "WalletPubkey111")

    # =========================================================================
    # TOKEN METADATA
    # =========================================================================

    async def test_metadata_from_jupiter_list(self):
        self.routes["/all"] = httpx.Response(
            200, json=[{"address": TOKEN_MINT, "symbol": "RAY", "name": "Raydium"}]
        )
        meta = await self.client.get_token_metadata(TOKEN_MINT)
        self.assertEqual(meta.symbol, "RAY")
        self.assertEqual(meta.name, "Raydium")

    async def test_metadata_falls_back_to_registry(self):
        self.routes["/all"] = httpx.Response(200, json=[])
        self.routes["solana.tokenlist.json"] = httpx.Response(
            200, json={"tokens": [{"address": OTHER_MINT, "symbol": "BONK", "name": "Bonk"}]}
        )
        meta = await self.client.get_token_metadata(OTHER_MINT)
        self.assertEqual(meta.symbol, "BONK")

    async def test_metadata_not_found_is_none(self):
        self.routes["/all"] = httpx.Response(200, json=[])
        self.routes["solana.tokenlist.json"] = httpx.Response(200, json={"tokens": []})
        self.assertIsNone(await self.client.get_token_metadata(TOKEN_MINT))

    async def test_metadata_http_failure_raises(self):
        self.routes["/all"] = httpx.Response(500)
        with self.assertRaises(ProviderError):
            await self.client.get_token_metadata(TOKEN_MINT)

    async def test_token_list_is_cached(self):
        self.routes["/all"] = httpx.Response(
            200, json=[{"address": TOKEN_MINT, "symbol": "RAY", "name": "Raydium"}]
        )
        await self.client.get_token_metadata(TOKEN_MINT)
        await self.client.get_token_metadata(TOKEN_MINT)
        list_requests = [r for r in self.requests if r.url.path.endswith("/all")]
        self.assertEqual(len(list_requests), 1)

    # =========================================================================
    # TOP TOKENS
    # =========================================================================

    async def test_top_tokens_filters_by_tag(self):
        self.routes["/strict"] = httpx.Response(200, json=[
            {"address": TOKEN_MINT, "symbol": "RAY", "name": "Raydium", "tags": ["raydium"]},
            {"address": OTHER_MINT, "symbol": "XYZ", "name": "Obscure", "tags": ["unknown"]},
        ])
        self.routes["/price"] = httpx.Response(200, json={"data": {TOKEN_MINT: {"price": 1.75}}})

        tokens = await self.client.get_top_tokens(limit=10)
        self.assertEqual([t.symbol for t in tokens], ["RAY"])
        self.assertEqual(tokens[0].price, 1.75)

    async def test_top_tokens_without_prices(self):
        self.routes["/strict"] = httpx.Response(200, json=[
            {"address": TOKEN_MINT, "symbol": "RAY", "name": "Raydium", "tags": ["popular"]},
        ])
        tokens = await self.client.get_top_tokens()
        self.assertEqual(tokens[0].price, 0.0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
