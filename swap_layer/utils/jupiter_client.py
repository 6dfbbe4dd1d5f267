"""
Jupiter Routing Client
Quote, swap-transaction and token-list access over the Jupiter HTTP API
"""
import time
from typing import Optional, Dict, Any, List, Tuple

import httpx
import structlog

from swap_layer.errors import NoRouteError, ProviderError
from swap_layer.models import Quote, TokenInfo, TokenMetadata, WSOL_MINT, USDC_MINT
from swap_layer.rate_limiter import RateLimiter, RateLimitedClient

log = structlog.get_logger()


class JupiterClient:
    """
    Async client for the Jupiter aggregator.

    Every request waits on the rate limiter before leaving the process.
    """

    DEFAULT_BASE_URL = "https://quote-api.jup.ag/v6"
    TOKEN_LIST_URL = "https://token.jup.ag/all"
    STRICT_LIST_URL = "https://token.jup.ag/strict"
    REGISTRY_URL = (
        "https://cdn.jsdelivr.net/gh/solana-labs/token-list@main/src/tokens/solana.tokenlist.json"
    )
    PRICE_URL = "https://price.jup.ag/v6/price"
    METADATA_TTL = 600.0
    TOP_TOKEN_TAGS = ("popular", "raydium", "orca")

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter()
        client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        self._http = RateLimitedClient(client, self.rate_limiter)
        self._token_lists: Dict[str, Tuple[float, Dict[str, TokenMetadata]]] = {}

    async def close(self):
        await self._http.aclose()

    async def _get_json(self, url: str, **kwargs) -> Any:
        try:
            resp = await self._http.get(url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(f"GET {url} failed: {e}") from e
        if resp.status_code != 200:
            raise ProviderError(f"GET {url} returned {resp.status_code}")
        return resp.json()

    async def ping(self) -> bool:
        """Cheap reachability probe: a tiny SOL to USDC quote."""
        try:
            await self.get_quote(WSOL_MINT, USDC_MINT, 1_000_000, slippage_bps=50)
            return True
        except ProviderError as e:
            log.warning("jupiter_ping_failed", error=str(e))
            return False

    # =========================================================================
    # QUOTE & SWAP
    # =========================================================================

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50,
    ) -> Quote:
        """
        Request a best-route quote.

        Raises:
            NoRouteError: Jupiter returned an error body or no route
            ProviderError: transport failure or non-2xx status
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }
        try:
            resp = await self._http.get("/quote", params=params)
        except httpx.HTTPError as e:
            raise ProviderError(f"Quote request failed: {e}") from e

        if resp.status_code == 400:
            raise NoRouteError(f"No route {input_mint} -> {output_mint}: {resp.text}")
        if resp.status_code != 200:
            raise ProviderError(f"Quote request returned {resp.status_code}")

        data = resp.json()
        if "error" in data:
            raise NoRouteError(f"No route {input_mint} -> {output_mint}: {data['error']}")
        if not data.get("routePlan") or int(data.get("outAmount", 0)) <= 0:
            raise NoRouteError(f"Empty route {input_mint} -> {output_mint}")

        quote = Quote.from_jupiter(data)
        log.info(
            "quote_received",
            input_mint=quote.input_mint,
            output_mint=quote.output_mint,
            in_amount=quote.in_amount,
            out_amount=quote.out_amount,
            min_out=quote.min_out_amount,
            swap_mode=quote.swap_mode,
        )
        return quote

    async def get_swap_transaction(self, quote: Quote, user_public_key: str) -> str:
        """Build the serialized swap transaction for the wallet. Returns base64."""
        body = {
            "userPublicKey": user_public_key,
            "quoteResponse": quote.raw,
            "wrapAndUnwrapSol": True,
        }
        try:
            resp = await self._http.post("/swap", json=body)
        except httpx.HTTPError as e:
            raise ProviderError(f"Swap request failed: {e}") from e

        if resp.status_code != 200:
            raise ProviderError(f"Swap request returned {resp.status_code}: {resp.text}")

        swap_tx = resp.json().get("swapTransaction")
        if not swap_tx:
            raise ProviderError("Swap response carried no transaction")
        return swap_tx

    # =========================================================================
    # TOKEN LISTS
    # =========================================================================

    async def _load_token_list(self, url: str) -> Dict[str, TokenMetadata]:
        cached = self._token_lists.get(url)
        if cached and time.time() - cached[0] < self.METADATA_TTL:
            return cached[1]

        data = await self._get_json(url)
        tokens = data.get("tokens", []) if isinstance(data, dict) else data
        by_address = {
            t["address"]: TokenMetadata(symbol=t.get("symbol", ""), name=t.get("name", ""))
            for t in tokens
            if t.get("address")
        }
        self._token_lists[url] = (time.time(), by_address)
        log.info("token_list_loaded", url=url, tokens=len(by_address))
        return by_address

    async def get_token_metadata(self, mint: str) -> Optional[TokenMetadata]:
        """
        Look up symbol and name, Jupiter list first, then the Solana registry.

        Returns None when neither list knows the mint.
        """
        for url in (self.TOKEN_LIST_URL, self.REGISTRY_URL):
            found = (await self._load_token_list(url)).get(mint)
            if found:
                log.info("token_metadata_found", mint=mint, symbol=found.symbol, source=url)
                return found
        log.info("token_metadata_missing", mint=mint)
        return None

    async def get_prices(self, mints: List[str]) -> Dict[str, float]:
        if not mints:
            return {}
        data = await self._get_json(self.PRICE_URL, params={"ids": ",".join(mints)})
        return {
            mint: float(entry.get("price") or 0.0)
            for mint, entry in (data.get("data") or {}).items()
        }

    async def get_top_tokens(self, limit: int = 20) -> List[TokenInfo]:
        """Popular tokens from the strict list, priced best-effort."""
        data = await self._get_json(self.STRICT_LIST_URL)
        if not isinstance(data, list):
            raise ProviderError("Invalid response format from Jupiter token list")

        popular = [
            t for t in data
            if any(tag in (t.get("tags") or []) for tag in self.TOP_TOKEN_TAGS)
        ][:limit]

        try:
            prices = await self.get_prices([t["address"] for t in popular])
        except ProviderError as e:
            log.warning("jupiter_prices_unavailable", error=str(e))
            prices = {}

        return [
            TokenInfo(
                address=t["address"],
                symbol=t.get("symbol", ""),
                name=t.get("name", ""),
                price=prices.get(t["address"], 0.0),
            )
            for t in popular
        ]
