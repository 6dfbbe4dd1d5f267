"""
Raydium Clients
- RaydiumPoolProvider: AMM v4 pool accounts read straight from the ledger
- RaydiumApiClient: pair statistics from the public Raydium API
"""
from typing import List, Optional

import httpx
import structlog
from solana.rpc.types import DataSliceOpts
from solders.pubkey import Pubkey

from swap_layer.errors import ProviderError
from swap_layer.market_detector import PoolProvider
from swap_layer.models import PoolInfo, TokenInfo
from swap_layer.rate_limiter import RateLimiter, RateLimitedClient
from swap_layer.utils.solana_client import SolanaLedger

log = structlog.get_logger()

RAYDIUM_AMM_V4_PROGRAM_ID = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"

# AMM v4 account layout (752 bytes). Only the five pubkeys starting at the
# base vault are fetched.
AMM_V4_ACCOUNT_SIZE = 752
AMM_V4_SLICE_OFFSET = 336
AMM_V4_SLICE_LENGTH = 160
_BASE_VAULT = slice(0, 32)
_QUOTE_VAULT = slice(32, 64)
_BASE_MINT = slice(64, 96)
_QUOTE_MINT = slice(96, 128)
_LP_MINT = slice(128, 160)


def decode_amm_v4_slice(address: str, data: bytes, program_id: str = RAYDIUM_AMM_V4_PROGRAM_ID) -> PoolInfo:
    """Decode the vault and mint fields of an AMM v4 account slice."""
    if len(data) < AMM_V4_SLICE_LENGTH:
        raise ValueError(f"AMM slice for {address} is {len(data)} bytes, need {AMM_V4_SLICE_LENGTH}")

    def key(part: slice) -> str:
        return str(Pubkey.from_bytes(bytes(data[part])))

    return PoolInfo(
        address=address,
        base_mint=key(_BASE_MINT),
        quote_mint=key(_QUOTE_MINT),
        lp_mint=key(_LP_MINT),
        base_vault=key(_BASE_VAULT),
        quote_vault=key(_QUOTE_VAULT),
        program_id=program_id,
    )


class RaydiumPoolProvider(PoolProvider):
    """Lists every Raydium AMM v4 pool via getProgramAccounts."""

    def __init__(self, ledger: SolanaLedger, program_id: str = RAYDIUM_AMM_V4_PROGRAM_ID):
        self.ledger = ledger
        self.program_id = program_id

    async def list_pools(self) -> List[PoolInfo]:
        try:
            resp = await self.ledger.client.get_program_accounts(
                Pubkey.from_string(self.program_id),
                encoding="base64",
                data_slice=DataSliceOpts(offset=AMM_V4_SLICE_OFFSET, length=AMM_V4_SLICE_LENGTH),
                filters=[AMM_V4_ACCOUNT_SIZE],
            )
        except Exception as e:
            raise ProviderError(f"getProgramAccounts {self.program_id} failed: {e}") from e

        pools = []
        for keyed in resp.value:
            try:
                pools.append(decode_amm_v4_slice(str(keyed.pubkey), keyed.account.data, self.program_id))
            except ValueError as e:
                log.warning("amm_account_skipped", account=str(keyed.pubkey), error=str(e))
        log.debug("raydium_pools_listed", count=len(pools))
        return pools

    async def reference_liquidity(self, pool: PoolInfo) -> float:
        """SOL held in the pool's wrapped-SOL vault. 0.0 if the pool has no SOL leg."""
        vault = pool.reference_vault()
        if vault is None:
            return 0.0
        return await self.ledger.get_token_balance(vault)


class RaydiumApiClient:
    """Pair statistics from api.raydium.io."""

    PAIRS_URL = "https://api.raydium.io/v2/main/pairs"

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._http = RateLimitedClient(client, rate_limiter or RateLimiter())

    async def close(self):
        await self._http.aclose()

    async def get_top_tokens(self, limit: int = 20) -> List[TokenInfo]:
        """SOL-paired tokens in the order Raydium lists them."""
        try:
            resp = await self._http.get(self.PAIRS_URL)
        except httpx.HTTPError as e:
            raise ProviderError(f"Raydium pairs request failed: {e}") from e
        if resp.status_code != 200:
            raise ProviderError(f"Raydium API error: {resp.status_code}")

        data = resp.json()
        pairs = data.get("data") if isinstance(data, dict) else data
        if not isinstance(pairs, list):
            raise ProviderError("Invalid response format from Raydium API")

        tokens = []
        for pair in pairs:
            name = pair.get("name") or ""
            if "SOL" not in name or "/" not in name:
                continue
            base_symbol, quote_symbol = name.split("/", 1)
            sol_is_quote = name.endswith("SOL")
            tokens.append(TokenInfo(
                address=pair.get("baseMint", "") if sol_is_quote else pair.get("quoteMint", ""),
                symbol=base_symbol if sol_is_quote else quote_symbol,
                price=float(pair.get("price") or 0.0),
                volume_24h=float(pair.get("volume24h") or 0.0),
                change_24h=float(pair.get("priceChange24h") or 0.0),
            ))
            if len(tokens) >= limit:
                break

        log.info("raydium_top_tokens", count=len(tokens))
        return tokens
