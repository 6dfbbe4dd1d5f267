"""
Solana Ledger Client
Thin async wrapper around solana-py: submit, confirm, health and balances
"""
import asyncio
import time
from typing import Optional

import structlog
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature

from swap_layer.errors import ConfirmationTimeoutError, ProviderError, SwapExecutionError
from swap_layer.models import LAMPORTS_PER_SOL

log = structlog.get_logger()


class SolanaLedger:
    """
    Ledger access used by the swap executor and the pool provider.

    RPC failures surface as ProviderError; the caller's breaker decides
    what to do with them.
    """

    DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"

    def __init__(self, rpc_url: str = DEFAULT_RPC_URL, client: Optional[AsyncClient] = None):
        self.rpc_url = rpc_url
        self.client = client or AsyncClient(rpc_url, commitment=Confirmed)

    async def close(self):
        await self.client.close()

    async def get_health(self) -> bool:
        """True if the RPC node answers its health check."""
        try:
            return await self.client.is_connected()
        except Exception as e:
            log.warning("rpc_health_failed", rpc=self.rpc_url, error=str(e))
            return False

    async def measure_latency(self) -> Optional[float]:
        """Round-trip time of a getSlot call in milliseconds, None on failure."""
        start = time.perf_counter()
        try:
            await self.client.get_slot()
        except Exception as e:
            log.warning("rpc_latency_failed", rpc=self.rpc_url, error=str(e))
            return None
        return (time.perf_counter() - start) * 1000

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def send_transaction(self, raw_tx: bytes) -> str:
        """Submit a signed, serialized transaction. Returns its signature."""
        try:
            resp = await self.client.send_raw_transaction(
                raw_tx, opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
            )
        except Exception as e:
            raise SwapExecutionError(f"Transaction submission failed: {e}") from e
        signature = str(resp.value)
        log.info("transaction_sent", signature=signature)
        return signature

    async def confirm_transaction(self, signature: str, timeout: float = 60.0) -> None:
        """
        Wait for `confirmed` commitment.

        Raises:
            ConfirmationTimeoutError: not confirmed within `timeout` seconds
            SwapExecutionError: the transaction landed with an error
        """
        sig = Signature.from_string(signature)
        try:
            resp = await asyncio.wait_for(
                self.client.confirm_transaction(sig, commitment=Confirmed),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConfirmationTimeoutError(
                f"Transaction {signature} not confirmed within {timeout:.0f}s"
            ) from e
        except Exception as e:
            raise SwapExecutionError(f"Confirmation of {signature} failed: {e}") from e

        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            raise SwapExecutionError(f"Transaction {signature} failed on-chain: {status.err}")
        log.info("transaction_confirmed", signature=signature)

    # =========================================================================
    # BALANCES
    # =========================================================================

    async def get_balance(self, owner: str) -> float:
        """Native SOL balance of `owner`, in SOL."""
        try:
            resp = await self.client.get_balance(Pubkey.from_string(owner))
        except Exception as e:
            raise ProviderError(f"getBalance {owner} failed: {e}") from e
        return resp.value / LAMPORTS_PER_SOL

    async def get_token_balance(self, token_account: str) -> float:
        """UI amount held by an SPL token account."""
        try:
            resp = await self.client.get_token_account_balance(Pubkey.from_string(token_account))
        except Exception as e:
            raise ProviderError(f"getTokenAccountBalance {token_account} failed: {e}") from e
        amount = resp.value
        if amount.ui_amount is not None:
            return float(amount.ui_amount)
        return int(amount.amount) / (10 ** amount.decimals)
