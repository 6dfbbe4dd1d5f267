"""
Swap Executor

Turns a Quote into a confirmed on-chain swap:
1. Fetch the serialized swap transaction for our wallet from Jupiter
2. Deserialize and sign it with the wallet keypair
3. Submit it and wait for `confirmed` commitment (bounded by confirm_timeout)

No internal retries: the orchestrator's loop and breakers own retry policy.
"""

import base64
import logging
import uuid
from typing import Optional

from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from swap_layer.errors import SwapExecutionError
from swap_layer.models import Quote
from swap_layer.utils.jupiter_client import JupiterClient
from swap_layer.utils.solana_client import SolanaLedger

logger = logging.getLogger(__name__)


class SwapExecutor:
    """Signs and submits Jupiter swap transactions for one wallet."""

    def __init__(
        self,
        jupiter: JupiterClient,
        ledger: Optional[SolanaLedger],
        keypair: Keypair,
        dry_run: bool = True,
        confirm_timeout: float = 60.0,
    ):
        self.jupiter = jupiter
        self.ledger = ledger
        self.keypair = keypair
        self.dry_run = dry_run
        self.confirm_timeout = confirm_timeout

    @property
    def wallet_address(self) -> str:
        return str(self.keypair.pubkey())

    def sign(self, swap_transaction: str) -> bytes:
        """Deserialize a base64 swap transaction and sign it with our wallet."""
        try:
            unsigned = VersionedTransaction.from_bytes(base64.b64decode(swap_transaction))
            signed = VersionedTransaction(unsigned.message, [self.keypair])
        except Exception as e:
            raise SwapExecutionError(f"Could not sign swap transaction: {e}") from e
        return bytes(signed)

    async def execute(self, quote: Quote) -> str:
        """
        Execute a quoted swap.

        Returns:
            The transaction signature

        Raises:
            ProviderError (or a subclass) on any failure
        """
        logger.info(
            f"🔄 Swap {quote.in_amount} {quote.input_mint[:8]}… -> "
            f"{quote.out_amount} {quote.output_mint[:8]}… "
            f"(min {quote.min_out_amount}, slippage {quote.slippage_bps} bps)"
        )

        if self.dry_run:
            tx_id = f"dry_run_{uuid.uuid4().hex[:16]}"
            logger.info(f"  [DRY RUN] Simulated swap {tx_id}")
            return tx_id

        if self.ledger is None:
            raise SwapExecutionError("No ledger configured for live swaps")

        swap_transaction = await self.jupiter.get_swap_transaction(quote, self.wallet_address)
        raw_tx = self.sign(swap_transaction)
        signature = await self.ledger.send_transaction(raw_tx)
        logger.info(f"📤 Transaction sent: {signature}")

        await self.ledger.confirm_transaction(signature, timeout=self.confirm_timeout)
        logger.info(f"✅ Transaction confirmed: {signature}")
        return signature
