"""
Solana Swap Bot Provider Clients
"""
from .jupiter_client import JupiterClient
from .solana_client import SolanaLedger
from .raydium_client import RaydiumPoolProvider, RaydiumApiClient

__all__ = ["JupiterClient", "SolanaLedger", "RaydiumPoolProvider", "RaydiumApiClient"]
