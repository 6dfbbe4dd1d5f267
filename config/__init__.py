"""
Solana Swap Bot Configuration
"""
from .settings import config, BotConfig, load_secret_key

__all__ = ["config", "BotConfig", "load_secret_key"]
