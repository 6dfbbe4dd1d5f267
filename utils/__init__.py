"""
Solana Swap Bot Utilities (notifications, pre-flight checks)
"""
