#!/usr/bin/env python3
"""
Pre-Flight Startup Checks for Live Swapping

Verifies the environment before the bot starts trading:
1. Signing key (present, parseable, 64 bytes)
2. RPC node health and latency (< 500ms)
3. Jupiter quote API reachability
4. Wallet SOL balance (enough for auto-buys and fees)

Usage:
    from utils.startup_check import perform_safety_checks
    success, issues = await perform_safety_checks(config)
"""

import asyncio
import logging
from typing import Tuple, List, Optional

from solders.keypair import Keypair

from config.settings import BotConfig
from swap_layer.errors import ConfigurationError
from swap_layer.models import LAMPORTS_PER_SOL
from swap_layer.utils.jupiter_client import JupiterClient
from swap_layer.utils.solana_client import SolanaLedger

logger = logging.getLogger(__name__)

MAX_RPC_LATENCY_MS = 500.0
# Room for network fees on top of one auto-buy
FEE_RESERVE_SOL = 0.01


def check_secret_key(config: BotConfig) -> Tuple[bool, str, Optional[str]]:
    """
    Verify the wallet key parses and has the expected length.

    Returns:
        Tuple of (passed, message, wallet_address)
    """
    try:
        key = config.secret_key_bytes()
    except ConfigurationError as e:
        return False, str(e), None

    if len(key) != 64:
        return False, f"Invalid secret key length: {len(key)}. Expected 64 bytes.", None

    try:
        address = str(Keypair.from_bytes(bytes(key)).pubkey())
    except ValueError as e:
        return False, f"Secret key rejected: {e}", None
    return True, f"Wallet {address}", address


async def check_rpc(ledger: SolanaLedger) -> Tuple[bool, str, Optional[float]]:
    """
    Verify the RPC node is healthy and responsive.

    Returns:
        Tuple of (passed, message, latency_ms)
    """
    if not await ledger.get_health():
        return False, f"RPC {ledger.rpc_url} is not healthy", None

    latency_ms = await ledger.measure_latency()
    if latency_ms is None:
        return False, f"RPC {ledger.rpc_url} did not answer getSlot", None
    if latency_ms > MAX_RPC_LATENCY_MS:
        return False, f"RPC latency {latency_ms:.0f}ms > {MAX_RPC_LATENCY_MS:.0f}ms (too slow)", latency_ms
    return True, f"RPC latency: {latency_ms:.0f}ms", latency_ms


async def check_jupiter(jupiter: JupiterClient) -> Tuple[bool, str]:
    if await jupiter.ping():
        return True, f"Jupiter reachable at {jupiter.base_url}"
    return False, f"Jupiter quote API unreachable at {jupiter.base_url}"


async def check_wallet_balance(
    ledger: SolanaLedger,
    address: str,
    config: BotConfig,
) -> Tuple[bool, str, float]:
    """
    Verify the wallet can fund at least one auto-buy plus fees.

    Returns:
        Tuple of (passed, message, balance_sol)
    """
    try:
        balance = await ledger.get_balance(address)
    except Exception as e:
        return False, f"Failed to check wallet: {e}", 0.0

    required = FEE_RESERVE_SOL
    if config.auto_buy_new_tokens:
        required += config.auto_buy_amount / LAMPORTS_PER_SOL

    if balance < required:
        return False, f"SOL balance {balance:.4f} < {required:.4f} (need fees + one auto-buy)", balance
    return True, f"Wallet balance: {balance:.4f} SOL", balance


def _report(step: str, passed: bool, msg: str, issues: List[str]) -> bool:
    print(f"  {step}")
    if passed:
        print(f"        ✅ {msg}")
    else:
        print(f"        ❌ {msg}")
        issues.append(msg)
    return passed


async def perform_safety_checks(config: BotConfig) -> Tuple[bool, List[str]]:
    """
    Run all pre-flight safety checks.

    Returns:
        Tuple of (all_passed, list_of_issues)
    """
    print("\n" + "=" * 60)
    print("🔍 PRE-FLIGHT SAFETY CHECKS")
    print("=" * 60 + "\n")

    issues: List[str] = []
    ledger = SolanaLedger(config.solana_rpc_url)
    jupiter = JupiterClient(config.jupiter_api_url)

    try:
        passed, msg, address = check_secret_key(config)
        all_passed = _report("[1/4] Checking signing key...", passed, msg, issues)

        passed, msg, _ = await check_rpc(ledger)
        all_passed &= _report("[2/4] Checking RPC node...", passed, msg, issues)

        passed, msg = await check_jupiter(jupiter)
        all_passed &= _report("[3/4] Checking Jupiter API...", passed, msg, issues)

        if address:
            passed, msg, _ = await check_wallet_balance(ledger, address, config)
        else:
            passed, msg = False, "Wallet balance skipped (no valid key)"
        all_passed &= _report("[4/4] Checking wallet balance...", passed, msg, issues)
    finally:
        await asyncio.gather(ledger.close(), jupiter.close())

    print("\n  [Optional] Checking Telegram notifications...")
    if config.telegram_bot_token and config.telegram_chat_id:
        print("        ✅ Telegram notifications enabled")
    else:
        print("        ⚠️  Telegram not configured (notifications disabled)")
        print("           Add TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID to .env to enable")

    print("\n" + "-" * 60)

    if all_passed:
        print("✅ ALL CHECKS PASSED - Safe to proceed with live swapping")
    else:
        print("❌ CHECKS FAILED - Resolve issues before trading")
        print(f"   Issues: {len(issues)}")
        for i, issue in enumerate(issues, 1):
            print(f"   {i}. {issue}")

    print("=" * 60 + "\n")

    return all_passed, issues


if __name__ == "__main__":
    # Run checks directly
    from config.settings import config
    asyncio.run(perform_safety_checks(config))
