"""
Solana Swap Bot - Main Entry Point

Modes:
- monitor: detect new Raydium pools, record and notify (no steady-state swaps)
- trade: full bot (steady-state swap loop + detection + optional auto-buy)
- dry-run: full bot with simulated swaps, bounded by --iterations
- status: pre-flight checks (key, RPC, Jupiter, wallet balance)
- keygen: print a fresh wallet in .env format

Safety:
- RiskManager gates every auto-buy (size, daily volume, exposure, liquidity, cooldown)
- RateLimiter + per-resource CircuitBreakers guard every quote, swap and pool scan
"""

import argparse
import asyncio
import json
import logging
import signal
import sys

from dotenv import load_dotenv
from solders.keypair import Keypair

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_keygen() -> bool:
    """Print a new keypair as .env lines."""
    keypair = Keypair()
    print("\n# New wallet - keep this secret!")
    print(f"# Public key: {keypair.pubkey()}")
    print(f"SECRET_KEY={json.dumps(list(bytes(keypair)))}\n")
    return True


async def run_status() -> bool:
    from config.settings import config
    from utils.startup_check import perform_safety_checks

    success, _ = await perform_safety_checks(config)
    return success


async def run_bot(mode: str, iterations=None) -> bool:
    """
    Build, initialize and run the trading bot until a signal (or --iterations).
    """
    from config.settings import config
    from swap_layer.errors import ConfigurationError
    from swap_layer.trading_bot import TradingBot

    overrides = {}
    if mode == "monitor":
        overrides["execute_swaps"] = False
        overrides["auto_buy_new_tokens"] = False
    elif mode == "dry-run":
        overrides["execute_swaps"] = True
        overrides["dry_run"] = True
        if iterations is None:
            iterations = 3
    bot_config = config.model_copy(update=overrides)

    try:
        bot = TradingBot(bot_config)
        await bot.initialize()
    except ConfigurationError as e:
        print(f"\n❌ Cannot start: {e}")
        return False

    # Setup graceful shutdown
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(sig, frame):
        print("\n\n🛑 Shutdown signal received...")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    async def stop_on_signal():
        await shutdown_event.wait()
        await bot.stop()

    stopper = asyncio.create_task(stop_on_signal())

    print("\n" + "=" * 60)
    print("SWAP BOT STARTING")
    print(f"Mode: {mode.upper()} ({'DRY RUN' if bot_config.dry_run else '🔴 LIVE SWAPS'})")
    print(f"Wallet: {bot.wallet_address}")
    print(f"Detect new markets: {bot_config.detect_new_markets}")
    print(f"Steady-state swaps: {bot_config.execute_swaps}")
    print(f"Auto-buy new tokens: {bot_config.auto_buy_new_tokens}")
    print("Press Ctrl+C to stop")
    print("=" * 60 + "\n")

    await bot.notifier.on_startup(mode=mode)

    try:
        await bot.monitor_and_trade(max_iterations=iterations)
        if not bot_config.execute_swaps:
            await bot.wait_until_stopped()
    except Exception as e:
        logger.exception(f"Trading bot crashed: {e}")
        await bot.notifier.on_error(str(e))
    finally:
        stopper.cancel()
        await bot.stop()
        await bot.notifier.on_shutdown("Session complete")

    status = bot.get_status()
    print("\n" + "=" * 60)
    print("SESSION SUMMARY")
    print("=" * 60)
    print(f"  Cycles: {status['cycles']} ({status['failed_cycles']} failed)")
    print(f"  Trades executed: {status['trades_executed']} (auto-buys: {status['auto_buys']})")
    print(f"  New markets seen: {status['new_markets']}")
    print(f"  Daily volume: {status['risk']['daily_trade_volume']} SOL")
    print(f"  Throttled requests: {status['rate_limiter']['total_throttled']}")
    for name, breaker in status["breakers"].items():
        print(f"  Breaker '{name}': {breaker['state']} ({breaker['failure_count']} failures)")
    print("=" * 60 + "\n")

    return True


def main():
    parser = argparse.ArgumentParser(
        description="Solana Swap Bot - Jupiter quotes, Raydium new-market detection"
    )
    parser.add_argument(
        "--mode",
        choices=["monitor", "trade", "dry-run", "status", "keygen"],
        default="dry-run",
        help="Operation mode: monitor, trade, dry-run (simulated swaps), status (pre-flight), keygen"
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Stop the swap loop after this many cycles (dry-run defaults to 3)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    print("""
    ╔═══════════════════════════════════════════════════════════╗
    ║                                                           ║
    ║   ⚡ SOLANA SWAP BOT                                      ║
    ║                                                           ║
    ║   Quotes & swaps: Jupiter aggregator                      ║
    ║   New markets:    Raydium AMM v4 pool detection           ║
    ║   Safety:         RiskManager + breakers + rate limits    ║
    ║                                                           ║
    ╚═══════════════════════════════════════════════════════════╝
    """)

    if args.mode == "keygen":
        sys.exit(0 if run_keygen() else 1)
    elif args.mode == "status":
        success = asyncio.run(run_status())
        sys.exit(0 if success else 1)
    elif args.mode == "trade":
        from config.settings import config
        if not config.dry_run:
            print("\n🔴 LIVE TRADING MODE")
            print("\n⚠️  WARNING: This will execute REAL swaps!")
            confirm = input("Type 'CONFIRM' to proceed: ")
            if confirm != "CONFIRM":
                print("Aborted.")
                sys.exit(1)
        success = asyncio.run(run_bot("trade", args.iterations))
        sys.exit(0 if success else 1)
    else:
        success = asyncio.run(run_bot(args.mode, args.iterations))
        sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
