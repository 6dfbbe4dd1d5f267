#!/usr/bin/env python3
"""
Telegram Notification System for Remote Monitoring

Sends HTML messages to a Telegram chat for:
- Swap executions
- Newly detected tokens
- Errors
- Bot startup/shutdown

Best-effort: every failure is logged and reported as False, never raised.

Usage:
    from utils.notifier import TelegramNotifier
    notifier = TelegramNotifier(token, chat_id)
    await notifier.notify_trade("BUY", "BONK", mint, 0.01, 0.000012, signature)
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


def _short(value: str) -> str:
    if len(value) <= 16:
        return value
    return f"{value[:8]}...{value[-8:]}"


class TelegramNotifier:
    """
    Telegram bot notifier.

    Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID in your .env file.
    Create a bot with @BotFather, then add it to the target chat.
    """

    API_URL = "https://api.telegram.org"

    def __init__(
        self,
        token: Optional[str] = None,
        chat_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.chat_id = chat_id if chat_id is not None else os.getenv("TELEGRAM_CHAT_ID", "")
        self.enabled = bool(self.token and self.chat_id)
        self.instance_id = os.getenv("INSTANCE_ID", "local")
        self._transport = transport

        if self.enabled:
            logger.info("📣 Telegram notifications enabled")
        else:
            logger.warning("📣 Telegram notifications disabled (no bot token / chat id)")

    async def _send(self, text: str) -> bool:
        """Send message to the Telegram chat."""
        if not self.enabled:
            logger.debug(f"Telegram disabled, would send: {text.strip()[:80]}")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                resp = await client.post(f"{self.API_URL}/bot{self.token}/sendMessage", json=payload)
                if resp.status_code != 200:
                    logger.warning(f"Telegram sendMessage failed: {resp.status_code}")
                    return False
                return resp.json().get("ok") is True
        except Exception as e:
            logger.error(f"Telegram notification failed: {e}")
            return False

    async def send_message(self, msg: str) -> bool:
        """Send a plain text message."""
        return await self._send(msg)

    def get_status(self) -> dict:
        """Get notifier status for diagnostics."""
        return {
            "enabled": self.enabled,
            "token_set": bool(self.token),
            "chat_id_set": bool(self.chat_id),
            "instance_id": self.instance_id,
        }

    async def on_startup(self, mode: str = "live") -> bool:
        """Send notification when bot starts."""
        text = (
            f"<b>🚀 Swap bot started</b>\n\n"
            f"Mode: {mode.upper()}\n"
            f"Instance: {self.instance_id}\n"
            f"Started: {datetime.now(timezone.utc).isoformat()}"
        )
        sent = await self._send(text)
        logger.info(f"📣 Startup notification (mode: {mode})")
        return sent

    async def on_shutdown(self, reason: str = "Manual stop") -> bool:
        """Send notification when bot shuts down."""
        text = (
            f"<b>🛑 Swap bot stopped</b>\n\n"
            f"Reason: {reason}\n"
            f"Instance: {self.instance_id}"
        )
        sent = await self._send(text)
        logger.info(f"📣 Shutdown notification (reason: {reason})")
        return sent

    async def notify_trade(
        self,
        action: str,
        token_symbol: str,
        token_address: str,
        amount: float,
        price: float,
        tx_id: str,
    ) -> bool:
        """Send notification when a swap executes. Amount and price are in SOL."""
        text = (
            f"<b>{action.upper()} {token_symbol}</b>\n\n"
            f"Amount: {amount} SOL\n"
            f"Price: {price} SOL\n"
            f'Token: <a href="https://solscan.io/token/{token_address}">{_short(token_address)}</a>\n'
            f'Transaction: <a href="https://solscan.io/tx/{tx_id}">{_short(tx_id)}</a>'
        )
        return await self._send(text)

    async def notify_new_token(
        self,
        token_symbol: str,
        token_address: str,
        liquidity: Optional[float] = None,
        verified: Optional[bool] = None,
    ) -> bool:
        """Send notification when a new token is first seen."""
        lines = [
            "<b>🚨 NEW TOKEN DETECTED 🚨</b>",
            "",
            f"Symbol: {token_symbol}",
            f'Token: <a href="https://solscan.io/token/{token_address}">{_short(token_address)}</a>',
        ]
        if liquidity is not None:
            lines.append(f"Liquidity: {liquidity:.2f} SOL")
        if verified is not None:
            lines.append(f"Social verification: {'✅' if verified else '❌'}")
        return await self._send("\n".join(lines))

    async def on_error(self, error: str) -> bool:
        """Send notification on error."""
        text = (
            f"<b>⚠️ ERROR</b>\n\n"
            f"<pre>{error[:1000]}</pre>\n"
            f"Instance: {self.instance_id}"
        )
        sent = await self._send(text)
        logger.error(f"📣 Error notification: {error[:100]}")
        return sent
