# notifier.py - Operator notifications via Telegram Bot API.
"""
Sends HTML-formatted status messages to a single operator chat.

Notifications are best-effort: a missing token/chat or a failed request
is printed and never raised to the caller.
"""

import html

import aiohttp

from models import ExecutionResult
from services import settings
from services.time_utils import get_utc_timestamp


class NotificationService:
    """Telegram Bot API notification sink (native API with aiohttp)."""

    BASE_URL = "https://api.telegram.org/bot"

    def __init__(self, bot_token: str | None = None, chat_id: str | None = None):
        self.bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id if chat_id is not None else settings.TELEGRAM_BOT_CHAT_ID
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def send_log_message(self, message: str) -> None:
        if not self.bot_token or not self.chat_id:
            print("⚠️  Bot token or chat ID not configured, skipping notification")
            return

        try:
            session = await self._get_session()
            url = f"{self.BASE_URL}{self.bot_token}/sendMessage"
            payload = {"chat_id": self.chat_id, "text": message, "parse_mode": "HTML"}
            async with session.post(url, json=payload) as response:
                result = await response.json()
                if not result.get("ok"):
                    print(f"Telegram API error: {result}")
        except Exception as e:
            print(f"Failed to send notification: {e}")

    async def send_signal_result(self, result: ExecutionResult) -> None:
        signal = result.signal
        action = (signal.action or "").upper()
        raw = html.escape(result.raw_message[:100])

        message = "<b>🔔 Signal Processing Result</b>\n\n"
        message += f"📅 <b>Time:</b> {get_utc_timestamp()}\n"
        message += f"📱 <b>Source:</b> Chat {result.source_chat_id}\n"
        message += f"📊 <b>Signal:</b> {action} {html.escape(signal.symbol or '')}\n"
        message += f"💰 <b>Price:</b> {signal.price or 'N/A'}\n"
        message += f"🎯 <b>Confidence:</b> {signal.confidence * 100:.1f}%\n"
        message += f"📝 <b>Message:</b> {raw}...\n\n"

        if result.is_success:
            message += "✅ <b>Status:</b> Successfully executed\n"
        else:
            message += "❌ <b>Status:</b> Failed to execute\n"

        if result.details:
            message += f"📋 <b>Details:</b> {html.escape(result.details)}\n"

        await self.send_log_message(message)

    async def send_error_notification(self, error: str, context: str | None = None) -> None:
        message = "<b>🚨 Error Notification</b>\n\n"
        message += f"📅 <b>Time:</b> {get_utc_timestamp()}\n"
        if context:
            message += f"🔍 <b>Context:</b> {html.escape(context)}\n"
        message += f"❌ <b>Error:</b> {html.escape(error)}"

        await self.send_log_message(message)

    async def send_startup_notification(self) -> None:
        message = "<b>🚀 Signal Trader Started</b>\n\n"
        message += f"📅 <b>Time:</b> {get_utc_timestamp()}\n"
        message += "✅ <b>Status:</b> Ready to process signals"

        await self.send_log_message(message)

    async def send_shutdown_notification(self) -> None:
        message = "<b>🛑 Signal Trader Stopped</b>\n\n"
        message += f"📅 <b>Time:</b> {get_utc_timestamp()}\n"
        message += "⏹️ <b>Status:</b> Shutdown complete"

        await self.send_log_message(message)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
