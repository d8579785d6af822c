# telegram.py - Telegram transport for inbound signal messages (Native API).
"""
This is "The Ear" - it long-polls the Telegram Bot API and hands every
message from a configured chat to the orchestrator.

Uses native Telegram Bot API with aiohttp (no framework dependency).
The bot must be a member (or admin, for channels) of every signal chat.

Each message is dispatched as its own task, so a slow signal never holds
up polling. There is no cross-message ordering guarantee.
"""

import asyncio
import base64
from datetime import datetime, timezone
from typing import Awaitable, Callable

import aiohttp

from models import InboundMessage
from services import settings


MessageHandler = Callable[[InboundMessage], Awaitable[None]]


class TelegramListener:
    """
    Telegram Bot API long-polling listener.

    Handles:
    - "message" updates (groups, private chats)
    - "channel_post" updates (signal channels)
    """

    BASE_URL = "https://api.telegram.org/bot"
    FILE_URL = "https://api.telegram.org/file/bot"

    # Seconds to wait before polling again
    RETRY_DELAY = 5
    ERROR_DELAY = 1

    def __init__(self, allowed_chat_ids: frozenset[int], token: str | None = None, notifier=None):
        self.token = token if token is not None else settings.TELEGRAM_BOT_TOKEN
        if not self.token:
            raise ValueError("TELEGRAM_BOT_TOKEN not set in environment")
        if not allowed_chat_ids:
            raise ValueError("No chat IDs configured for any exchange account")

        self.allowed_chat_ids = allowed_chat_ids
        self.notifier = notifier
        self._session: aiohttp.ClientSession | None = None
        self._offset: int = 0
        self._running: bool = False
        self._handler: MessageHandler | None = None
        self._poll_task: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._outage_reported = False

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _api_call(self, method: str, data: dict | None = None) -> dict:
        """Make a Telegram Bot API call."""
        session = await self._get_session()
        url = f"{self.BASE_URL}{self.token}/{method}"

        async with session.post(url, json=data or {}) as response:
            result = await response.json()
            if not result.get("ok"):
                print(f"Telegram API error: {result}")
            return result

    async def get_updates(self, timeout: int = 30) -> list[dict]:
        """Get updates using long polling."""
        result = await self._api_call("getUpdates", {
            "offset": self._offset,
            "timeout": timeout,
            "allowed_updates": ["message", "channel_post"]
        })
        if not result.get("ok"):
            raise ConnectionError(f"getUpdates failed: {result.get('description', result)}")

        updates = result.get("result", [])
        if updates:
            self._offset = updates[-1]["update_id"] + 1

        return updates

    async def download_photo(self, photo_sizes: list[dict]) -> str | None:
        """Download the largest photo size and return it base64-encoded."""
        try:
            file_id = photo_sizes[-1]["file_id"]
            result = await self._api_call("getFile", {"file_id": file_id})
            file_path = result.get("result", {}).get("file_path")
            if not file_path:
                return None

            session = await self._get_session()
            async with session.get(f"{self.FILE_URL}{self.token}/{file_path}") as response:
                response.raise_for_status()
                data = await response.read()
            return base64.b64encode(data).decode("ascii")
        except Exception as e:
            print(f"Failed to download photo: {e}")
            return None

    async def to_inbound_message(self, update: dict) -> InboundMessage | None:
        """Convert an update into an InboundMessage, or None if it should be ignored."""
        message = update.get("message") or update.get("channel_post")
        if not message:
            return None

        chat_id = message.get("chat", {}).get("id")
        if chat_id not in self.allowed_chat_ids:
            return None

        text = message.get("text") or message.get("caption") or ""
        photo = await self.download_photo(message["photo"]) if message.get("photo") else None
        if not text and not photo:
            return None

        return InboundMessage(
            id=message["message_id"],
            chat_id=chat_id,
            date=datetime.fromtimestamp(message.get("date", 0), tz=timezone.utc),
            text=text,
            photo_base64=photo,
        )

    def _dispatch(self, message: InboundMessage) -> None:
        task = asyncio.create_task(self._handler(message))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _report_outage(self, error: Exception) -> None:
        """Notify the operator once per outage; a successful poll re-arms it."""
        if self._outage_reported or not self.notifier:
            return
        self._outage_reported = True
        await self.notifier.send_error_notification(f"Polling failed: {error}", "Telegram")

    async def _polling_loop(self) -> None:
        """Main polling loop to receive updates."""
        print("Telegram polling started...")

        while self._running:
            try:
                updates = await self.get_updates(timeout=30)
                self._outage_reported = False

                for update in updates:
                    try:
                        message = await self.to_inbound_message(update)
                        if message is None:
                            continue
                        print(f"\n💬 Received message from chat {message.chat_id}: {(message.text or '')[:100]}")
                        self._dispatch(message)
                    except Exception as e:
                        print(f"Error handling update: {e}")

            except asyncio.CancelledError:
                break
            except aiohttp.ClientError as e:
                print(f"Telegram connection error: {e}")
                await self._report_outage(e)
                await asyncio.sleep(self.RETRY_DELAY)
            except Exception as e:
                print(f"Polling error: {e}")
                await self._report_outage(e)
                await asyncio.sleep(self.ERROR_DELAY)

    async def start(self, handler: MessageHandler) -> None:
        """Start polling in the background; handler runs once per message."""
        self._handler = handler
        self._running = True
        self._poll_task = asyncio.create_task(self._polling_loop())

        chats = ", ".join(str(c) for c in sorted(self.allowed_chat_ids))
        print(f"Started listening for new messages in chats: {chats}")

    async def stop(self, drain_timeout: float = 30.0) -> None:
        """Stop accepting messages, let in-flight ones finish, close session."""
        self._running = False

        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        if self._in_flight:
            print(f"Waiting for {len(self._in_flight)} message(s) in flight...")
            await asyncio.wait(set(self._in_flight), timeout=drain_timeout)

        if self._session and not self._session.closed:
            await self._session.close()

        print("Disconnected from Telegram")
