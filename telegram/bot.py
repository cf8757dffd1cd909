"""
AI Stocks Bot — Async Telegram Client
Long-polls getUpdates and sends/edits messages over the Bot API.

The client does not handle commands itself: every inbound message is turned
into a ChatUpdate and handed to a sink (the dispatcher's inbox).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from config.settings import get_settings
from core.errors import ConfigurationError
from core.models import ChatId, ChatUpdate

logger = logging.getLogger(__name__)

UpdateSink = Callable[[ChatUpdate], Awaitable[None]]


class AnalyticsBot:
    """Async Telegram bot client."""

    BASE_URL = "https://api.telegram.org/bot{token}"
    POLL_TIMEOUT = 10        # server-side long-poll seconds
    ERROR_BACKOFF = 5

    def __init__(self, token: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        if token is None:
            token = get_settings().telegram_bot_token
        self.token = token
        self.base_url = self.BASE_URL.format(token=self.token)
        self.username = ""
        self._offset: int = 0
        self._running = False
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.token)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Identity ──────────────────────────────────────────

    async def get_me(self) -> dict:
        """Verify the token. Raises ConfigurationError if Telegram rejects it."""
        if not self.configured:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is not set")

        client = await self._get_client()
        try:
            resp = await client.get(f"{self.base_url}/getMe")
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ConfigurationError(f"Telegram getMe failed: {e}") from e

        if not data.get("ok"):
            raise ConfigurationError(f"Telegram rejected the bot token: {data.get('description')}")

        me = data.get("result", {})
        self.username = me.get("username", "")
        logger.info(f"Bot authorized as @{self.username}")
        return me

    # ── Message Sending ───────────────────────────────────

    async def send_message(
        self, chat_id: ChatId, text: str, parse_mode: Optional[str] = None,
    ) -> Optional[dict]:
        """Send a message. Returns the sent message dict, or None on failure."""
        payload = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._post_text("sendMessage", payload)

    async def edit_message_text(
        self, chat_id: ChatId, message_id: int, text: str, parse_mode: Optional[str] = None,
    ) -> Optional[dict]:
        """Replace the text of a previously sent message. None on failure."""
        payload = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._post_text("editMessageText", payload)

    async def _post_text(self, method: str, payload: dict) -> Optional[dict]:
        client = await self._get_client()
        chat_id = payload.get("chat_id")

        try:
            resp = await client.post(f"{self.base_url}/{method}", json=payload)
            data = resp.json()
            if not data.get("ok") and "parse_mode" in payload:
                # Fallback to plain text if Markdown parsing fails
                if "can't parse" in str(data.get("description", "")):
                    payload.pop("parse_mode", None)
                    resp = await client.post(f"{self.base_url}/{method}", json=payload)
                    data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Telegram {method} error for chat {chat_id}: {e}")
            return None

        if not data.get("ok"):
            logger.error(f"Telegram {method} failed for chat {chat_id}: {data.get('description')}")
            return None

        result = data.get("result")
        return result if isinstance(result, dict) else {}

    # ── Polling ───────────────────────────────────────────

    async def start_polling(self, sink: UpdateSink):
        """Poll for updates forever, handing each message to `sink`."""
        if not self.configured:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is not set")

        self._running = True
        logger.info("Telegram bot started polling")

        while self._running:
            try:
                await self._poll_updates(sink)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Polling error: {e}")
                await asyncio.sleep(self.ERROR_BACKOFF)
            except Exception as e:
                logger.exception(f"Unexpected polling error: {e}")
                await asyncio.sleep(self.ERROR_BACKOFF)

    async def stop_polling(self):
        """Stop the polling loop."""
        self._running = False
        await self.close()

    async def _poll_updates(self, sink: UpdateSink):
        """Fetch new updates and forward the messages among them."""
        client = await self._get_client()
        try:
            resp = await client.get(
                f"{self.base_url}/getUpdates",
                params={"offset": self._offset, "timeout": self.POLL_TIMEOUT},
                timeout=self.POLL_TIMEOUT + 5,
            )
        except httpx.ReadTimeout:
            return  # Normal for long polling

        data = resp.json()
        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else data
            logger.warning(f"getUpdates failed: {description}")
            await asyncio.sleep(self.ERROR_BACKOFF)
            return

        for raw in data.get("result") or []:
            update_id = raw.get("update_id") if isinstance(raw, dict) else None
            if not isinstance(update_id, int):
                logger.warning(f"Skipping update without update_id: {raw!r}")
                continue
            self._offset = update_id + 1
            update = parse_update(raw)
            if update is not None:
                await sink(update)


def parse_update(raw: dict) -> Optional[ChatUpdate]:
    """Convert a Bot API update into a ChatUpdate; None if it carries no message."""
    message = raw.get("message")
    if not isinstance(message, dict):
        return None

    chat = message.get("chat")
    if not isinstance(chat, dict) or "id" not in chat:
        return None
    sender = message.get("from")
    if not isinstance(sender, dict):
        sender = {}

    return ChatUpdate(
        update_id=raw.get("update_id", 0),
        chat_id=int(chat["id"]),
        user_id=int(sender.get("id", 0)),
        text=message.get("text") or "",
        username=sender.get("username") or "",
    )


# Global bot instance
_bot: Optional[AnalyticsBot] = None


def get_bot() -> AnalyticsBot:
    global _bot
    if _bot is None:
        _bot = AnalyticsBot()
    return _bot
