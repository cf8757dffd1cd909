"""
AI Stocks Bot — Event Dispatcher
Single consumer of every event the bot reacts to.

The Telegram poller and the daily scheduler only put events into `inbox`;
this loop takes them out one at a time. Command handling, broadcasts and
status queries therefore never overlap, and the subscriber registry has
exactly one owner.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from adapters.ai_service import AIService
from config.constants import (
    ADMIN_COMMANDS, ADMIN_ONLY_TEXT, ANALYTICS_ERROR_TEXT, GENERATING_TEXT, UNSUBSCRIBED_TEXT,
)
from core.models import ChatId, ChatUpdate, StatusQuery, WakeSignal
from core.registry import SubscriberRegistry
from telegram.bot import AnalyticsBot
from telegram.formatters import format_subscribed, format_user, format_welcome

logger = logging.getLogger(__name__)

Event = Union[ChatUpdate, WakeSignal, StatusQuery]

ANALYTICS_PARSE_MODE = "Markdown"


class Dispatcher:
    """Routes chat commands and scheduled broadcasts, one event at a time."""

    def __init__(
        self,
        bot: AnalyticsBot,
        analytics: AIService,
        admin_user_id: int,
        schedule_label: str = "",
        registry: Optional[SubscriberRegistry] = None,
    ):
        self.bot = bot
        self.analytics = analytics
        self.admin_user_id = admin_user_id
        self.schedule_label = schedule_label
        self.registry = registry if registry is not None else SubscriberRegistry()
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.last_broadcast: Optional[dict] = None
        self._commands: dict[str, Callable[[ChatUpdate], Awaitable[None]]] = {
            "start": self._cmd_start,
            "subscribe": self._cmd_subscribe,
            "unsubscribe": self._cmd_unsubscribe,
            "analytics": self._cmd_analytics,
        }

    def is_admin(self, user_id: int) -> bool:
        return bool(self.admin_user_id) and user_id == self.admin_user_id

    # ── Loop ──────────────────────────────────────────────

    async def submit(self, event: Event):
        """Queue an event for the loop. Safe to call from any task."""
        await self.inbox.put(event)

    async def run(self):
        """Handle queued events forever; returns only by cancellation."""
        logger.info("Dispatcher started")
        while True:
            event = await self.inbox.get()
            try:
                await self.handle(event)
            except Exception as e:
                logger.exception(f"Error handling {type(event).__name__}: {e}")
            finally:
                self.inbox.task_done()

    async def handle(self, event: Event):
        if isinstance(event, ChatUpdate):
            await self.handle_update(event)
        elif isinstance(event, WakeSignal):
            await self.broadcast(event)
        elif isinstance(event, StatusQuery):
            self._answer_status(event)
        else:
            logger.warning(f"Ignoring unknown event: {event!r}")

    # ── Commands ──────────────────────────────────────────

    async def handle_update(self, update: ChatUpdate):
        """Run the matching command handler; anything else is ignored."""
        command = update.command
        handler = self._commands.get(command) if command else None
        if handler is None:
            return

        logger.info(f"[{format_user(update.username, update.user_id)}] {update.text}")

        if command in ADMIN_COMMANDS and not self.is_admin(update.user_id):
            await self.bot.send_message(update.chat_id, ADMIN_ONLY_TEXT)
            return

        await handler(update)

    async def _cmd_start(self, update: ChatUpdate):
        text = format_welcome(self.schedule_label, is_admin=self.is_admin(update.user_id))
        await self.bot.send_message(update.chat_id, text)

    async def _cmd_subscribe(self, update: ChatUpdate):
        self.registry.subscribe(update.chat_id)
        await self.bot.send_message(update.chat_id, format_subscribed(self.schedule_label))

    async def _cmd_unsubscribe(self, update: ChatUpdate):
        self.registry.unsubscribe(update.chat_id)
        await self.bot.send_message(update.chat_id, UNSUBSCRIBED_TEXT)

    async def _cmd_analytics(self, update: ChatUpdate):
        """Placeholder first, then swap in the generated text (or the error text)."""
        chat_id = update.chat_id
        placeholder = await self.bot.send_message(chat_id, GENERATING_TEXT)

        try:
            text = await self.analytics.generate_analytics()
            parse_mode = ANALYTICS_PARSE_MODE
        except Exception as e:
            logger.error(f"Analytics generation failed: {e}")
            text, parse_mode = ANALYTICS_ERROR_TEXT, None

        await self._replace(chat_id, placeholder, text, parse_mode)

    async def _replace(self, chat_id: ChatId, placeholder: Optional[dict], text: str,
                       parse_mode: Optional[str]):
        message_id = (placeholder or {}).get("message_id")
        if message_id is None:
            await self.bot.send_message(chat_id, text, parse_mode=parse_mode)
            return
        edited = await self.bot.edit_message_text(chat_id, message_id, text, parse_mode=parse_mode)
        if edited is None:
            logger.warning(f"Could not edit placeholder {message_id} in chat {chat_id}")

    # ── Broadcast ─────────────────────────────────────────

    async def broadcast(self, signal: Optional[WakeSignal] = None):
        """Generate analytics once and send it to every current subscriber."""
        recipients = self.registry.snapshot()
        logger.info(f"Sending daily analytics to {len(recipients)} subscribers")
        record = {
            "at": datetime.now(timezone.utc).isoformat(),
            "scheduled_for": signal.scheduled_for.isoformat() if signal and signal.scheduled_for else None,
            "recipients": len(recipients),
            "delivered": 0,
            "failed": 0,
            "error": None,
        }
        self.last_broadcast = record

        try:
            text = await self.analytics.generate_analytics()
        except Exception as e:
            logger.error(f"Daily analytics generation failed, broadcast skipped: {e}")
            record["error"] = str(e)
            return

        for chat_id in recipients:
            try:
                sent = await self.bot.send_message(chat_id, text, parse_mode=ANALYTICS_PARSE_MODE)
            except Exception as e:
                logger.error(f"Send error for chat {chat_id}: {e}")
                sent = None
            if sent is None:
                record["failed"] += 1
                logger.error(f"Failed to deliver analytics to chat {chat_id}")
            else:
                record["delivered"] += 1

        logger.info(
            f"Daily analytics delivered to {record['delivered']}/{len(recipients)} subscribers"
        )

    # ── Status ────────────────────────────────────────────

    def _answer_status(self, query: StatusQuery):
        if query.reply.done():
            return
        query.reply.set_result({
            "subscribers": len(self.registry),
            "last_broadcast": dict(self.last_broadcast) if self.last_broadcast else None,
        })
