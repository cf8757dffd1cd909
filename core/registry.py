"""
AI Stocks Bot — Subscriber Registry
In-memory set of chat IDs that receive the daily broadcast.

Single owner: only the dispatcher task touches an instance. Nothing is
persisted; the set starts empty on every process start.
"""

import logging
from typing import Iterator

from core.models import ChatId

logger = logging.getLogger(__name__)


class SubscriberRegistry:
    """Set of subscribed chat IDs."""

    def __init__(self):
        self._chats: set[ChatId] = set()

    def subscribe(self, chat_id: ChatId) -> bool:
        """Add a chat. Returns False if it was already subscribed."""
        if chat_id in self._chats:
            return False
        self._chats.add(chat_id)
        logger.info(f"Chat {chat_id} subscribed ({len(self._chats)} total)")
        return True

    def unsubscribe(self, chat_id: ChatId) -> bool:
        """Remove a chat. Returns False if it was not subscribed."""
        if chat_id not in self._chats:
            return False
        self._chats.discard(chat_id)
        logger.info(f"Chat {chat_id} unsubscribed ({len(self._chats)} total)")
        return True

    def snapshot(self) -> tuple[ChatId, ...]:
        """Point-in-time copy of the subscribers, safe to iterate while mutating."""
        return tuple(self._chats)

    def __contains__(self, chat_id: ChatId) -> bool:
        return chat_id in self._chats

    def __len__(self) -> int:
        return len(self._chats)

    def __iter__(self) -> Iterator[ChatId]:
        return iter(self.snapshot())
