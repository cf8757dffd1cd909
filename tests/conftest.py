"""
Shared fixtures and fakes for the bot tests.
"""

import itertools

import pytest

from config.settings import PlatformSettings
from core.dispatcher import Dispatcher
from core.models import ChatUpdate

ADMIN_ID = 449066543
ADMIN_CHAT = 449066543
STRANGER_ID = 1001


class FakeBot:
    """Records sends and edits instead of calling Telegram."""

    def __init__(self, fail_for=()):
        self.sent: list[tuple] = []
        self.edits: list[tuple] = []
        self.failed: list[int] = []
        self.fail_for = set(fail_for)
        self._ids = itertools.count(100)

    async def send_message(self, chat_id, text, parse_mode=None):
        if chat_id in self.fail_for:
            self.failed.append(chat_id)
            return None
        message_id = next(self._ids)
        self.sent.append((chat_id, text, parse_mode))
        return {"message_id": message_id, "chat": {"id": chat_id}, "text": text}

    async def edit_message_text(self, chat_id, message_id, text, parse_mode=None):
        self.edits.append((chat_id, message_id, text, parse_mode))
        return {"message_id": message_id, "chat": {"id": chat_id}, "text": text}

    def texts_to(self, chat_id):
        return [text for cid, text, _ in self.sent if cid == chat_id]


class FakeAnalytics:
    """Completion collaborator returning fixed text or raising."""

    def __init__(self, text="TEXT", error=None, on_call=None):
        self.text = text
        self.error = error
        self.on_call = on_call
        self.calls = 0

    async def generate_analytics(self):
        self.calls += 1
        if self.on_call:
            self.on_call()
        if self.error:
            raise self.error
        return self.text


def make_update(text, user_id=ADMIN_ID, chat_id=None, update_id=1, username="tester"):
    return ChatUpdate(
        update_id=update_id,
        chat_id=chat_id if chat_id is not None else user_id,
        user_id=user_id,
        text=text,
        username=username,
    )


@pytest.fixture
def bot():
    return FakeBot()


@pytest.fixture
def analytics():
    return FakeAnalytics()


@pytest.fixture
def dispatcher(bot, analytics):
    return Dispatcher(bot, analytics, admin_user_id=ADMIN_ID, schedule_label="10:00 по Москве")


@pytest.fixture
def settings(tmp_path):
    return PlatformSettings(
        _env_file=None,
        telegram_bot_token="test-token",
        admin_user_id=ADMIN_ID,
        ai_api_key="",
        news_api_key="",
        log_file=str(tmp_path / "bot.log"),
    )
