"""
Tests for the Telegram client: update parsing, command extraction,
polling offsets and message sending.
"""

import asyncio
import json
import logging

import httpx
import pytest

from core.errors import ConfigurationError
from core.models import ChatUpdate
from telegram.bot import AnalyticsBot, parse_update


def make_bot(handler, token="123:abc") -> AnalyticsBot:
    return AnalyticsBot(token=token, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def method_of(request: httpx.Request) -> str:
    return request.url.path.rsplit("/", 1)[-1]


class TestParseUpdate:

    def test_message_update(self):
        update = parse_update({
            "update_id": 7,
            "message": {
                "message_id": 1,
                "from": {"id": 55, "username": "anna"},
                "chat": {"id": -100500, "type": "group"},
                "text": "/start",
            },
        })

        assert update == ChatUpdate(update_id=7, chat_id=-100500, user_id=55, text="/start", username="anna")

    def test_non_message_update_is_ignored(self):
        assert parse_update({"update_id": 8, "edited_message": {"chat": {"id": 1}}}) is None
        assert parse_update({"update_id": 9, "callback_query": {}}) is None

    def test_message_without_chat_is_ignored(self):
        assert parse_update({"update_id": 10, "message": {"text": "/start"}}) is None

    def test_message_without_text_or_sender(self):
        update = parse_update({"update_id": 11, "message": {"chat": {"id": 5}, "sticker": {}}})
        assert update.text == ""
        assert update.user_id == 0
        assert update.command is None


class TestCommand:

    @pytest.mark.parametrize("text,command", [
        ("/start", "start"),
        ("/Subscribe", "subscribe"),
        ("  /analytics  ", "analytics"),
        ("/analytics@MyStocksBot", "analytics"),
        ("/unsubscribe now please", "unsubscribe"),
        ("hello", None),
        ("", None),
        ("/", None),
        ("start /start", None),
    ])
    def test_command_extraction(self, text, command):
        update = ChatUpdate(update_id=1, chat_id=1, user_id=1, text=text)
        assert update.command == command


class TestSending:

    async def test_send_message_returns_result(self):
        captured = {}

        def handler(request):
            captured["method"] = method_of(request)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 42}})

        bot = make_bot(handler)
        result = await bot.send_message(1, "hi", parse_mode="Markdown")

        assert result == {"message_id": 42}
        assert captured["method"] == "sendMessage"
        assert captured["body"]["chat_id"] == 1
        assert captured["body"]["parse_mode"] == "Markdown"

    async def test_plain_send_has_no_parse_mode(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

        await make_bot(handler).send_message(1, "plain")

        assert "parse_mode" not in bodies[0]

    async def test_markdown_failure_retries_as_plain_text(self):
        bodies = []

        def handler(request):
            body = json.loads(request.content)
            bodies.append(body)
            if "parse_mode" in body:
                return httpx.Response(400, json={
                    "ok": False,
                    "description": "Bad Request: can't parse entities: Can't find end of the entity",
                })
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 9}})

        result = await make_bot(handler).send_message(1, "*broken", parse_mode="Markdown")

        assert result == {"message_id": 9}
        assert len(bodies) == 2
        assert "parse_mode" not in bodies[1]

    async def test_rejected_send_returns_none(self):
        def handler(request):
            return httpx.Response(403, json={"ok": False, "description": "Forbidden: bot was blocked by the user"})

        assert await make_bot(handler).send_message(1, "hi") is None

    async def test_transport_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        assert await make_bot(handler).send_message(1, "hi") is None

    async def test_edit_message_text(self):
        captured = {}

        def handler(request):
            captured["method"] = method_of(request)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 3}})

        result = await make_bot(handler).edit_message_text(1, 3, "done", parse_mode="Markdown")

        assert result == {"message_id": 3}
        assert captured["method"] == "editMessageText"
        assert captured["body"]["message_id"] == 3
        assert captured["body"]["text"] == "done"

    async def test_non_dict_result_is_empty_dict(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True, "result": True})

        assert await make_bot(handler).edit_message_text(1, 3, "same") == {}


class TestIdentity:

    async def test_get_me_sets_username(self):
        def handler(request):
            assert method_of(request) == "getMe"
            return httpx.Response(200, json={"ok": True, "result": {"id": 1, "username": "StocksBot"}})

        bot = make_bot(handler)
        await bot.get_me()

        assert bot.username == "StocksBot"

    async def test_get_me_rejected_token(self):
        def handler(request):
            return httpx.Response(401, json={"ok": False, "description": "Unauthorized"})

        with pytest.raises(ConfigurationError, match="Unauthorized"):
            await make_bot(handler).get_me()

    async def test_missing_token(self):
        bot = AnalyticsBot(token="")

        assert not bot.configured
        with pytest.raises(ConfigurationError):
            await bot.get_me()
        with pytest.raises(ConfigurationError):
            await bot.start_polling(lambda update: None)


class TestPolling:

    async def test_forwards_messages_and_advances_offset(self):
        offsets = []

        def handler(request):
            offsets.append(int(request.url.params["offset"]))
            return httpx.Response(200, json={"ok": True, "result": [
                {"update_id": 500, "message": {"chat": {"id": 1}, "from": {"id": 1}, "text": "/start"}},
                {"update_id": 501, "my_chat_member": {}},
                {"update_id": 502, "message": {"chat": {"id": 2}, "from": {"id": 2}, "text": "hi"}},
            ]})

        received = []

        async def sink(update):
            received.append(update)

        bot = make_bot(handler)
        await bot._poll_updates(sink)

        assert [u.update_id for u in received] == [500, 502]
        assert offsets == [0]
        assert bot._offset == 503

    async def test_offset_is_sent_on_next_poll(self):
        offsets = []

        def handler(request):
            offsets.append(int(request.url.params["offset"]))
            return httpx.Response(200, json={"ok": True, "result": [
                {"update_id": 10, "message": {"chat": {"id": 1}, "text": "x"}},
            ]})

        async def sink(update):
            pass

        bot = make_bot(handler)
        await bot._poll_updates(sink)
        await bot._poll_updates(sink)

        assert offsets == [0, 11]

    async def test_updates_without_id_are_skipped(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True, "result": [
                {"message": {"chat": {"id": 1}, "text": "/start"}},
                "garbage",
                {"update_id": 20, "message": {"chat": "not-a-dict", "text": "/start"}},
                {"update_id": 21, "message": {"chat": {"id": 3}, "text": None}},
            ]})

        received = []

        async def sink(update):
            received.append(update)

        bot = make_bot(handler)
        await bot._poll_updates(sink)

        assert [(u.update_id, u.text) for u in received] == [(21, "")]
        assert bot._offset == 22

    async def test_non_dict_body_backs_off(self, caplog):
        def handler(request):
            return httpx.Response(200, json=["unexpected"])

        async def sink(update):
            raise AssertionError("no updates expected")

        bot = make_bot(handler)
        bot.ERROR_BACKOFF = 0
        with caplog.at_level(logging.WARNING):
            await bot._poll_updates(sink)

        assert "getUpdates failed" in caplog.text

    async def test_polling_survives_unexpected_errors(self, caplog):
        def handler(request):
            offset = int(request.url.params["offset"])
            update_id = max(offset, 1)
            return httpx.Response(200, json={"ok": True, "result": [
                {"update_id": update_id, "message": {"chat": {"id": 1}, "text": "/start"}},
            ]})

        bot = make_bot(handler)
        bot.ERROR_BACKOFF = 0
        received = []

        async def sink(update):
            received.append(update.update_id)
            if len(received) == 1:
                raise RuntimeError("sink exploded")
            bot._running = False

        with caplog.at_level(logging.ERROR):
            await asyncio.wait_for(bot.start_polling(sink), timeout=1)

        assert received == [1, 2]
        assert "Unexpected polling error" in caplog.text

    async def test_read_timeout_is_quiet(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async def sink(update):
            raise AssertionError("no updates expected")

        await make_bot(handler)._poll_updates(sink)
