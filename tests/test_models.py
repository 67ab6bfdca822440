"""Tests for the Pydantic Bot API models."""

import json
import sys
import os
import pytest

# Ensure the project root is importable.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from botapi.models import (
    Chat,
    ChatType,
    Error,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
    ReplyKeyboardRemove,
    Update,
    User,
    UserProfilePhotos,
    chat_id_for,
)
from botapi.params import HttpParameter
from pydantic import ValidationError


def _message(**overrides) -> dict:
    data = {
        "message_id": 100,
        "date": 1609459200,
        "chat": {"id": -1001234, "type": "supergroup", "title": "Team"},
        "from": {"id": 42, "is_bot": False, "first_name": "Ada"},
        "text": "hello",
    }
    data.update(overrides)
    return data


# ── Error ────────────────────────────────────────────────────────────────────


class TestErrorModel:
    """Validate the Error envelope."""

    def test_full(self) -> None:
        err = Error.model_validate({"ok": False, "error_code": 429, "description": "Too Many Requests",
                                    "parameters": {"retry_after": 5}})
        assert err.error_code == 429
        assert err.parameters.retry_after == 5

    def test_defaults(self) -> None:
        err = Error()
        assert err.ok is False
        assert err.error_code is None
        assert err.description == "Unknown error"
        assert err.parameters is None


# ── User / Chat ──────────────────────────────────────────────────────────────


class TestUserModel:
    """Validate the User schema."""

    def test_minimal_user(self) -> None:
        u = User(id=42, first_name="Ada")
        assert u.is_bot is False
        assert u.last_name is None
        assert u.username is None

    def test_64_bit_id(self) -> None:
        """Telegram IDs can be 64-bit integers."""
        big_id = 5_000_000_000
        assert User(id=big_id, first_name="Big").id == big_id

    def test_missing_first_name_raises(self) -> None:
        with pytest.raises(ValidationError):
            User.model_validate({"id": 1})


class TestChatModel:
    """Validate the Chat schema."""

    def test_type_enum(self) -> None:
        chat = Chat.model_validate({"id": -100, "type": "channel", "title": "News"})
        assert chat.type is ChatType.CHANNEL
        assert chat.title == "News"


# ── Message / Update ─────────────────────────────────────────────────────────


class TestMessageModel:
    """Validate the Message schema and its ``from`` alias."""

    def test_from_alias(self) -> None:
        msg = Message.model_validate(_message())
        assert msg.from_field is not None
        assert msg.from_field.first_name == "Ada"

    def test_populate_by_name(self) -> None:
        msg = Message(message_id=1, date=0, chat=Chat(id=1, type="private"), from_field=User(id=2, first_name="B"))
        assert msg.from_field.id == 2

    def test_dump_uses_alias(self) -> None:
        msg = Message.model_validate(_message())
        dumped = msg.model_dump(by_alias=True, exclude_none=True)
        assert "from" in dumped
        assert "from_field" not in dumped

    def test_nested_reply(self) -> None:
        msg = Message.model_validate(_message(reply_to_message=_message(message_id=99, text="first")))
        assert msg.reply_to_message.message_id == 99
        assert msg.reply_to_message.text == "first"

    def test_unknown_fields_ignored(self) -> None:
        msg = Message.model_validate(_message(has_protected_content=True))
        assert msg.text == "hello"


class TestUpdateModel:
    """Validate the Update schema."""

    def test_minimal_update(self) -> None:
        up = Update(update_id=1)
        assert up.message is None
        assert up.inbound_message is None

    def test_inbound_message(self) -> None:
        up = Update.model_validate({"update_id": 10, "message": _message()})
        assert up.inbound_message is up.message

    def test_inbound_channel_post(self) -> None:
        up = Update.model_validate({"update_id": 11, "channel_post": _message(text="news")})
        assert up.inbound_message.text == "news"

    def test_edited_message_is_not_inbound(self) -> None:
        up = Update.model_validate({"update_id": 12, "edited_message": _message()})
        assert up.edited_message is not None
        assert up.inbound_message is None


class TestChatIdFor:
    """Replies go to the chat the message was posted in."""

    def test_group_message_goes_to_group(self) -> None:
        assert chat_id_for(Message.model_validate(_message())) == -1001234

    def test_private_chat(self) -> None:
        data = _message(chat={"id": 42, "type": "private", "first_name": "Ada"})
        assert chat_id_for(Message.model_validate(data)) == 42

    def test_channel_post_without_sender(self) -> None:
        data = _message(chat={"id": -100555, "type": "channel", "title": "News"})
        del data["from"]
        assert chat_id_for(Message.model_validate(data)) == -100555


# ── Misc ─────────────────────────────────────────────────────────────────────


class TestUserProfilePhotos:
    def test_nested_sizes(self) -> None:
        photos = UserProfilePhotos.model_validate({
            "total_count": 1,
            "photos": [[{"file_id": "a", "width": 160, "height": 160}, {"file_id": "b", "width": 640, "height": 640}]],
        })
        assert photos.photos[0][1].width == 640


class TestReplyMarkupSerialization:
    """Keyboards are sent as compact JSON parameters."""

    def test_inline_keyboard(self) -> None:
        markup = InlineKeyboardMarkup(inline_keyboard=[[InlineKeyboardButton(text="Go", callback_data="go")]])
        assert json.loads(HttpParameter.of(markup).text) == {
            "inline_keyboard": [[{"text": "Go", "callback_data": "go"}]]
        }

    def test_remove_keyboard(self) -> None:
        assert HttpParameter.of(ReplyKeyboardRemove()).text == '{"remove_keyboard":true}'
