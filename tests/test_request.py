"""Tests for request parameters and the RequestBuilder."""

import json
import sys
import os
from urllib.parse import parse_qsl, urlsplit

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from botapi.exceptions import BuildError
from botapi.models import InlineKeyboardButton, InlineKeyboardMarkup
from botapi.params import HttpParameter, Method, ParameterList
from botapi.request import RequestBuilder, encode_parameters

TOKEN = "123:abc"


# ── HttpParameter ────────────────────────────────────────────────────────────


class TestHttpParameter:
    """Validate serialization of plain values."""

    def test_text(self) -> None:
        param = HttpParameter.of("hello")
        assert param.value == b"hello"
        assert param.is_file is False

    def test_numbers(self) -> None:
        assert HttpParameter.of(42).value == b"42"
        assert HttpParameter.of(-100123).value == b"-100123"
        assert HttpParameter.of(1.5).value == b"1.5"

    def test_booleans(self) -> None:
        assert HttpParameter.of(True).value == b"true"
        assert HttpParameter.of(False).value == b"false"

    def test_dict_serialized_as_json(self) -> None:
        param = HttpParameter.of({"inline_keyboard": []})
        assert json.loads(param.value) == {"inline_keyboard": []}

    def test_model_serialized_without_nones(self) -> None:
        markup = InlineKeyboardMarkup(inline_keyboard=[[InlineKeyboardButton(text="Go", callback_data="go")]])
        data = json.loads(HttpParameter.of(markup).value)
        assert data == {"inline_keyboard": [[{"text": "Go", "callback_data": "go"}]]}

    def test_file_guesses_mime_type(self) -> None:
        param = HttpParameter.file(b"\x89PNG", "cat.png")
        assert param.is_file is True
        assert param.mime_type == "image/png"
        assert param.filename == "cat.png"

    def test_file_unknown_mime_type(self) -> None:
        assert HttpParameter.file(b"x", "blob").mime_type == "application/octet-stream"


# ── ParameterList ────────────────────────────────────────────────────────────


class TestParameterList:
    """Validate key uniqueness and ordering."""

    def test_iterates_sorted_by_key(self) -> None:
        params = ParameterList(timeout=0, offset=3, limit=50)
        assert list(params) == ["limit", "offset", "timeout"]

    def test_keys_are_unique(self) -> None:
        params = ParameterList(text="a")
        params["text"] = "b"
        assert len(params) == 1
        assert params["text"].text == "b"

    def test_set_if_skips_none(self) -> None:
        params = ParameterList()
        params.set_if("reply_to_message_id", None)
        params.set_if("duration", 0)
        assert list(params) == ["duration"]

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(KeyError):
            ParameterList()[""] = "x"

    def test_files(self) -> None:
        params = ParameterList(chat_id=1, photo=HttpParameter.file(b"img", "a.jpg"))
        assert [p.filename for p in params.files()] == ["a.jpg"]


# ── encode_parameters ────────────────────────────────────────────────────────


class TestEncodeParameters:
    """Validate query-string encoding."""

    def test_round_trip(self) -> None:
        params = ParameterList(chat_id=-100, text="hi there & welcome=yes", caption="ünïcødé")
        pairs = parse_qsl(encode_parameters(params))
        assert dict(pairs) == {"chat_id": "-100", "text": "hi there & welcome=yes", "caption": "ünïcødé"}

    def test_empty(self) -> None:
        assert encode_parameters(ParameterList()) == ""

    def test_no_trailing_ampersand(self) -> None:
        assert not encode_parameters(ParameterList(a=1, b=2)).endswith("&")

    def test_strict_percent_encoding(self) -> None:
        encoded = encode_parameters(ParameterList(text="a b+c/d"))
        assert encoded == "text=a%20b%2Bc%2Fd"


# ── RequestBuilder ───────────────────────────────────────────────────────────


class TestRequestBuilder:
    """Validate the three transfer modes and the build errors."""

    def test_url(self) -> None:
        builder = RequestBuilder(TOKEN)
        assert builder.build_url("/getMe") == "https://api.telegram.org/bot123:abc/getMe"
        assert builder.build_url("getMe") == "https://api.telegram.org/bot123:abc/getMe"

    def test_custom_host(self) -> None:
        builder = RequestBuilder(TOKEN, host="localhost:8081", scheme="http")
        assert builder.build_url("/getMe") == "http://localhost:8081/bot123:abc/getMe"

    def test_get_query_string(self) -> None:
        params = ParameterList(offset=7, limit=50, timeout=30)
        prepared = RequestBuilder(TOKEN).build("/getUpdates", params, Method.GET)
        parts = urlsplit(prepared.url)
        assert prepared.method == "GET"
        assert parts.path == "/bot123:abc/getUpdates"
        assert dict(parse_qsl(parts.query)) == {"offset": "7", "limit": "50", "timeout": "30"}
        assert not prepared.body

    def test_get_without_parameters(self) -> None:
        prepared = RequestBuilder(TOKEN).build("/getMe", ParameterList(), Method.GET)
        assert prepared.url == "https://api.telegram.org/bot123:abc/getMe"
        assert "?" not in prepared.url

    def test_post_form_body(self) -> None:
        params = ParameterList(chat_id=42, text="hello world")
        prepared = RequestBuilder(TOKEN).build("/sendMessage", params, Method.POST)
        assert prepared.method == "POST"
        assert prepared.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert dict(parse_qsl(prepared.body)) == {"chat_id": "42", "text": "hello world"}
        assert "?" not in prepared.url

    def test_post_without_parameters(self) -> None:
        prepared = RequestBuilder(TOKEN).build("/getMe", ParameterList(), Method.POST)
        assert not prepared.body
        assert prepared.headers["Content-Type"] == "application/x-www-form-urlencoded"

    def test_upload_multipart(self) -> None:
        params = ParameterList(chat_id=42, photo=HttpParameter.file(b"\x00\x01binary", "cat.jpg"))
        prepared = RequestBuilder(TOKEN).build("/sendPhoto", params, Method.UPLOAD)
        content_type = prepared.headers["Content-Type"]
        assert content_type.startswith("multipart/form-data; boundary=")
        boundary = content_type.split("boundary=", 1)[1]
        assert prepared.body.endswith(f"--{boundary}--".encode())
        assert prepared.headers["Content-Length"] == str(len(prepared.body))
        assert b'filename="cat.jpg"' in prepared.body

    def test_empty_endpoint_raises(self) -> None:
        with pytest.raises(BuildError):
            RequestBuilder(TOKEN).build("", ParameterList(), Method.GET)

    def test_missing_token_raises(self) -> None:
        builder = RequestBuilder("")
        assert builder.has_token is False
        with pytest.raises(BuildError):
            builder.build("/getMe", ParameterList(), Method.GET)
