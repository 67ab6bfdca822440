"""Request parameters and transfer modes.

An :class:`HttpParameter` is one named value of a Bot API call.  It is
either plain text (numbers, booleans and JSON-able structures are
serialized to text on construction) or a file payload carrying raw bytes,
a MIME type and a filename.  Parameters are collected in a
:class:`ParameterList`, which keeps keys unique and always iterates in
sorted key order.
"""

from __future__ import annotations

import enum
import json
import mimetypes
from collections.abc import MutableMapping
from typing import Any, Dict, Iterator

from pydantic import BaseModel


class Method(enum.Enum):
    """How a call's parameters travel to the server."""

    GET = 1
    POST = 2
    UPLOAD = 3


_DEFAULT_MIME_TYPE = "application/octet-stream"


def _to_text(value: Any) -> str:
    """Serialize a plain value the way the Bot API expects it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return _to_text(value.value)
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True, exclude_none=True)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


class HttpParameter(BaseModel):
    """A single named request value.

    Use :meth:`of` for plain values and :meth:`file` for uploads.
    """

    value: bytes
    is_file: bool = False
    mime_type: str = "text/plain"
    filename: str = ""

    model_config = {"frozen": True}

    @classmethod
    def of(cls, value: Any) -> "HttpParameter":
        """Wrap a text, numeric, boolean or JSON-able value."""
        if isinstance(value, HttpParameter):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(value=bytes(value))
        return cls(value=_to_text(value).encode("utf-8"))

    @classmethod
    def file(cls, data: bytes, filename: str, mime_type: str | None = None) -> "HttpParameter":
        """Wrap a file payload; the MIME type is guessed from *filename* when omitted."""
        if mime_type is None:
            mime_type = mimetypes.guess_type(filename)[0] or _DEFAULT_MIME_TYPE
        return cls(value=bytes(data), is_file=True, mime_type=mime_type, filename=filename)

    @property
    def text(self) -> str:
        """The value decoded as UTF-8 (lossy for binary payloads)."""
        return self.value.decode("utf-8", errors="replace")


class ParameterList(MutableMapping):
    """Mapping of parameter name to :class:`HttpParameter`, ordered by key.

    Assigning a plain value wraps it with :meth:`HttpParameter.of`::

        params = ParameterList(chat_id=42, text="hello")
        params["photo"] = HttpParameter.file(data, "cat.jpg")
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._items: Dict[str, HttpParameter] = {}
        self.update(*args, **kwargs)

    def __setitem__(self, key: str, value: Any) -> None:
        if not key:
            raise KeyError("parameter name must not be empty")
        self._items[key] = HttpParameter.of(value)

    def __getitem__(self, key: str) -> HttpParameter:
        return self._items[key]

    def __delitem__(self, key: str) -> None:
        del self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ParameterList({', '.join(self)})"

    def set_if(self, key: str, value: Any) -> None:
        """Set *key* only when *value* is not ``None``."""
        if value is not None:
            self[key] = value

    def files(self) -> list[HttpParameter]:
        """Return the file-valued parameters."""
        return [param for param in self.values() if param.is_file]
