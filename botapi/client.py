"""Bot: typed, asynchronous wrappers around the Bot API endpoints.

Every endpoint method builds a :class:`~botapi.params.ParameterList`,
dispatches it without blocking and returns ``True`` once the call is in
flight (``False`` if it could not be built, e.g. without a token).  The
decoded result is delivered later to the optional *callback*, on the
event loop: a typed model for object results, ``True``/``False`` for
plain acknowledgements, or ``None`` when the call failed.

Inbound messages from the long-poll loop are delivered to every handler
registered with :meth:`Bot.add_message_handler`::

    async with Bot(token, updates=True) as bot:

        @bot.add_message_handler
        def echo(update_id: int, message: Message) -> None:
            bot.send_message(chat_id_for(message), message.text or "")

        await asyncio.Event().wait()
"""

from __future__ import annotations

import enum
import logging
import os
from typing import IO, Any, Callable, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from botapi.decoder import decode_array, decode_error, decode_object, is_ok
from botapi.dispatcher import Dispatcher, Reply
from botapi.models import (
    Chat,
    ChatId,
    File,
    Message,
    ReplyMarkup,
    Update,
    User,
    UserProfilePhotos,
)
from botapi.params import HttpParameter, Method, ParameterList
from botapi.poller import ENDPOINT_GET_UPDATES, MessageHandler, UpdatePoller
from botapi.request import API_HOST

logger = logging.getLogger(__name__)

ENDPOINT_GET_ME = "/getMe"
ENDPOINT_GET_CHAT = "/getChat"
ENDPOINT_SEND_MESSAGE = "/sendMessage"
ENDPOINT_SET_CHAT_TITLE = "/setChatTitle"
ENDPOINT_FORWARD_MESSAGE = "/forwardMessage"
ENDPOINT_SEND_PHOTO = "/sendPhoto"
ENDPOINT_SEND_AUDIO = "/sendAudio"
ENDPOINT_SEND_DOCUMENT = "/sendDocument"
ENDPOINT_SEND_STICKER = "/sendSticker"
ENDPOINT_SEND_VIDEO = "/sendVideo"
ENDPOINT_SEND_VOICE = "/sendVoice"
ENDPOINT_SEND_LOCATION = "/sendLocation"
ENDPOINT_SEND_CHAT_ACTION = "/sendChatAction"
ENDPOINT_GET_USER_PROFILE_PHOTOS = "/getUserProfilePhotos"
ENDPOINT_SET_WEBHOOK = "/setWebhook"
ENDPOINT_GET_FILE = "/getFile"

M = TypeVar("M", bound=BaseModel)

Callback = Optional[Callable[[Any], Any]]

# A file to upload (bytes, a path or an open binary file) or the file_id
# of a file already stored on the server.
FilePayload = Union[str, bytes, os.PathLike, IO[bytes]]


class ChatAction(str, enum.Enum):
    TYPING = "typing"
    UPLOAD_PHOTO = "upload_photo"
    RECORD_VIDEO = "record_video"
    UPLOAD_VIDEO = "upload_video"
    RECORD_AUDIO = "record_audio"
    UPLOAD_AUDIO = "upload_audio"
    UPLOAD_DOCUMENT = "upload_document"
    FIND_LOCATION = "find_location"


def _file_parameter(payload: Union[bytes, os.PathLike, IO[bytes]], default_name: str) -> HttpParameter:
    """Read an upload payload into a file-valued parameter."""
    if isinstance(payload, (bytes, bytearray)):
        return HttpParameter.file(bytes(payload), default_name)
    if isinstance(payload, os.PathLike):
        path = os.fspath(payload)
        with open(path, "rb") as fh:
            data = fh.read()
        return HttpParameter.file(data, os.path.basename(path))
    data = payload.read()
    name = getattr(payload, "name", None)
    filename = os.path.basename(name) if isinstance(name, str) and name else default_name
    return HttpParameter.file(data, filename)


class Bot:
    """Client for one bot token.

    Args:
        token: Bot token from @BotFather.
        updates: Start the long-poll loop when entering the async context.
        update_interval: Seconds between two polls.
        polling_timeout: Seconds the server may hold a poll open.
        host: API host name.
        timeout: HTTP timeout for ordinary calls, in seconds.
    """

    def __init__(
        self,
        token: str,
        *,
        updates: bool = False,
        update_interval: float = 1.0,
        polling_timeout: int = 0,
        host: str = API_HOST,
        timeout: float = Dispatcher._DEFAULT_TIMEOUT,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self._dispatcher = dispatcher if dispatcher is not None else Dispatcher(token, host=host, timeout=timeout)
        self._updates = updates
        self._message_handlers: List[MessageHandler] = []
        self._poller = UpdatePoller(
            self._dispatcher,
            self._dispatch_message,
            interval=update_interval,
            polling_timeout=polling_timeout,
        )

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def poller(self) -> UpdatePoller:
        return self._poller

    # ------------------------------------------------------------------
    #  Lifecycle
    # ------------------------------------------------------------------

    def add_message_handler(self, handler: MessageHandler) -> MessageHandler:
        """Register ``handler(update_id, message)``; usable as a decorator."""
        self._message_handlers.append(handler)
        return handler

    def _dispatch_message(self, update_id: int, message: Message) -> None:
        for handler in list(self._message_handlers):
            try:
                handler(update_id, message)
            except Exception:
                logger.exception("Message handler raised", extra={"update_id": update_id})

    def start_polling(self) -> None:
        self._poller.start()

    def stop_polling(self) -> None:
        self._poller.stop()

    async def aclose(self, timeout: Optional[float] = None) -> None:
        """Stop polling and wait for (or, after *timeout*, abandon) in-flight calls."""
        self._poller.stop()
        await self._dispatcher.close(timeout)

    async def __aenter__(self) -> "Bot":
        if self._updates:
            self.start_polling()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    #  Internal helpers
    # ------------------------------------------------------------------

    def _call(self, endpoint: str, params: ParameterList, method: Method, on_reply: Callable[[Reply], Any]) -> bool:
        return self._dispatcher.dispatch(endpoint, params, method, on_reply) is not None

    @staticmethod
    def _notify(callback: Callback, endpoint: str, value: Any) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            logger.exception("Result callback raised", extra={"api_endpoint": endpoint})

    def _call_for_model(self, endpoint: str, params: ParameterList, method: Method, model: Type[M], callback: Callback) -> bool:
        """Dispatch a call whose ``result`` is an object of type *model*."""

        def on_reply(reply: Reply) -> None:
            if not reply.ok:
                self._notify(callback, endpoint, None)
                return
            result = decode_object(reply.content)
            if not result:
                self._log_failure(endpoint, reply.content)
                self._notify(callback, endpoint, None)
                return
            try:
                value = model.model_validate(result)
            except ValidationError as exc:
                logger.error("Got invalid object", extra={"api_endpoint": endpoint, "error": str(exc)})
                value = None
            self._notify(callback, endpoint, value)

        return self._call(endpoint, params, method, on_reply)

    def _call_for_ok(self, endpoint: str, params: ParameterList, method: Method, callback: Callback) -> bool:
        """Dispatch a call answered by a bare ``true``."""

        def on_reply(reply: Reply) -> None:
            success = reply.ok and is_ok(reply.content)
            if reply.ok and not success:
                self._log_failure(endpoint, reply.content)
            self._notify(callback, endpoint, success)

        return self._call(endpoint, params, method, on_reply)

    @staticmethod
    def _log_failure(endpoint: str, content: bytes) -> None:
        error = decode_error(content)
        if error is not None:
            logger.warning(
                "Call did not succeed",
                extra={"api_endpoint": endpoint, "error_code": error.error_code, "description": error.description},
            )

    def _send_payload(
        self,
        chat_id: ChatId,
        payload: FilePayload,
        params: ParameterList,
        reply_to_message_id: Optional[int],
        reply_markup: Optional[Union[ReplyMarkup, dict]],
        payload_field: str,
        endpoint: str,
        callback: Callback,
    ) -> bool:
        """Send a text/file-id payload by form POST, or a file by multipart upload."""
        params["chat_id"] = chat_id
        if isinstance(payload, str):
            params[payload_field] = payload
            method = Method.POST
        else:
            params[payload_field] = _file_parameter(payload, payload_field)
            method = Method.UPLOAD
        params.set_if("reply_to_message_id", reply_to_message_id)
        params.set_if("reply_markup", reply_markup)
        return self._call_for_model(endpoint, params, method, Message, callback)

    # ------------------------------------------------------------------
    #  Endpoints
    # ------------------------------------------------------------------

    def get_me(self, callback: Callback = None) -> bool:
        """Fetch the bot's own :class:`User`."""
        return self._call_for_model(ENDPOINT_GET_ME, ParameterList(), Method.GET, User, callback)

    def get_chat(self, chat_id: ChatId, callback: Callback = None) -> bool:
        """Fetch a :class:`Chat`."""
        return self._call_for_model(ENDPOINT_GET_CHAT, ParameterList(chat_id=chat_id), Method.GET, Chat, callback)

    def send_message(
        self,
        chat_id: ChatId,
        text: str,
        *,
        markdown: bool = False,
        disable_web_page_preview: bool = False,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        """Send a text message; *callback* receives the sent :class:`Message`."""
        params = ParameterList()
        if markdown:
            params["parse_mode"] = "Markdown"
        if disable_web_page_preview:
            params["disable_web_page_preview"] = True
        return self._send_payload(chat_id, text, params, reply_to_message_id, reply_markup, "text", ENDPOINT_SEND_MESSAGE, callback)

    def set_chat_title(self, chat_id: ChatId, title: str, callback: Callback = None) -> bool:
        params = ParameterList(chat_id=chat_id, title=title)
        return self._call_for_ok(ENDPOINT_SET_CHAT_TITLE, params, Method.POST, callback)

    def forward_message(self, chat_id: ChatId, from_chat_id: ChatId, message_id: int, callback: Callback = None) -> bool:
        params = ParameterList(chat_id=chat_id, from_chat_id=from_chat_id, message_id=message_id)
        return self._call_for_model(ENDPOINT_FORWARD_MESSAGE, params, Method.POST, Message, callback)

    def send_photo(
        self,
        chat_id: ChatId,
        photo: FilePayload,
        *,
        caption: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        params = ParameterList()
        if caption:
            params["caption"] = caption
        return self._send_payload(chat_id, photo, params, reply_to_message_id, reply_markup, "photo", ENDPOINT_SEND_PHOTO, callback)

    def send_audio(
        self,
        chat_id: ChatId,
        audio: FilePayload,
        *,
        duration: Optional[int] = None,
        performer: Optional[str] = None,
        title: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        params = ParameterList()
        params.set_if("duration", duration)
        if performer:
            params["performer"] = performer
        if title:
            params["title"] = title
        return self._send_payload(chat_id, audio, params, reply_to_message_id, reply_markup, "audio", ENDPOINT_SEND_AUDIO, callback)

    def send_document(
        self,
        chat_id: ChatId,
        document: FilePayload,
        *,
        caption: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        params = ParameterList()
        if caption:
            params["caption"] = caption
        return self._send_payload(chat_id, document, params, reply_to_message_id, reply_markup, "document", ENDPOINT_SEND_DOCUMENT, callback)

    def send_sticker(
        self,
        chat_id: ChatId,
        sticker: FilePayload,
        *,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        return self._send_payload(chat_id, sticker, ParameterList(), reply_to_message_id, reply_markup, "sticker", ENDPOINT_SEND_STICKER, callback)

    def send_video(
        self,
        chat_id: ChatId,
        video: FilePayload,
        *,
        duration: Optional[int] = None,
        caption: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        params = ParameterList()
        params.set_if("duration", duration)
        if caption:
            params["caption"] = caption
        return self._send_payload(chat_id, video, params, reply_to_message_id, reply_markup, "video", ENDPOINT_SEND_VIDEO, callback)

    def send_voice(
        self,
        chat_id: ChatId,
        voice: FilePayload,
        *,
        duration: Optional[int] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        params = ParameterList()
        params.set_if("duration", duration)
        return self._send_payload(chat_id, voice, params, reply_to_message_id, reply_markup, "voice", ENDPOINT_SEND_VOICE, callback)

    def send_location(
        self,
        chat_id: ChatId,
        latitude: float,
        longitude: float,
        *,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Union[ReplyMarkup, dict]] = None,
        callback: Callback = None,
    ) -> bool:
        params = ParameterList(chat_id=chat_id, latitude=latitude, longitude=longitude)
        params.set_if("reply_to_message_id", reply_to_message_id)
        params.set_if("reply_markup", reply_markup)
        return self._call_for_model(ENDPOINT_SEND_LOCATION, params, Method.POST, Message, callback)

    def send_chat_action(self, chat_id: ChatId, action: ChatAction, callback: Callback = None) -> bool:
        """Tell the user something is happening on the bot's side."""
        params = ParameterList(chat_id=chat_id, action=ChatAction(action))
        return self._call_for_ok(ENDPOINT_SEND_CHAT_ACTION, params, Method.POST, callback)

    def get_user_profile_photos(
        self,
        user_id: int,
        *,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        callback: Callback = None,
    ) -> bool:
        """Fetch a user's profile pictures; *limit* accepts 1-100."""
        params = ParameterList(user_id=user_id)
        params.set_if("offset", offset)
        params.set_if("limit", limit)
        return self._call_for_model(ENDPOINT_GET_USER_PROFILE_PHOTOS, params, Method.GET, UserProfilePhotos, callback)

    def get_updates(self, *, timeout: int = 0, limit: int = 50, offset: int = 0, callback: Callback = None) -> bool:
        """One-shot ``getUpdates``; *callback* receives a list of :class:`Update`.

        Independent of the polling loop and its cursor.
        """
        params = ParameterList(offset=offset, limit=limit, timeout=timeout)

        def on_reply(reply: Reply) -> None:
            updates: List[Update] = []
            if reply.ok:
                for record in decode_array(reply.content):
                    try:
                        updates.append(Update.model_validate(record))
                    except ValidationError as exc:
                        logger.debug("Ignored unparseable update", extra={"error": str(exc)})
            self._notify(callback, ENDPOINT_GET_UPDATES, updates)

        return self._dispatcher.dispatch(
            ENDPOINT_GET_UPDATES, params, Method.GET, on_reply, timeout=timeout + self._dispatcher.timeout
        ) is not None

    def set_webhook(
        self,
        url: str,
        certificate: Optional[Union[bytes, os.PathLike, IO[bytes]]] = None,
        callback: Callback = None,
    ) -> bool:
        """Register *url* as webhook (empty string removes it), optionally uploading a certificate."""
        params = ParameterList(url=url)
        method = Method.POST
        if certificate is not None:
            params["certificate"] = _file_parameter(certificate, "certificate.pem")
            method = Method.UPLOAD
        return self._call_for_ok(ENDPOINT_SET_WEBHOOK, params, method, callback)

    def get_file(self, file_id: str, callback: Callback = None) -> bool:
        """Resolve *file_id* to a downloadable :class:`File`."""
        return self._call_for_model(ENDPOINT_GET_FILE, ParameterList(file_id=file_id), Method.GET, File, callback)
