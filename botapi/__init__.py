"""Asynchronous Bot API client: request dispatch, response decoding, update polling.

Usage::

    from botapi import Bot, Dispatcher, UpdatePoller, ParameterList, Method
    from botapi.models import Message, User, chat_id_for
"""

from botapi.client import Bot, ChatAction
from botapi.dispatcher import Dispatcher, Reply
from botapi.exceptions import APIException, BotAPIError, BuildError
from botapi.params import HttpParameter, Method, ParameterList
from botapi.poller import PollerState, UpdatePoller

__all__ = [
    "Bot",
    "ChatAction",
    "Dispatcher",
    "Reply",
    "UpdatePoller",
    "PollerState",
    "HttpParameter",
    "ParameterList",
    "Method",
    "APIException",
    "BotAPIError",
    "BuildError",
]
