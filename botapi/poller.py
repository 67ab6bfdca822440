"""Update Poller: the long-poll loop that receives inbound messages.

One poll is in flight at a time.  Each completion, successful or not,
re-arms a single-shot timer; when it fires the next ``getUpdates`` call
goes out with the current cursor as its offset.  The cursor is one past
the highest ``update_id`` seen and never moves backwards, so a failed or
repeated poll simply asks the server for the same updates again.
"""

from __future__ import annotations

import asyncio
import enum
import functools
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from botapi.decoder import decode_array
from botapi.dispatcher import Dispatcher, Reply
from botapi.models import Message, Update
from botapi.params import Method, ParameterList

ENDPOINT_GET_UPDATES = "/getUpdates"

logger = logging.getLogger(__name__)

MessageHandler = Callable[[int, Message], Any]


class PollerState(enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    SCHEDULED_WAIT = "scheduled_wait"
    STOPPED = "stopped"


class UpdatePoller:
    """Repeatedly long-polls ``getUpdates`` and emits every inbound message.

    Args:
        dispatcher: Dispatcher used for the ``getUpdates`` calls.
        on_message: Called as ``on_message(update_id, message)`` for each
            update carrying a ``message`` or ``channel_post``.
        interval: Seconds to wait after each completed poll.
        polling_timeout: Seconds the server may hold each poll open.
        limit: Maximum number of updates per poll.
    """

    DEFAULT_LIMIT = 50

    def __init__(
        self,
        dispatcher: Dispatcher,
        on_message: MessageHandler,
        *,
        interval: float = 1.0,
        polling_timeout: int = 0,
        limit: int = DEFAULT_LIMIT,
    ) -> None:
        self._dispatcher = dispatcher
        self._on_message = on_message
        self._interval = interval
        self._polling_timeout = polling_timeout
        self._limit = limit
        self._offset = 0
        self._state = PollerState.IDLE
        self._timer: Optional[asyncio.TimerHandle] = None
        # Bumped by start(); completions of polls sent before a restart are stale.
        self._generation = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state in (PollerState.POLLING, PollerState.SCHEDULED_WAIT)

    def start(self) -> None:
        """Send the first poll, resuming from the cursor after a :meth:`stop`.

        Must be called from the running event loop.
        """
        if self.running:
            return
        self._state = PollerState.IDLE
        self._generation += 1
        logger.info("Update polling started", extra={"interval": self._interval, "polling_timeout": self._polling_timeout})
        self._poll()

    def stop(self) -> None:
        """Stop polling; a poll already in flight completes without rescheduling."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._state is not PollerState.STOPPED:
            logger.info("Update polling stopped", extra={"offset": self._offset})
        self._state = PollerState.STOPPED

    # ------------------------------------------------------------------
    #  State machine
    # ------------------------------------------------------------------

    def _poll(self) -> None:
        self._timer = None
        if self._state is PollerState.STOPPED:
            return
        self._state = PollerState.POLLING

        params = ParameterList(offset=self._offset, limit=self._limit, timeout=self._polling_timeout)
        handle = self._dispatcher.dispatch(
            ENDPOINT_GET_UPDATES,
            params,
            Method.GET,
            functools.partial(self._on_updates, self._generation),
            timeout=self._polling_timeout + self._dispatcher.timeout,
        )
        if handle is None:
            logger.warning("getUpdates request failed", extra={"api_endpoint": "getUpdates", "offset": self._offset})
            self._schedule()

    def _on_updates(self, generation: int, reply: Reply) -> None:
        if generation != self._generation:
            logger.debug("Ignored getUpdates reply from before a restart", extra={"api_endpoint": "getUpdates"})
            return
        try:
            if reply.ok:
                self._process(decode_array(reply.content))
            else:
                logger.warning(
                    "getUpdates failed, retrying",
                    extra={"api_endpoint": "getUpdates", "offset": self._offset, "retry_in": self._interval},
                )
        finally:
            self._schedule()

    def _process(self, records: list) -> None:
        if records:
            logger.debug("Received updates", extra={"count": len(records)})
        for record in records:
            if not isinstance(record, dict):
                logger.debug("Ignored non-object update", extra={"record": record})
                continue

            update_id = 0
            if "update_id" in record:
                try:
                    update_id = int(record["update_id"])
                except (TypeError, ValueError):
                    logger.debug("Ignored update with invalid id", extra={"record": record})
                    continue
                if update_id >= self._offset:
                    self._offset = update_id + 1

            if "message" not in record and "channel_post" not in record:
                logger.debug("Ignored update", extra={"update_id": update_id})
                continue
            self._emit(update_id, record)

    def _emit(self, update_id: int, record: dict) -> None:
        try:
            update = Update.model_validate({**record, "update_id": update_id})
        except ValidationError as exc:
            logger.warning("Failed to parse update", extra={"update_id": update_id, "error": str(exc)})
            return
        message = update.inbound_message
        if message is None:
            return
        try:
            self._on_message(update_id, message)
        except Exception:
            logger.exception("Message handler raised", extra={"update_id": update_id})

    def _schedule(self) -> None:
        if self._state is PollerState.STOPPED:
            return
        self._state = PollerState.SCHEDULED_WAIT
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._interval, self._poll)
