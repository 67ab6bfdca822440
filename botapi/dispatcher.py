"""Async Dispatcher: non-blocking Bot API calls with single-shot continuations.

:meth:`Dispatcher.dispatch` builds a request, hands the blocking
:mod:`requests` send to a worker thread and returns the in-flight handle
at once.  The handle's done-callback runs on the event loop, so every
continuation is invoked from the loop that dispatched the call and the
pending-call table is only ever touched from that loop.

Usage::

    async with Dispatcher(token) as dispatcher:
        dispatcher.dispatch("/getMe", ParameterList(), Method.GET, on_reply)
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import dataclasses
import functools
import logging
import types
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from botapi.exceptions import APIException, BuildError
from botapi.params import Method, ParameterList
from botapi.request import API_HOST, RequestBuilder

logger = logging.getLogger(__name__)

RequestHandle = asyncio.Future


@dataclasses.dataclass
class Reply:
    """Outcome of one dispatched call, handed to its continuation.

    Exactly one of *response* and *error* is set.  ``error`` is an
    :class:`~botapi.exceptions.APIException` for non-2xx answers and a
    :class:`requests.RequestException` (or any other exception raised while
    sending) for transport failures.
    """

    handle: RequestHandle
    endpoint: str
    response: Optional[requests.Response] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.response is not None

    @property
    def content(self) -> bytes:
        """Raw response body; empty when the call failed at transport level."""
        if not self.ok:
            return b""
        return self.response.content

    @property
    def status_code(self) -> Optional[int]:
        if isinstance(self.error, APIException):
            return self.error.status_code
        if self.response is not None:
            return self.response.status_code
        return None

    def error_string(self) -> str:
        if self.error is None:
            return ""
        return f"[{type(self.error).__name__}] {self.error}"


Continuation = Callable[[Reply], Any]


class Dispatcher:
    """Owns the HTTP session and the table of in-flight calls for one bot token."""

    _DEFAULT_TIMEOUT: float = 10

    def __init__(
        self,
        token: str,
        *,
        host: str = API_HOST,
        timeout: float = _DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ) -> None:
        """Create a dispatcher for *token*.

        Args:
            token: Bot token embedded into every request path.
            host: API host name.
            timeout: Default HTTP timeout in seconds.
            session: HTTP session to send with; a new one is created when omitted.
            executor: Thread pool for the blocking sends; the loop's default when omitted.
        """
        self._builder = RequestBuilder(token, host=host)
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._executor = executor
        self._pending: Dict[RequestHandle, Continuation] = {}
        self._closed = False

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def pending(self) -> Mapping[RequestHandle, Continuation]:
        """Read-only view of the in-flight calls."""
        return types.MappingProxyType(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    #  Dispatch / completion
    # ------------------------------------------------------------------

    def dispatch(
        self,
        endpoint: str,
        params: ParameterList,
        method: Method,
        on_complete: Continuation,
        *,
        timeout: Optional[float] = None,
    ) -> Optional[RequestHandle]:
        """Start a call and return its handle, or ``None`` if it could not be built.

        Must be called from the running event loop.  *on_complete* is invoked
        exactly once, on that loop, with the :class:`Reply`.
        """
        if self._closed:
            logger.warning("Dispatcher is closed, dropping request", extra={"api_endpoint": endpoint})
            return None
        try:
            prepared = self._builder.build(endpoint, params, method)
        except BuildError as exc:
            logger.warning("Cannot dispatch request", extra={"api_endpoint": endpoint, "error": str(exc)})
            return None

        loop = asyncio.get_running_loop()
        send = functools.partial(self._send, prepared, self._timeout if timeout is None else timeout)
        handle = loop.run_in_executor(self._executor, send)
        self._pending[handle] = on_complete
        handle.add_done_callback(functools.partial(self._request_finished, endpoint=endpoint))
        logger.debug("Request dispatched", extra={"api_endpoint": endpoint, "pending": len(self._pending)})
        return handle

    def _send(self, prepared: requests.PreparedRequest, timeout: float) -> requests.Response:
        """Blocking send, run on a worker thread.

        Raises:
            APIException: If the response status code is not 2xx.
            requests.RequestException: On transport-level failures.
        """
        response = self._session.send(prepared, timeout=timeout)
        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise APIException(response.status_code, body if isinstance(body, dict) else {})
        return response

    def _request_finished(self, handle: RequestHandle, endpoint: str = "") -> None:
        """Deliver the outcome of *handle* to its continuation, at most once."""
        on_complete = self._pending.pop(handle, None)
        if on_complete is None:
            if self._closed:
                logger.debug("Completion for abandoned request", extra={"api_endpoint": endpoint})
            else:
                logger.warning("Could not find request in pending table", extra={"api_endpoint": endpoint})
            return

        if handle.cancelled():
            reply = Reply(handle, endpoint, error=asyncio.CancelledError())
        elif handle.exception() is not None:
            reply = Reply(handle, endpoint, error=handle.exception())
        else:
            reply = Reply(handle, endpoint, response=handle.result())

        if not reply.ok:
            logger.error(
                "Request failed",
                extra={"api_endpoint": endpoint, "status_code": reply.status_code, "error": reply.error_string()},
            )

        try:
            on_complete(reply)
        except Exception:
            logger.exception("Continuation raised", extra={"api_endpoint": endpoint})

    # ------------------------------------------------------------------
    #  Teardown
    # ------------------------------------------------------------------

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until no call is in flight.

        Returns ``False`` if calls are still pending after *timeout* seconds.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._pending:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(list(self._pending), timeout=remaining)
            # Let the done-callbacks of the finished handles run.
            await asyncio.sleep(0)
        return True

    async def close(self, timeout: Optional[float] = None) -> None:
        """Drain in-flight calls, then release the HTTP session.

        Calls still pending after *timeout* are abandoned: their continuations
        never run.
        """
        if self._closed:
            return
        if self._pending:
            logger.info("Waiting for pending requests", extra={"pending": len(self._pending)})
        drained = await self.drain(timeout)
        self._closed = True
        if not drained:
            abandoned = list(self._pending)
            logger.warning("Abandoning pending requests", extra={"pending": len(abandoned)})
            self._pending.clear()
            for handle in abandoned:
                handle.cancel()
        self._session.close()

    async def __aenter__(self) -> "Dispatcher":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
