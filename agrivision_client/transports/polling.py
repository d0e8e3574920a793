import asyncio
from collections.abc import Callable
from enum import IntEnum
from typing import Any

import httpx

from agrivision_client.errors import DiagnosisError, HttpStatusError
from agrivision_client.observability import Observer, null_observer
from agrivision_client.schemas import TransportOutcome
from agrivision_client.sse import is_message_complete
from agrivision_client.transports.base import (
    EVENT_STREAM_ACCEPT,
    ObservedTransport,
    build_headers,
    map_transport_error,
)


class ReadyState(IntEnum):
    UNSENT = 0
    OPENED = 1
    HEADERS_RECEIVED = 2
    LOADING = 3
    DONE = 4


class ProgressiveRequest:
    """Event-driven request whose ``response_text`` grows as data arrives.

    Callbacks fire from the request task: ``on_ready_state_change`` on every
    state transition, ``on_progress`` after each received chunk, then exactly
    one of ``on_load`` (response finished, any status), ``on_error`` (transport
    failure) or ``on_abort``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> None:
        self._client = client
        self._method = method
        self._url = url
        self._headers = headers or {}
        self._json = json
        self._task: asyncio.Task[None] | None = None
        self._aborted = False

        self.ready_state = ReadyState.UNSENT
        self.status = 0
        self.response_text = ""

        self.on_ready_state_change: Callable[[], None] | None = None
        self.on_progress: Callable[[], None] | None = None
        self.on_load: Callable[[], None] | None = None
        self.on_error: Callable[[DiagnosisError], None] | None = None
        self.on_abort: Callable[[], None] | None = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    def send(self) -> None:
        if self._task is not None:
            raise RuntimeError("request already sent")
        self._set_state(ReadyState.OPENED)
        self._task = asyncio.create_task(self._run())

    def abort(self) -> None:
        if self._aborted or self.ready_state == ReadyState.DONE:
            return
        self._aborted = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._set_state(ReadyState.DONE)
        _fire(self.on_abort)

    async def _run(self) -> None:
        try:
            async with self._client.stream(
                self._method, self._url, json=self._json, headers=self._headers
            ) as response:
                self.status = response.status_code
                self._set_state(ReadyState.HEADERS_RECEIVED)
                async for chunk in response.aiter_text():
                    if self._aborted:
                        return
                    if not chunk:
                        continue
                    self.response_text += chunk
                    if self.ready_state != ReadyState.LOADING:
                        self._set_state(ReadyState.LOADING)
                    _fire(self.on_progress)
        except Exception as exc:  # noqa: BLE001
            if self._aborted:
                return
            self._set_state(ReadyState.DONE)
            if self.on_error is not None:
                self.on_error(map_transport_error(exc))
            return

        if self._aborted:
            return
        self._set_state(ReadyState.DONE)
        _fire(self.on_load)

    def _set_state(self, state: ReadyState) -> None:
        self.ready_state = state
        _fire(self.on_ready_state_change)


def _fire(callback: Callable[[], None] | None) -> None:
    if callback is not None:
        callback()


class PollingReader(ObservedTransport):
    """Fallback transport for runtimes without incremental body reads.

    Watches the growing response text and resolves as soon as it looks like a
    complete SSE message, aborting the request; otherwise resolves on the
    request's own completion.
    """

    name = "polling"

    def __init__(
        self,
        observer: Observer = null_observer,
        completion_check: Callable[[str], bool] = is_message_complete,
    ) -> None:
        super().__init__(observer)
        self._completion_check = completion_check

    async def read(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: dict[str, Any],
        request_id: int | None = None,
    ) -> TransportOutcome:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[TransportOutcome] = loop.create_future()
        request = ProgressiveRequest(
            client,
            "POST",
            url,
            headers=build_headers(EVENT_STREAM_ACCEPT),
            json=body,
        )

        def resolve(outcome: TransportOutcome) -> None:
            if not future.done():
                future.set_result(outcome)

        def reject(error: DiagnosisError) -> None:
            if not future.done():
                future.set_exception(error)

        def on_progress() -> None:
            if future.done():
                return
            if self._completion_check(request.response_text):
                self._emit("progress", "heuristic_match", request_id, chars=len(request.response_text))
                text = request.response_text
                request.abort()
                resolve(TransportOutcome(text=text, complete=False, transport=self.name))

        def on_load() -> None:
            if 200 <= request.status < 300:
                self._emit("load", "complete", request_id, chars=len(request.response_text))
                resolve(TransportOutcome(text=request.response_text, complete=True, transport=self.name))
            else:
                self._emit("load", "error", request_id, status_code=request.status)
                reject(HttpStatusError(request.status))

        def on_error(error: DiagnosisError) -> None:
            self._emit("request", "error", request_id, kind=error.kind.value, error=error.message)
            reject(error)

        request.on_progress = on_progress
        request.on_load = on_load
        request.on_error = on_error

        self._emit("request", "sent", request_id, url=url)
        request.send()
        try:
            return await future
        finally:
            request.abort()
