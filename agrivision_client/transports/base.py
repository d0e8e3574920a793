from typing import Any, Protocol

import httpx

from agrivision_client.errors import (
    DiagnosisError,
    TransportConnectionError,
    TransportTimeoutError,
)
from agrivision_client.observability import DiagnosticEvent, Observer, emit, null_observer
from agrivision_client.schemas import TransportOutcome

STREAMING_ACCEPT = "application/json, text/event-stream"
EVENT_STREAM_ACCEPT = "text/event-stream"


class TransportStrategy(Protocol):
    name: str

    async def read(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: dict[str, Any],
        request_id: int | None = None,
    ) -> TransportOutcome: ...


def build_headers(accept: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Accept": accept,
    }


def map_transport_error(exc: BaseException) -> DiagnosisError:
    if isinstance(exc, DiagnosisError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return TransportTimeoutError(f"request timed out: {exc}")
    if isinstance(exc, httpx.TransportError):
        return TransportConnectionError(f"network error: {exc or type(exc).__name__}")
    return TransportConnectionError(str(exc) or type(exc).__name__)


class ObservedTransport:
    name = "transport"

    def __init__(self, observer: Observer = null_observer) -> None:
        self._observer = observer

    def _emit(self, stage: str, outcome: str, request_id: int | None, **detail: Any) -> None:
        emit(
            self._observer,
            DiagnosticEvent(
                component=self.name,
                stage=stage,
                outcome=outcome,
                request_id=request_id,
                detail=detail,
            ),
        )
