import codecs
from typing import Any

import httpx

from agrivision_client.errors import HttpStatusError, StreamingUnsupportedError
from agrivision_client.observability import Observer, null_observer
from agrivision_client.schemas import TransportOutcome
from agrivision_client.transports.base import (
    STREAMING_ACCEPT,
    ObservedTransport,
    build_headers,
    map_transport_error,
)


class StreamingReader(ObservedTransport):
    """Reads the whole response body incrementally until the stream ends.

    Disabled readers fail fast so the caller can fall back to polling.
    """

    name = "streaming"

    def __init__(self, streaming_enabled: bool = True, observer: Observer = null_observer) -> None:
        super().__init__(observer)
        self.streaming_enabled = streaming_enabled

    async def read(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: dict[str, Any],
        request_id: int | None = None,
    ) -> TransportOutcome:
        if not self.streaming_enabled:
            self._emit("probe", "unsupported", request_id, reason="disabled")
            raise StreamingUnsupportedError("incremental reads are not available in this runtime")

        self._emit("request", "sent", request_id, url=url)
        try:
            async with client.stream(
                "POST", url, json=body, headers=build_headers(STREAMING_ACCEPT)
            ) as response:
                if not response.is_success:
                    self._emit("response", "error", request_id, status_code=response.status_code)
                    raise HttpStatusError(response.status_code)

                decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
                parts: list[str] = []
                chunks = 0
                async for chunk in response.aiter_bytes():
                    parts.append(decoder.decode(chunk))
                    chunks += 1
                parts.append(decoder.decode(b"", final=True))
        except httpx.HTTPError as exc:
            error = map_transport_error(exc)
            self._emit("request", "error", request_id, kind=error.kind.value, error=error.message)
            raise error from exc

        text = "".join(parts)
        self._emit("response", "complete", request_id, chunks=chunks, chars=len(text))
        return TransportOutcome(text=text, complete=True, transport=self.name)
