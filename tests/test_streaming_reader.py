import httpx
import pytest

from agrivision_client.errors import (
    HttpStatusError,
    StreamingUnsupportedError,
    TransportConnectionError,
    TransportTimeoutError,
)
from agrivision_client.observability import RecordingObserver
from agrivision_client.transports.streaming import StreamingReader

URL = "http://agrivision.test/mcp"
FRAME = 'event: message\ndata: {"jsonrpc":"2.0","id":7,"result":{"content":[{"text":"Sehr gesund ✓"}]}}\n\n'


def _chunked(data: bytes, size: int):
    async def _gen():
        for start in range(0, len(data), size):
            yield data[start : start + size]

    return _gen()


@pytest.mark.asyncio
async def test_streaming_reader_concatenates_chunks_across_utf8_boundaries() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["accept"] = request.headers["accept"]
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(200, content=_chunked(FRAME.encode("utf-8"), 3))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        outcome = await StreamingReader().read(client, URL, {"jsonrpc": "2.0"}, request_id=7)

    assert outcome.text == FRAME
    assert outcome.complete is True
    assert outcome.transport == "streaming"
    assert seen == {
        "accept": "application/json, text/event-stream",
        "content_type": "application/json",
    }


@pytest.mark.asyncio
async def test_streaming_reader_fails_fast_when_disabled() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, text=FRAME)

    observer = RecordingObserver()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(StreamingUnsupportedError):
            await StreamingReader(streaming_enabled=False, observer=observer).read(client, URL, {})

    assert calls == []
    assert observer.stages() == ["streaming.probe:unsupported"]


@pytest.mark.asyncio
async def test_streaming_reader_raises_on_non_2xx() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="busy")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(HttpStatusError) as exc_info:
            await StreamingReader().read(client, URL, {})

    assert exc_info.value.status_code == 503
    assert exc_info.value.message == "AgriVision error: 503"


@pytest.mark.asyncio
async def test_streaming_reader_maps_connect_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportConnectionError) as exc_info:
            await StreamingReader().read(client, URL, {})

    assert "connection refused" in exc_info.value.message


@pytest.mark.asyncio
async def test_streaming_reader_maps_read_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportTimeoutError):
            await StreamingReader().read(client, URL, {})
