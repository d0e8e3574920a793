import asyncio
import dataclasses
import time
from threading import Lock
from typing import Any

import httpx
from pydantic import ValidationError

from agrivision_client.config import Settings, settings
from agrivision_client.envelope import parse_envelope
from agrivision_client.errors import (
    DiagnosisError,
    InvalidRequestError,
    TransportTimeoutError,
)
from agrivision_client.normalizer import normalize_envelope, normalize_failure
from agrivision_client.observability import (
    DiagnosticEvent,
    Observer,
    configure_logging,
    default_observer,
    emit,
    null_observer,
)
from agrivision_client.schemas import (
    ClientResult,
    DiagnosisFailure,
    RpcEnvelope,
    ToolArguments,
    ToolCallParams,
    ToolCallRequest,
    TransportOutcome,
)
from agrivision_client.sse import extract_frame_payload
from agrivision_client.transports.base import TransportStrategy, map_transport_error
from agrivision_client.transports.polling import PollingReader
from agrivision_client.transports.streaming import StreamingReader

DATA_URL_PREFIX = "data:image/jpeg;base64,"

_id_lock = Lock()
_last_request_id = 0


def next_request_id() -> int:
    global _last_request_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_request_id:
            candidate = _last_request_id + 1
        _last_request_id = candidate
        return candidate


def to_data_url(image_base64: str) -> str:
    if image_base64.startswith("data:"):
        return image_base64
    return f"{DATA_URL_PREFIX}{image_base64}"


class DiagnosisClient:
    """Calls the plant-health diagnosis tool and normalizes whatever comes back.

    ``diagnose`` never raises: transport, timeout and parse failures are all
    returned as ``DiagnosisFailure`` with an ``error_kind``.
    """

    def __init__(
        self,
        config: Settings = settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        observer: Observer = null_observer,
        strategies: list[TransportStrategy] | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._observer = observer
        self._strategies: list[TransportStrategy] = strategies or [
            StreamingReader(streaming_enabled=config.streaming_enabled, observer=observer),
            PollingReader(observer=observer),
        ]

    def build_request(self, image_base64: str, crop: str | None = None) -> ToolCallRequest:
        if not image_base64:
            raise InvalidRequestError("image is required")
        if not isinstance(image_base64, str):
            raise InvalidRequestError(f"image must be a base64 string, not {type(image_base64).__name__}")
        try:
            arguments = ToolArguments(image=to_data_url(image_base64), crop=crop or None)
        except ValidationError as exc:
            raise InvalidRequestError(f"invalid tool arguments: {exc.error_count()} invalid field(s)") from exc
        return ToolCallRequest(
            id=next_request_id(),
            params=ToolCallParams(name=self._config.tool_name, arguments=arguments),
        )

    async def diagnose(self, image_base64: str, crop: str | None = None) -> ClientResult:
        start = time.perf_counter()
        try:
            request = self.build_request(image_base64, crop)
        except InvalidRequestError as exc:
            return self._finish(normalize_failure(exc), None, start)

        try:
            result = await self._call(request)
        except Exception as exc:  # noqa: BLE001
            result = normalize_failure(exc)
        return self._finish(result, request.id, start)

    async def _call(self, request: ToolCallRequest) -> ClientResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.timeout_s
        body = request.to_wire()
        failures: list[tuple[str, DiagnosisError]] = []

        async with httpx.AsyncClient(
            transport=self._transport, timeout=self._config.timeout_s
        ) as client:
            for index, strategy in enumerate(self._strategies):
                if index:
                    self._emit("fallback", "started", request.id, transport=strategy.name)
                remaining = deadline - loop.time()
                try:
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    outcome = await asyncio.wait_for(
                        strategy.read(client, self._config.agrivision_url, body, request.id),
                        timeout=remaining,
                    )
                    envelope = self._parse(outcome, request.id)
                except asyncio.TimeoutError:
                    error: DiagnosisError = TransportTimeoutError(
                        f"no response within {self._config.timeout_ms} ms"
                    )
                except Exception as exc:  # noqa: BLE001
                    error = map_transport_error(exc)
                else:
                    return normalize_envelope(envelope)

                self._emit(
                    "attempt",
                    "error",
                    request.id,
                    transport=strategy.name,
                    kind=error.kind.value,
                    error=error.message,
                )
                failures.append((strategy.name, error))

        _, last_error = failures[-1]
        message = "; ".join(f"{name}={error.message}" for name, error in failures)
        return normalize_failure(last_error, message=message)

    def _parse(self, outcome: TransportOutcome, request_id: int) -> RpcEnvelope:
        payload = extract_frame_payload(outcome.text)
        try:
            envelope = parse_envelope(payload, outcome.text)
        except DiagnosisError as exc:
            self._emit(
                "parse",
                "error",
                request_id,
                transport=outcome.transport,
                complete=outcome.complete,
                error=exc.message,
            )
            raise
        self._emit("parse", "ok", request_id, transport=outcome.transport, complete=outcome.complete)
        return envelope

    def _finish(self, result: ClientResult, request_id: int | None, start: float) -> ClientResult:
        latency_ms = round((time.perf_counter() - start) * 1000.0, 2)
        detail: dict[str, Any] = {"latency_ms": latency_ms}
        if isinstance(result, DiagnosisFailure):
            detail["kind"] = result.error_kind.value
            detail["error"] = result.error
            outcome = "error"
        else:
            outcome = "ok"
        self._emit("result", outcome, request_id, **detail)
        return result

    def _emit(self, stage: str, outcome: str, request_id: int | None, **detail: Any) -> None:
        emit(
            self._observer,
            DiagnosticEvent(
                component="client",
                stage=stage,
                outcome=outcome,
                request_id=request_id,
                detail=detail,
            ),
        )


async def diagnose_plant_health(
    image_base64: str,
    crop: str | None = None,
    timeout_s: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ClientResult:
    config = settings
    if timeout_s is not None:
        config = dataclasses.replace(settings, timeout_ms=int(timeout_s * 1000))
    configure_logging(config)
    client = DiagnosisClient(config, transport=transport, observer=default_observer(config))
    return await client.diagnose(image_base64, crop)
