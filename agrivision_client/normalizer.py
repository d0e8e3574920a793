import json

from agrivision_client.errors import DiagnosisError
from agrivision_client.schemas import (
    ClientResult,
    DiagnosisFailure,
    DiagnosisSuccess,
    ErrorKind,
    RpcEnvelope,
)

DEFAULT_RPC_ERROR = "Diagnosis failed"
EMPTY_RESULT_ERROR = "No diagnosis result received"


def normalize_envelope(envelope: RpcEnvelope) -> ClientResult:
    if envelope.error is not None:
        if isinstance(envelope.error, dict):
            message = envelope.error.get("message") or DEFAULT_RPC_ERROR
        else:
            message = envelope.error or DEFAULT_RPC_ERROR
        return DiagnosisFailure(error=str(message), error_kind=ErrorKind.RPC)

    text = _extract_tool_text(envelope)
    if not text:
        return DiagnosisFailure(error=EMPTY_RESULT_ERROR, error_kind=ErrorKind.EMPTY_RESULT)

    # Tool payloads are JSON-encoded strings; plain text is a valid answer too.
    try:
        diagnosis = json.loads(text)
    except ValueError:
        return DiagnosisSuccess(diagnosis=text)
    return DiagnosisSuccess(diagnosis=diagnosis)


def normalize_failure(exc: BaseException, message: str | None = None) -> DiagnosisFailure:
    if isinstance(exc, DiagnosisError):
        return DiagnosisFailure(error=message or exc.message, error_kind=exc.kind)
    return DiagnosisFailure(
        error=message or str(exc) or "Failed to analyze image",
        error_kind=ErrorKind.PROTOCOL,
    )


def _extract_tool_text(envelope: RpcEnvelope) -> str | None:
    result = envelope.result
    if not isinstance(result, dict):
        return None
    content = result.get("content")
    if not isinstance(content, list) or not content:
        return None
    first = content[0]
    if not isinstance(first, dict):
        return None
    text = first.get("text")
    return text if isinstance(text, str) else None
