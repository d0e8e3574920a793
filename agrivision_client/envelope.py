import json
from typing import Any

from agrivision_client.errors import ProtocolError
from agrivision_client.schemas import RpcEnvelope


def parse_envelope(payload: str, raw: str | None = None) -> RpcEnvelope:
    """Decode a JSON-RPC envelope from extracted SSE payload text.

    When the payload is not valid JSON, the first balanced ``{...}`` object in
    the original ``raw`` buffer is tried instead. Raises ``ProtocolError`` when
    neither yields an envelope.
    """
    try:
        value = json.loads(payload)
    except ValueError as direct_exc:
        candidate = recover_json_object(raw if raw is not None else payload)
        if candidate is None:
            raise ProtocolError(f"failed to parse rpc envelope: {direct_exc}") from direct_exc
        try:
            value = json.loads(candidate)
        except ValueError as exc:
            raise ProtocolError(f"failed to parse recovered rpc envelope: {exc}") from exc
    return _validate_envelope(value)


def recover_json_object(text: str) -> str | None:
    """Return the first balanced top-level object in ``text``.

    Trailing commas before a closing brace or bracket are dropped; string
    contents are copied untouched.
    """
    start = text.find("{")
    if start == -1:
        return None

    out: list[str] = []
    depth = 0
    in_string = False
    escaped = False
    comma_at: int | None = None
    for char in text[start:]:
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char in "}]" and comma_at is not None:
            del out[comma_at:]
        if char == ",":
            comma_at = len(out)
        elif not char.isspace():
            comma_at = None
        out.append(char)
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return "".join(out)
    return None


def _validate_envelope(value: Any) -> RpcEnvelope:
    if not isinstance(value, dict):
        raise ProtocolError("rpc envelope is not a json object")
    return RpcEnvelope.model_validate(value)
