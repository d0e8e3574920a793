import pytest

from agrivision_client.envelope import parse_envelope, recover_json_object
from agrivision_client.errors import ProtocolError
from agrivision_client.schemas import ErrorKind

ENVELOPE = '{"jsonrpc":"2.0","id":1,"result":{"content":[{"text":"{\\"ok\\":true}"}]}}'


def test_parse_envelope_direct() -> None:
    envelope = parse_envelope(ENVELOPE)
    assert envelope.id == 1
    assert envelope.result == {"content": [{"text": '{"ok":true}'}]}
    assert envelope.error is None


def test_parse_envelope_recovers_from_garbage_prefix() -> None:
    raw = f"garbage-prefix{ENVELOPE}"
    envelope = parse_envelope(raw, raw)
    assert envelope.result["content"][0]["text"] == '{"ok":true}'


def test_parse_envelope_recovers_from_original_raw_text() -> None:
    raw = f"event: message\nbroken {ENVELOPE} trailing junk"
    envelope = parse_envelope("not json at all", raw)
    assert envelope.id == 1


def test_recover_json_object_normalizes_trailing_commas() -> None:
    text = 'xx{"a":[1,2,],"b":{"c":3,},}yy'
    assert recover_json_object(text) == '{"a":[1,2],"b":{"c":3}}'


def test_recover_json_object_ignores_braces_inside_strings() -> None:
    text = 'prefix{"text":"a } b { c"} {"second":true}'
    assert recover_json_object(text) == '{"text":"a } b { c"}'


def test_recover_json_object_returns_none_when_unbalanced() -> None:
    assert recover_json_object('data: {"jsonrpc":"2.0","result":{') is None
    assert recover_json_object("no braces here") is None


def test_parse_envelope_raises_protocol_error_when_unrecoverable() -> None:
    with pytest.raises(ProtocolError) as exc_info:
        parse_envelope('{"jsonrpc":"2.0",', 'data: {"jsonrpc":"2.0",')
    assert exc_info.value.kind == ErrorKind.PROTOCOL


def test_parse_envelope_rejects_non_object_json() -> None:
    with pytest.raises(ProtocolError):
        parse_envelope("[1, 2, 3]")


def test_parse_envelope_accepts_any_member_types() -> None:
    envelope = parse_envelope('{"jsonrpc":"2.0","id":1,"result":"oops"}')
    assert envelope.result == "oops"

    envelope = parse_envelope('{"jsonrpc":2,"id":1.5,"error":"bad image"}')
    assert envelope.id == 1.5
    assert envelope.error == "bad image"


def test_recover_json_object_leaves_string_contents_alone() -> None:
    assert recover_json_object('xx{"text":"a, }b"}') == '{"text":"a, }b"}'
    assert recover_json_object('{"text":"x,]",}') == '{"text":"x,]"}'
