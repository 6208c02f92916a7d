import base64
import json

import pytest

from omnibot.exceptions import MessageError
from omnibot.models.messages import (
    ErrorMessage,
    GenerateRequest,
    MediaBlob,
    SendAudioMessage,
    SendAudioPayload,
    ServerMessage,
    SessionClosedMessage,
    SessionOpenedMessage,
    decode_base64,
    parse_client_message,
    parse_generate_request,
    parse_relay_message,
)
from omnibot.models.session import AudioFrame, SessionState


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def test_send_audio_wire_format():
    """The send_audio message nests the blob under payload.media"""
    message = SendAudioMessage(payload=SendAudioPayload(media=MediaBlob(data=_b64(b"\x01\x00"))))
    wire = json.loads(message.model_dump_json())
    assert wire == {
        "type": "send_audio",
        "payload": {"media": {"data": "AQA=", "mimeType": "audio/pcm;rate=16000"}},
    }


def test_parse_client_message_valid():
    raw = json.dumps({
        "type": "send_audio",
        "payload": {"media": {"data": _b64(b"\x00\x01\x02\x03"), "mimeType": "audio/pcm;rate=16000"}},
    })
    message = parse_client_message(raw)
    assert isinstance(message, SendAudioMessage)
    assert message.payload.media.to_bytes() == b"\x00\x01\x02\x03"


@pytest.mark.parametrize("raw", [
    "not json",
    "[1, 2, 3]",
    json.dumps({"type": "unknown"}),
    json.dumps({"type": {"a": 1}}),
    json.dumps({"type": ["send_audio"]}),
    json.dumps({"type": None}),
    json.dumps({}),
    json.dumps({"type": "send_audio"}),
    json.dumps({"type": "send_audio", "payload": {"media": {"data": ""}}}),
    json.dumps({"type": "send_audio", "payload": {"media": {"data": "!!!not base64!!!"}}}),
])
def test_parse_client_message_invalid(raw):
    with pytest.raises(MessageError):
        parse_client_message(raw)


def test_message_error_is_value_error():
    with pytest.raises(ValueError):
        parse_client_message("{")


def test_parse_relay_messages():
    assert isinstance(parse_relay_message('{"type": "session_opened"}'), SessionOpenedMessage)
    assert isinstance(parse_relay_message('{"type": "session_closed"}'), SessionClosedMessage)

    error = parse_relay_message('{"type": "error", "error": "quota exceeded"}')
    assert isinstance(error, ErrorMessage)
    assert error.error == "quota exceeded"

    server = parse_relay_message('{"type": "server_message", "data": {"setupComplete": {}}}')
    assert isinstance(server, ServerMessage)
    assert server.data == {"setupComplete": {}}


def test_parse_relay_message_rejects_unknown_type():
    with pytest.raises(MessageError):
        parse_relay_message('{"type": "send_audio"}')


@pytest.mark.parametrize("raw", [
    '{"type": {"a": 1}}',
    '{"type": ["session_opened"]}',
    '{}',
])
def test_parse_relay_message_rejects_non_string_type(raw):
    with pytest.raises(MessageError):
        parse_relay_message(raw)


def test_server_message_inline_audio():
    message = ServerMessage(data={
        "serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": "AAA=", "mimeType": "audio/pcm;rate=24000"}}]}}
    })
    assert message.inline_audio() == "AAA="


@pytest.mark.parametrize("data", [
    {},
    {"setupComplete": {}},
    {"serverContent": {"turnComplete": True}},
    {"serverContent": {"modelTurn": {"parts": []}}},
    {"serverContent": {"modelTurn": {"parts": [{"text": "hello"}]}}},
    {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": 12345}}]}}},
    {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": ["AAA="]}}]}}},
    {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": ""}}]}}},
])
def test_server_message_without_audio(data):
    assert ServerMessage(data=data).inline_audio() is None


def test_decode_base64_accepts_url_safe_alphabet():
    raw = bytes([0xfb, 0xff, 0xbf])
    url_safe = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
    assert decode_base64(url_safe) == raw


def test_audio_frame_blob():
    frame = AudioFrame(data=b"\x00\x00" * 1600)
    assert frame.sample_count == 1600
    assert frame.duration == pytest.approx(0.1)
    blob = frame.to_blob()
    assert blob.mimeType == "audio/pcm;rate=16000"
    assert blob.to_bytes() == frame.data


def test_session_state_terminal():
    assert not SessionState.CONNECTING.is_terminal
    assert not SessionState.OPEN.is_terminal
    assert SessionState.CLOSING.is_terminal
    assert SessionState.CLOSED.is_terminal
    assert SessionState.ERRORED.is_terminal


def test_parse_generate_request():
    request = parse_generate_request({"operation": "generateContent", "model": "m", "contents": "hi"})
    assert request.operation == "generateContent"
    assert request.contents == "hi"


@pytest.mark.parametrize("body", [None, [1, 2], "text", 42])
def test_parse_generate_request_non_object_has_no_operation(body):
    assert parse_generate_request(body) == GenerateRequest()


def test_parse_generate_request_rejects_bad_field_shape():
    with pytest.raises(MessageError):
        parse_generate_request({"operation": "generateContent", "config": "not an object"})
