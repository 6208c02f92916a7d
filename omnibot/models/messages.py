"""
Pydantic models for the duplex channel between the call client and the relay.

Every message is a JSON object whose "type" field selects its payload shape:

- client -> relay: send_audio
- relay -> client: session_opened, server_message, session_closed, error

Relay messages are parsed through a discriminated union so callers can match
on concrete model classes instead of inspecting raw dictionaries.
"""

import base64
import binascii
import json
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from omnibot.config.constants import MESSAGE_TYPE_SEND_AUDIO, PCM_INPUT_MIME
from omnibot.exceptions import MessageError


def decode_base64(data: str) -> bytes:
    """Decode base64 in either the standard or the URL-safe alphabet."""
    normalized = data.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        return base64.b64decode(normalized, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MessageError(f"Invalid base64 audio data: {e}") from e


class MediaBlob(BaseModel):
    """Encoded audio as carried on the wire."""

    data: str = Field(..., description="Base64-encoded audio bytes")
    mimeType: str = Field(PCM_INPUT_MIME, description="MIME-like encoding tag")

    @field_validator("data")
    def validate_data(cls, v):
        """Validate that the audio data is non-empty base64."""
        if not v:
            raise ValueError("Audio data cannot be empty")
        decode_base64(v)
        return v

    def to_bytes(self) -> bytes:
        return decode_base64(self.data)


class SendAudioPayload(BaseModel):
    media: MediaBlob


# Client -> relay
class SendAudioMessage(BaseModel):
    """Model for a captured audio frame sent by the client."""

    type: Literal["send_audio"] = "send_audio"
    payload: SendAudioPayload


# Relay -> client
class SessionOpenedMessage(BaseModel):
    """The upstream voice session is ready."""

    type: Literal["session_opened"] = "session_opened"


class ServerMessage(BaseModel):
    """An upstream message relayed verbatim."""

    type: Literal["server_message"] = "server_message"
    data: Dict[str, Any] = Field(default_factory=dict)

    def inline_audio(self) -> Optional[str]:
        """Return the base64 audio of the first model-turn part, if any."""
        server_content = self.data.get("serverContent")
        if not isinstance(server_content, dict):
            return None
        model_turn = server_content.get("modelTurn")
        if not isinstance(model_turn, dict):
            return None
        parts = model_turn.get("parts")
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
            return None
        inline_data = parts[0].get("inlineData")
        if not isinstance(inline_data, dict):
            return None
        data = inline_data.get("data")
        if not isinstance(data, str) or not data:
            return None
        return data


class SessionClosedMessage(BaseModel):
    """The upstream voice session finished; the relay is closing the channel."""

    type: Literal["session_closed"] = "session_closed"


class ErrorMessage(BaseModel):
    """The session failed; the relay is closing the channel."""

    type: Literal["error"] = "error"
    error: str


RelayMessage = Annotated[
    Union[SessionOpenedMessage, ServerMessage, SessionClosedMessage, ErrorMessage],
    Field(discriminator="type"),
]

_relay_message_adapter = TypeAdapter(RelayMessage)

CLIENT_MESSAGE_TYPES = {
    MESSAGE_TYPE_SEND_AUDIO: SendAudioMessage,
}

# Messages after which the relay closes the client connection
TERMINAL_MESSAGE_TYPES = (SessionClosedMessage, ErrorMessage)


def _load_json(raw: Union[str, bytes]) -> Dict[str, Any]:
    try:
        message_dict = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MessageError(f"Message is not valid JSON: {e}") from e
    if not isinstance(message_dict, dict):
        raise MessageError("Message must be a JSON object")
    return message_dict


def parse_client_message(raw: Union[str, bytes]) -> SendAudioMessage:
    """
    Parse a message received by the relay from a client.

    Args:
        raw: The JSON text of the message

    Returns:
        The typed message model

    Raises:
        MessageError: If the message is not JSON, has an unknown type or an invalid payload
    """
    message_dict = _load_json(raw)
    message_type = message_dict.get("type")
    if not isinstance(message_type, str):
        raise MessageError(f"Message type must be a string, got {type(message_type).__name__}")
    model = CLIENT_MESSAGE_TYPES.get(message_type)
    if model is None:
        raise MessageError(f"Unknown message type received: {message_type}")
    try:
        return model(**message_dict)
    except ValidationError as e:
        raise MessageError(f"Invalid {message_type} message: {e}") from e


def parse_relay_message(raw: Union[str, bytes]) -> RelayMessage:
    """
    Parse a message received by a client from the relay.

    Raises:
        MessageError: If the message is not JSON or does not match any relay message
    """
    message_dict = _load_json(raw)
    if not isinstance(message_dict.get("type"), str):
        raise MessageError("Relay message type must be a string")
    try:
        return _relay_message_adapter.validate_python(message_dict)
    except ValidationError as e:
        raise MessageError(f"Invalid relay message: {e}") from e


class GenerateRequest(BaseModel):
    """Body of the one-shot generation endpoint."""

    operation: Optional[str] = None
    model: Optional[str] = None
    contents: Any = None
    config: Optional[Dict[str, Any]] = None
    prompt: Optional[str] = None


def parse_generate_request(body: Any) -> GenerateRequest:
    """
    Build a generation request from an arbitrary JSON body.

    A body that is not an object carries no operation, so it yields an empty
    request that the generation service rejects as missing its operation.

    Raises:
        MessageError: If an object body has fields of the wrong shape
    """
    if not isinstance(body, dict):
        return GenerateRequest()
    try:
        return GenerateRequest(**body)
    except ValidationError as e:
        raise MessageError(f"Invalid generation request: {e}") from e
