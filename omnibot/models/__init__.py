"""
Data models for the OmniBot voice relay.

This module defines the structured data exchanged between the call client, the
relay and the upstream voice service, plus the usage counter models.

Key components:
- messages: Pydantic models for every duplex channel message (send_audio,
  session_opened, server_message, session_closed, error) and the parsers that
  turn raw JSON text into typed messages.
- session: The session lifecycle states and the immutable AudioFrame.
- usage: Monthly usage counters and pricing tier limits.

Usage examples:
```python
from omnibot.models import AudioFrame, SendAudioMessage, SendAudioPayload, parse_relay_message

frame = AudioFrame(data=pcm_bytes)
message = SendAudioMessage(payload=SendAudioPayload(media=frame.to_blob()))
await websocket.send(message.model_dump_json())

incoming = parse_relay_message(await websocket.recv())
```
"""

from omnibot.models.messages import (
    ErrorMessage,
    GenerateRequest,
    MediaBlob,
    RelayMessage,
    SendAudioMessage,
    SendAudioPayload,
    ServerMessage,
    SessionClosedMessage,
    SessionOpenedMessage,
    parse_client_message,
    parse_relay_message,
)
from omnibot.models.session import AudioFrame, SessionState
from omnibot.models.usage import PRICING_TIERS, PricingTier, UsageData, UsageKind
