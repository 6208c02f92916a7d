"""
Relay module bridging client WebSockets to Gemini Live voice sessions.

Key components:
- GeminiLiveConnector: Opens Gemini Live sessions with the google-genai SDK and
  drives the upstream callbacks (on_open, on_message, on_close, on_error).
- RelaySession: Per-connection state machine that forwards client audio
  upstream and relays upstream messages back to the client in order.
- OutboundQueue: Bounded relay-to-client queue with a drop-oldest policy for
  server messages.

Usage examples:
```python
from omnibot.relay import GeminiLiveConnector, RelaySession, build_live_config

connector = GeminiLiveConnector(api_key=os.getenv("GEMINI_API_KEY"))

@app.websocket("/ws/gemini-live")
async def live(websocket: WebSocket):
    await websocket.accept()
    session = RelaySession(
        websocket,
        connector,
        model="gemini-2.5-flash-native-audio-preview-12-2025",
        config=build_live_config("Zephyr", "You are a helpful agent."),
    )
    await session.run()
```
"""

from omnibot.relay.session import OutboundQueue, RelaySession
from omnibot.relay.upstream import (
    GeminiLiveConnector,
    GeminiLiveSession,
    UpstreamCallbacks,
    build_live_config,
)

__all__ = [
    "GeminiLiveConnector",
    "GeminiLiveSession",
    "OutboundQueue",
    "RelaySession",
    "UpstreamCallbacks",
    "build_live_config",
]
