"""
Services used by the relay server and the call client.

Key components:
- relay_client: RelayClient, the client half of the live audio WebSocket.
- generation: GenerationService, which forwards one-shot generateContent and
  generateVideos calls to the Gemini API.
- usage: UsageCounterService and its stores, counting monthly conversations and
  creative generations against the pricing tiers.

Usage examples:
```python
from omnibot.services.relay_client import RelayClient

client = RelayClient("ws://localhost:3001/ws/gemini-live")
await client.connect()
async for message in client.messages():
    print(message.type)
await client.close()
```
"""
