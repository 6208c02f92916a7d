"""
OmniBot Voice Relay - Realtime audio bridge between call clients and Gemini Live

This package provides a complete live voice call path: a call client captures
microphone audio, streams it as 16 kHz PCM over a WebSocket to the relay, and
the relay bridges it to a Gemini Live session. Model audio comes back over the
same channel and is played gaplessly at 24 kHz.

Architecture Overview:
- FastAPI server exposing the live audio WebSocket and a one-shot generation proxy
- google-genai Live API integration, one upstream session per client connection
- Independent capture and playback pipelines on the client side
- Monthly usage counters checked against the pricing tiers

Key Components:
- audio: PCM conversion, capture framing and gapless playback scheduling
- config: Application-wide configuration, constants, and logging setup
- models: Wire message schemas, session state and usage data
- relay: Per-connection relay sessions and the Gemini Live connector
- services: Relay client, generation proxy and usage counters
- websocket_manager: Accepts relay connections and tracks live sessions
- call: Call controller and the `omnibot-call` command line client

Getting Started:
1. Set up environment variables:
   - GEMINI_API_KEY: Your Gemini API key
   - PORT: Port to run the relay on (default 3001)
   - HOST: Host to bind the relay to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the relay:
   ```bash
   python run.py
   ```

3. Start a call (requires the `audio` extra):
   ```bash
   omnibot-call --url ws://localhost:3001/ws/gemini-live
   ```
"""
