"""
Upstream voice streaming service contract and its Gemini Live implementation.

The relay only depends on the small contract below: a connector whose
connect(model, callbacks, config) returns a session handle exposing start(),
send_realtime_input(blob) and an idempotent close(). After start(), server events
are delivered through the callbacks in the order the upstream service produced them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from omnibot.config.constants import LOGGER_NAME
from omnibot.exceptions import UpstreamError
from omnibot.models.messages import MediaBlob

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class UpstreamCallbacks:
    """Event handlers a connector drives for one upstream session."""

    on_open: Callable[[], Awaitable[None]]
    on_message: Callable[[Dict[str, Any]], Awaitable[None]]
    on_close: Callable[[], Awaitable[None]]
    on_error: Callable[[Exception], Awaitable[None]]


class UpstreamSession(Protocol):
    def start(self) -> None: ...

    async def send_realtime_input(self, blob: MediaBlob) -> None: ...

    async def close(self) -> None: ...


class UpstreamConnector(Protocol):
    async def connect(
        self, model: str, callbacks: UpstreamCallbacks, config: Dict[str, Any]
    ) -> UpstreamSession: ...


def build_live_config(voice_name: str, system_instruction: str) -> Dict[str, Any]:
    """Session config for an audio-only voice agent."""
    return {
        "response_modalities": ["AUDIO"],
        "speech_config": {
            "voice_config": {"prebuilt_voice_config": {"voice_name": voice_name}}
        },
        "system_instruction": {"parts": [{"text": system_instruction}]},
    }


def serialize_server_message(message: types.LiveServerMessage) -> Dict[str, Any]:
    """Render an SDK message as the camelCase JSON the service sent (bytes as base64)."""
    return message.model_dump(mode="json", by_alias=True, exclude_none=True)


class GeminiLiveSession:
    """
    One open Gemini Live session.

    Nothing is delivered until start() is called. start() spawns the receive
    task that fires on_open and then pumps server messages into the callbacks,
    so a caller that stores the handle before calling start() never sees an
    event without a handle to act on.
    """

    def __init__(self, ctxmgr, session, callbacks: UpstreamCallbacks):
        self._ctxmgr = ctxmgr
        self._session = session
        self._callbacks = callbacks
        self._closed = False
        self._receive_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._receive_task = asyncio.create_task(self._receive_loop(), name="gemini_live_recv")

    async def _receive_loop(self) -> None:
        """
        Forward server messages until the stream ends.

        session.receive() yields the messages of a single model turn, so it is
        called in an outer loop. A turn that yields nothing means the stream ended.
        """
        try:
            await self._callbacks.on_open()
            while not self._closed:
                received = 0
                async for response in self._session.receive():
                    received += 1
                    await self._callbacks.on_message(serialize_server_message(response))
                if received == 0:
                    break
        except asyncio.CancelledError:
            raise
        except ConnectionClosedOK:
            logger.info("Gemini Live connection closed normally")
        except Exception as e:
            if not self._closed:
                logger.error(f"Gemini Live receive loop failed: {e}")
                await self._callbacks.on_error(e)
            return

        if not self._closed:
            logger.info("Gemini Live session ended by the service")
            await self._callbacks.on_close()

    async def send_realtime_input(self, blob: MediaBlob) -> None:
        if self._closed:
            raise UpstreamError("Upstream session is closed")
        await self._session.send_realtime_input(
            audio=types.Blob(data=blob.to_bytes(), mime_type=blob.mimeType)
        )

    async def close(self) -> None:
        """Close the session. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        task = self._receive_task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Gemini Live receive task cancelled")

        try:
            await self._ctxmgr.__aexit__(None, None, None)
        except Exception as e:
            logger.warning(f"Error closing Gemini Live session: {e}")
        logger.info("Gemini Live session closed")


class GeminiLiveConnector:
    """Opens Gemini Live sessions with the google-genai SDK."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[genai.Client] = None):
        self.api_key = api_key
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                logger.error("GEMINI_API_KEY environment variable not set")
                raise UpstreamError("GEMINI_API_KEY environment variable not set")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def connect(
        self, model: str, callbacks: UpstreamCallbacks, config: Dict[str, Any]
    ) -> GeminiLiveSession:
        """
        Open a live session. Call start() on the returned handle to receive events.

        Raises:
            UpstreamError: If the session cannot be established
        """
        ctxmgr = self.client.aio.live.connect(
            model=model, config=types.LiveConnectConfig(**config)
        )
        logger.info(f"Connecting to Gemini Live with model: {model}")
        try:
            session = await ctxmgr.__aenter__()
        except Exception as e:
            raise UpstreamError(f"Failed to connect to Gemini Live: {e}") from e

        return GeminiLiveSession(ctxmgr, session, callbacks)
