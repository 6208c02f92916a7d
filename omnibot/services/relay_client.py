"""
WebSocket client for the live audio relay.

This module provides the client half of the duplex channel: it connects to the
relay, sends captured audio frames and yields typed relay messages. It is used
by the call controller and satisfies the channel interface the capture
pipeline expects (is_open / send).
"""

import asyncio
import logging
from typing import AsyncIterator

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException
from websockets.protocol import State

from omnibot.config.constants import LOGGER_NAME
from omnibot.exceptions import CallSetupError, MessageError
from omnibot.models.messages import RelayMessage, parse_relay_message

logger = logging.getLogger(LOGGER_NAME)

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
CONNECTION_TIMEOUT = 10  # seconds


class RelayClient:
    """
    Client for the relay's live audio WebSocket.

    Messages that cannot be parsed are logged and skipped.
    """

    def __init__(self, url: str):
        """
        Initialize the relay client.

        Args:
            url: The WebSocket URL of the relay, e.g. ws://localhost:3001/ws/gemini-live
        """
        self.url = url
        self.websocket = None

    @property
    def is_open(self) -> bool:
        return self.websocket is not None and self.websocket.state is State.OPEN

    async def connect(self) -> None:
        """
        Open the duplex channel.

        Raises:
            CallSetupError: If the relay cannot be reached
        """
        try:
            self.websocket = await asyncio.wait_for(
                websockets.connect(self.url, max_size=WS_MAX_SIZE, compression=None),
                timeout=CONNECTION_TIMEOUT,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.error(f"Failed to connect to relay at {self.url}: {e}")
            raise CallSetupError(
                "Connection to audio proxy failed. Ensure the relay is running."
            ) from e
        logger.info(f"Connected to relay at {self.url}")

    async def send(self, text: str) -> None:
        """Send a message; if the channel closed in the meantime the message is dropped."""
        try:
            await self.websocket.send(text)
        except ConnectionClosed as e:
            logger.debug(f"Dropping outbound message, relay connection closed: {e}")

    async def messages(self) -> AsyncIterator[RelayMessage]:
        """Yield relay messages until the connection closes."""
        if self.websocket is None:
            return
        try:
            async for raw in self.websocket:
                try:
                    yield parse_relay_message(raw)
                except MessageError as e:
                    logger.warning(f"Dropping malformed relay message: {e}")
        except ConnectionClosedError as e:
            logger.warning(f"Relay connection closed unexpectedly: {e}")

    async def close(self) -> None:
        if self.websocket is not None:
            await self.websocket.close()
            logger.info("Relay connection closed")
