"""
WebSocket connection manager for the live audio relay.

This module accepts client connections on the relay endpoint and gives each one
its own RelaySession. The manager keeps a registry of live sessions for health
reporting only; sessions never share state with each other.
"""

import logging
from typing import Dict, Optional

from fastapi import WebSocket

from omnibot.config.constants import LOGGER_NAME
from omnibot.config.settings import Settings
from omnibot.relay.session import RelaySession
from omnibot.relay.upstream import UpstreamConnector, build_live_config
from omnibot.services.usage import UsageCounterService

logger = logging.getLogger(LOGGER_NAME)


class WebSocketManager:
    """Creates and tracks one RelaySession per client WebSocket connection."""

    def __init__(
        self,
        connector: UpstreamConnector,
        settings: Settings,
        usage: Optional[UsageCounterService] = None,
    ):
        self.connector = connector
        self.settings = settings
        self.usage = usage
        self.sessions: Dict[str, RelaySession] = {}

    @property
    def active_sessions(self) -> int:
        return len(self.sessions)

    def create_session(self, websocket: WebSocket) -> RelaySession:
        return RelaySession(
            websocket,
            self.connector,
            model=self.settings.live_model,
            config=build_live_config(self.settings.voice_name, self.settings.system_instruction),
            connect_timeout=self.settings.connect_timeout,
            idle_timeout=self.settings.idle_timeout,
            outbound_queue_size=self.settings.outbound_queue_size,
            usage=self.usage,
        )

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a WebSocket connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        This method:
        1. Accepts the WebSocket connection
        2. Runs a RelaySession until either side ends it
        3. Releases the session whatever the outcome
        """
        await websocket.accept()
        session = self.create_session(websocket)
        self.sessions[session.id] = session
        logger.info(f"Client connected to live audio proxy (session {session.id})")

        try:
            await session.run()
        except Exception as e:
            logger.error(f"Error in WebSocket connection: {e}", exc_info=True)
        finally:
            self.sessions.pop(session.id, None)
            await session.close()
            logger.info(f"Client disconnected from live audio proxy (session {session.id})")

    async def close_all(self) -> None:
        """Close every live session, e.g. on server shutdown."""
        for session in list(self.sessions.values()):
            await session.close()
        self.sessions.clear()
