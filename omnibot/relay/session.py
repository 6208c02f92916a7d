"""
Relay session: the bridge between one client WebSocket and one upstream voice session.

Each client connection gets its own RelaySession, which runs three tasks:

- reader: receives client messages and forwards send_audio frames upstream
- writer: drains the outbound queue to the client, in order
- connector: opens the upstream session, whose callbacks feed the outbound queue

Lifecycle:
    connecting --upstream ready--> open --upstream done / idle--> closing --> closed
    any --upstream failure--> errored --> closed
    any --client disconnect--> closed

The upstream handle is closed exactly once, on whichever terminal transition
comes first. Sessions share no state with each other.
"""

import asyncio
import logging
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from omnibot.config.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_OUTBOUND_QUEUE_SIZE,
    LOGGER_NAME,
)
from omnibot.exceptions import MessageError
from omnibot.models.messages import (
    TERMINAL_MESSAGE_TYPES,
    ErrorMessage,
    MediaBlob,
    SendAudioMessage,
    ServerMessage,
    SessionClosedMessage,
    SessionOpenedMessage,
    parse_client_message,
)
from omnibot.models.session import SessionState
from omnibot.models.usage import UsageKind
from omnibot.relay.upstream import UpstreamCallbacks, UpstreamConnector, UpstreamSession
from omnibot.services.usage import UsageCounterService

logger = logging.getLogger(LOGGER_NAME)


class OutboundQueue:
    """
    Relay-to-client message queue with a drop-oldest policy.

    Only server_message entries count towards `maxsize`. When the limit is
    reached the oldest queued server_message is discarded. Control messages
    (session_opened, session_closed, error) are never dropped.
    """

    def __init__(self, maxsize: int = DEFAULT_OUTBOUND_QUEUE_SIZE):
        self.maxsize = maxsize
        self.dropped = 0
        self._items: Deque[BaseModel] = deque()
        self._buffered = 0
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._items)

    def put(self, message: BaseModel) -> None:
        if isinstance(message, ServerMessage):
            if self.maxsize > 0 and self._buffered >= self.maxsize:
                self._drop_oldest()
            self._buffered += 1
        self._items.append(message)
        self._ready.set()

    def _drop_oldest(self) -> None:
        for index, item in enumerate(self._items):
            if isinstance(item, ServerMessage):
                del self._items[index]
                self._buffered -= 1
                self.dropped += 1
                logger.warning(f"Client is not keeping up, dropped oldest server message ({self.dropped} total)")
                return

    async def get(self) -> BaseModel:
        while not self._items:
            self._ready.clear()
            await self._ready.wait()
        message = self._items.popleft()
        if isinstance(message, ServerMessage):
            self._buffered -= 1
        return message


class RelaySession:
    """
    Protocol bridge for one client connection.

    Attributes:
        id: Identifier used in log lines
        state: Current lifecycle state
        error: Message of the failure that ended the session, if any
        forwarded_frames: Audio frames forwarded upstream
        dropped_frames: Audio frames dropped (session not open, or upstream rejected them)
        relayed_messages: Upstream messages queued for the client
    """

    def __init__(
        self,
        websocket: WebSocket,
        connector: UpstreamConnector,
        model: str,
        config: Dict[str, Any],
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        outbound_queue_size: int = DEFAULT_OUTBOUND_QUEUE_SIZE,
        usage: Optional[UsageCounterService] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.websocket = websocket
        self.connector = connector
        self.model = model
        self.config = config
        self.connect_timeout = connect_timeout
        self.idle_timeout = idle_timeout
        self.usage = usage

        self.state = SessionState.CONNECTING
        self.error: Optional[str] = None
        self.forwarded_frames = 0
        self.dropped_frames = 0
        self.relayed_messages = 0

        self._upstream: Optional[UpstreamSession] = None
        self._outbound = OutboundQueue(outbound_queue_size)
        self._finished = asyncio.Event()
        self._tasks: List[asyncio.Task] = []
        self._client_closed = False

    @property
    def outbound(self) -> OutboundQueue:
        return self._outbound

    async def run(self) -> None:
        """Relay until either side ends the session, then release everything."""
        logger.info(f"Relay session {self.id} started")
        self._tasks = [
            self._spawn(self._write_client(), "writer"),
            self._spawn(self._read_client(), "reader"),
            self._spawn(self._connect_upstream(), "connector"),
        ]
        try:
            await self._finished.wait()
        finally:
            await self.close()

    def _spawn(self, coro, role: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"relay_{role}:{self.id}")
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Relay session {self.id}: {task.get_name()} failed: {exc}", exc_info=exc)
            self._finished.set()

    # -- Upstream side --

    async def _connect_upstream(self) -> None:
        callbacks = UpstreamCallbacks(
            on_open=self._on_upstream_open,
            on_message=self._on_upstream_message,
            on_close=self._on_upstream_close,
            on_error=self._on_upstream_error,
        )
        try:
            upstream = await asyncio.wait_for(
                self.connector.connect(self.model, callbacks, self.config),
                timeout=self.connect_timeout or None,
            )
        except asyncio.TimeoutError:
            logger.error(f"Relay session {self.id}: upstream handshake timed out")
            self._fail(f"Timed out connecting to the voice service after {self.connect_timeout:g}s")
            return
        except Exception as e:
            logger.error(f"Relay session {self.id}: upstream connection failed: {e}")
            self._fail(str(e) or type(e).__name__)
            return

        if self.state.is_terminal:
            await upstream.close()
            return
        self._upstream = upstream
        upstream.start()

    async def _on_upstream_open(self) -> None:
        if self.state is not SessionState.CONNECTING:
            return
        self.state = SessionState.OPEN
        self._outbound.put(SessionOpenedMessage())
        logger.info(f"Relay session {self.id} open")
        if self.usage is not None:
            self.usage.increment(UsageKind.CONVERSATION)

    async def _on_upstream_message(self, data: Dict[str, Any]) -> None:
        if self.state is not SessionState.OPEN:
            return
        self._outbound.put(ServerMessage(data=data))
        self.relayed_messages += 1

    async def _on_upstream_close(self) -> None:
        self._close_from_server("upstream session ended")

    async def _on_upstream_error(self, exc: Exception) -> None:
        self._fail(str(exc) or type(exc).__name__)

    def _close_from_server(self, reason: str) -> None:
        """Tell the client the session is over; the writer then closes the connection."""
        if self.state.is_terminal:
            return
        logger.info(f"Relay session {self.id} closing: {reason}")
        self.state = SessionState.CLOSING
        self._outbound.put(SessionClosedMessage())

    def _fail(self, message: str) -> None:
        if self.state.is_terminal:
            return
        self.state = SessionState.ERRORED
        self.error = message
        self._outbound.put(ErrorMessage(error=message))

    # -- Client side --

    async def _receive_client_text(self) -> str:
        if self.idle_timeout:
            return await asyncio.wait_for(self.websocket.receive_text(), timeout=self.idle_timeout)
        return await self.websocket.receive_text()

    async def _read_client(self) -> None:
        try:
            while True:
                try:
                    raw = await self._receive_client_text()
                except KeyError:
                    logger.warning(f"Relay session {self.id}: dropping non-text client frame")
                    continue
                await self._handle_client_text(raw)
        except asyncio.TimeoutError:
            self._close_from_server(f"idle for {self.idle_timeout:g}s")
        except WebSocketDisconnect as e:
            logger.info(f"Relay session {self.id}: client disconnected (code {e.code})")
            self._client_closed = True
            if not self.state.is_terminal:
                self.state = SessionState.CLOSING
            self._finished.set()

    async def _handle_client_text(self, raw: str) -> None:
        try:
            message = parse_client_message(raw)
        except MessageError as e:
            logger.warning(f"Relay session {self.id}: dropping malformed client message: {e}")
            return

        if isinstance(message, SendAudioMessage):
            await self._forward_audio(message.payload.media)

    async def _forward_audio(self, blob: MediaBlob) -> None:
        """Pass a client audio frame upstream untouched, or drop it if the session is not open."""
        if self.state is not SessionState.OPEN or self._upstream is None:
            self.dropped_frames += 1
            logger.debug(f"Relay session {self.id}: dropping audio frame in state {self.state.value}")
            return
        try:
            await self._upstream.send_realtime_input(blob)
        except Exception as e:
            self.dropped_frames += 1
            logger.error(f"Relay session {self.id}: error forwarding audio upstream: {e}")
            return
        self.forwarded_frames += 1

    async def _write_client(self) -> None:
        try:
            while True:
                message = await self._outbound.get()
                await self.websocket.send_text(message.model_dump_json())
                if isinstance(message, TERMINAL_MESSAGE_TYPES):
                    await self._close_client()
                    break
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.info(f"Relay session {self.id}: client connection lost while sending: {e}")
            self._client_closed = True
        finally:
            self._finished.set()

    async def _close_client(self) -> None:
        if self._client_closed:
            return
        self._client_closed = True
        try:
            await self.websocket.close()
        except RuntimeError as e:
            logger.debug(f"Relay session {self.id}: client connection already closed: {e}")

    # -- Teardown --

    async def close(self) -> None:
        """
        Release the upstream session and the client connection.

        Idempotent: later calls do nothing and send nothing to the client.
        """
        if self.state is SessionState.CLOSED:
            return
        previous = self.state
        self.state = SessionState.CLOSED

        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        upstream, self._upstream = self._upstream, None
        if upstream is not None:
            try:
                await upstream.close()
            except Exception as e:
                logger.warning(f"Relay session {self.id}: error closing upstream session: {e}")

        await self._close_client()
        self._finished.set()
        logger.info(
            f"Relay session {self.id} closed (was {previous.value}): "
            f"forwarded={self.forwarded_frames} dropped={self.dropped_frames} "
            f"relayed={self.relayed_messages} outbound_dropped={self._outbound.dropped}"
        )
