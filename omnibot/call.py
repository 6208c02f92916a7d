"""
Call controller: the client half of a live voice session.

The controller opens the relay channel and the audio devices, then runs the
capture pipeline and the inbound message loop as independent tasks. Capture
talks to the rest of the system only through the block queue filled by the
microphone; playback only through the speaker's scheduled-buffer interface.

Usage:
    omnibot-call [--url ws://localhost:3001/ws/gemini-live]
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Callable, Optional

from omnibot.audio.capture import CapturePipeline
from omnibot.audio.playback import PlaybackPipeline
from omnibot.config.constants import LIVE_WS_PATH, LOGGER_NAME
from omnibot.config.logging_config import configure_logging
from omnibot.exceptions import CallSetupError
from omnibot.models.messages import (
    ErrorMessage,
    RelayMessage,
    ServerMessage,
    SessionClosedMessage,
    SessionOpenedMessage,
)
from omnibot.models.session import SessionState
from omnibot.services.relay_client import RelayClient

logger = logging.getLogger(LOGGER_NAME)


class CallController:
    """
    Runs one voice call from the client side.

    Args:
        channel: The relay channel (RelayClient or compatible)
        microphone: Device with start(loop, queue) / stop(); stop() must enqueue None
        speaker: Output device with start(loop) / close() plus the scheduling interface
        on_status: Receives the single human-readable message shown to the user
    """

    def __init__(
        self,
        channel: RelayClient,
        microphone: Any,
        speaker: Any,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self.channel = channel
        self.microphone = microphone
        self.speaker = speaker
        self.on_status = on_status
        self.state = SessionState.CLOSED
        self.active = False
        self.status_message: Optional[str] = None
        self.capture = CapturePipeline(channel)
        self.playback = PlaybackPipeline(speaker)
        self._blocks: asyncio.Queue = asyncio.Queue()
        self._capture_task: Optional[asyncio.Task] = None
        self._microphone_started = False

    def _notify(self, message: str) -> None:
        self.status_message = message
        logger.info(f"Call status: {message}")
        if self.on_status:
            self.on_status(message)

    async def start(self) -> None:
        """
        Open the channel and the audio devices, then start capturing.

        Raises:
            CallSetupError: If the relay or an audio device cannot be opened
        """
        loop = asyncio.get_running_loop()
        self.state = SessionState.CONNECTING
        try:
            await self.channel.connect()
            self.speaker.start(loop)
            self.microphone.start(loop, self._blocks)
            self._microphone_started = True
        except CallSetupError as e:
            self.state = SessionState.ERRORED
            self._notify(str(e))
            await self.stop()
            raise

        self.active = True
        self._capture_task = asyncio.create_task(self.capture.run(self._blocks), name="call_capture")

    def handle_message(self, message: RelayMessage) -> None:
        """Dispatch one relay message."""
        if isinstance(message, SessionOpenedMessage):
            self.state = SessionState.OPEN
            logger.info("Voice session opened")
        elif isinstance(message, ServerMessage):
            self.playback.handle_message(message)
        elif isinstance(message, SessionClosedMessage):
            # Already scheduled audio keeps playing
            self.state = SessionState.CLOSED
            self.active = False
            logger.info("Voice session closed by the relay")
        elif isinstance(message, ErrorMessage):
            self.state = SessionState.ERRORED
            self.active = False
            self._notify(message.error)

    async def run(self) -> None:
        """Start the call and process relay messages until the channel closes."""
        await self.start()
        try:
            async for message in self.channel.messages():
                self.handle_message(message)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Hang up: stop capture, close the channel and release the devices."""
        self.active = False
        if self._microphone_started:
            self.microphone.stop()
            self._microphone_started = False
        else:
            self._blocks.put_nowait(None)

        if self._capture_task is not None:
            await self._capture_task
            self._capture_task = None

        await self.channel.close()
        # Blocks until scheduled audio has played out
        await asyncio.to_thread(self.speaker.close)
        if self.state not in (SessionState.ERRORED, SessionState.CLOSED):
            self.state = SessionState.CLOSED


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Start a live voice call through the relay")
    parser.add_argument(
        "--url",
        default=f"ws://localhost:3001{LIVE_WS_PATH}",
        help=f"Relay WebSocket URL (default: ws://localhost:3001{LIVE_WS_PATH})",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


async def run_call(url: str) -> int:
    # PyAudio is an optional dependency (the `audio` extra)
    from omnibot.audio.devices import PyAudioMicrophone, PyAudioSpeaker

    controller = CallController(
        RelayClient(url),
        PyAudioMicrophone(),
        PyAudioSpeaker(),
        on_status=lambda message: print(message),
    )
    try:
        await controller.run()
    except CallSetupError as e:
        print(f"Error: {e}")
        return 1
    return 1 if controller.state is SessionState.ERRORED else 0


def main(argv=None) -> int:
    """Entry point for the call client."""
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(run_call(args.url))
    except KeyboardInterrupt:
        logger.info("Call stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
