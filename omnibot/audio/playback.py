"""
Decode/playback pipeline: server_message audio in, scheduled output buffers out.

Inbound chunks are decoded from base64 PCM16 to float buffers and placed on the
output device back to back. The PlaybackClock only moves forward, so chunks
never overlap and never start in the past, whatever the network jitter.
Late chunks add latency; nothing is compressed to catch up.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Set

import numpy as np

from omnibot.audio.pcm import duration_of, pcm16_to_float
from omnibot.config.constants import AUDIO_CHANNELS, LOGGER_NAME, OUTPUT_SAMPLE_RATE
from omnibot.exceptions import MessageError
from omnibot.models.messages import ServerMessage, decode_base64

logger = logging.getLogger(LOGGER_NAME)


class OutputDevice(Protocol):
    """Scheduled-buffer audio output provided by the host audio subsystem."""

    @property
    def current_time(self) -> float:
        """Device clock in seconds."""
        ...

    def schedule(
        self,
        buffer: np.ndarray,
        sample_rate: int,
        start_time: float,
        on_ended: Callable[[], None],
    ) -> Any:
        """Play `buffer` (channels x frames) at `start_time`; call `on_ended` once it finishes."""
        ...

    def stop(self, source: Any) -> None:
        """Stop a scheduled source before it finishes."""
        ...


class PlaybackClock:
    """Earliest time at which the next output chunk may start."""

    def __init__(self, next_start_time: float = 0.0):
        self.next_start_time = next_start_time

    def reserve(self, now: float, duration: float) -> float:
        """
        Reserve a slot of `duration` seconds.

        Returns:
            float: The start time of the slot, never earlier than `now`
        """
        start_time = max(self.next_start_time, now)
        self.next_start_time = start_time + duration
        return start_time


@dataclass(eq=False)
class ScheduledChunk:
    start_time: float
    duration: float
    frame_count: int
    source: Any = field(default=None, repr=False)


class PlaybackPipeline:
    """
    Decodes inbound audio and schedules it gaplessly on an output device.

    Attributes:
        clock: The PlaybackClock shared by every chunk of this call
        active_sources: Chunks scheduled but not yet finished
    """

    def __init__(
        self,
        device: OutputDevice,
        sample_rate: int = OUTPUT_SAMPLE_RATE,
        channels: int = AUDIO_CHANNELS,
    ):
        self.device = device
        self.sample_rate = sample_rate
        self.channels = channels
        self.clock = PlaybackClock()
        self.active_sources: Set[ScheduledChunk] = set()

    def handle_message(self, message: ServerMessage) -> Optional[ScheduledChunk]:
        """
        Schedule the audio embedded in a server_message, if any.

        Malformed audio is dropped with a logged diagnostic.
        """
        audio = message.inline_audio()
        if not audio:
            return None
        try:
            return self.play_base64(audio)
        except MessageError as e:
            logger.warning(f"Dropping undecodable audio chunk: {e}")
            return None

    def play_base64(self, data: str) -> ScheduledChunk:
        return self.schedule_buffer(pcm16_to_float(decode_base64(data), self.channels))

    def schedule_buffer(self, buffer: np.ndarray) -> ScheduledChunk:
        """Place a decoded (channels x frames) buffer right after the previous one."""
        frame_count = buffer.shape[-1]
        duration = duration_of(frame_count, self.sample_rate)
        start_time = self.clock.reserve(self.device.current_time, duration)
        chunk = ScheduledChunk(start_time=start_time, duration=duration, frame_count=frame_count)
        self.active_sources.add(chunk)
        chunk.source = self.device.schedule(
            buffer, self.sample_rate, start_time, lambda: self._finished(chunk)
        )
        return chunk

    def _finished(self, chunk: ScheduledChunk) -> None:
        self.active_sources.discard(chunk)

    def stop_all(self) -> None:
        """Stop every scheduled chunk. Used for explicit teardown only."""
        for chunk in list(self.active_sources):
            self.device.stop(chunk.source)
        self.active_sources.clear()
