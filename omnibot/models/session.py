"""
Session and audio frame models shared by the relay and the call client.

A Session represents one active voice call. Its server half is owned by a
RelaySession and its client half by the CallController; both track the same
lifecycle states. AudioFrame is the immutable unit of audio in flight.
"""

import base64
from dataclasses import dataclass
from enum import Enum

from omnibot.config.constants import AUDIO_CHANNELS, INPUT_SAMPLE_RATE
from omnibot.models.messages import MediaBlob


class SessionState(str, Enum):
    """Lifecycle states of a voice session."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.CLOSING, SessionState.CLOSED, SessionState.ERRORED)


@dataclass(frozen=True)
class AudioFrame:
    """
    An immutable block of 16-bit PCM audio.

    Attributes:
        data: Raw little-endian sample bytes
        sample_rate: Declared sample rate in Hz
        channels: Declared channel count (samples are interleaved)
        mime_type: MIME-like encoding tag, e.g. "audio/pcm;rate=16000"
    """

    data: bytes
    sample_rate: int = INPUT_SAMPLE_RATE
    channels: int = AUDIO_CHANNELS
    mime_type: str = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"

    @property
    def sample_count(self) -> int:
        """Number of samples per channel."""
        return len(self.data) // 2 // self.channels

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.sample_count / self.sample_rate

    def to_blob(self) -> MediaBlob:
        """Encode the frame for transport."""
        return MediaBlob(
            data=base64.b64encode(self.data).decode("ascii"),
            mimeType=self.mime_type,
        )
