"""
Capture/encode pipeline: microphone samples in, send_audio messages out.

The host audio device delivers float blocks of arbitrary size onto an asyncio
queue. The pipeline re-cuts them into fixed-size blocks, quantizes each block
to 16-bit PCM and sends it over the duplex channel. Frames produced while the
channel is not open are dropped; nothing is buffered for later.
"""

import asyncio
import logging
from typing import List, Optional, Protocol

import numpy as np

from omnibot.audio.pcm import float_to_pcm16
from omnibot.config.constants import (
    AUDIO_CHANNELS,
    CAPTURE_BLOCK_SIZE,
    INPUT_SAMPLE_RATE,
    LOGGER_NAME,
)
from omnibot.models.messages import SendAudioMessage, SendAudioPayload
from omnibot.models.session import AudioFrame

logger = logging.getLogger(LOGGER_NAME)


class AudioChannel(Protocol):
    """The outbound half of the duplex channel as seen by the capture pipeline."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, text: str) -> None: ...


class BlockFramer:
    """Accumulates float samples and yields them in fixed-size blocks."""

    def __init__(self, block_size: int = CAPTURE_BLOCK_SIZE):
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        self.block_size = block_size
        self._pending = np.empty(0, dtype=np.float32)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def push(self, samples: np.ndarray) -> List[np.ndarray]:
        """Add samples and return every complete block now available."""
        data = np.asarray(samples, dtype=np.float32).ravel()
        if len(self._pending):
            data = np.concatenate((self._pending, data))
        whole = len(data) - len(data) % self.block_size
        blocks = [data[i:i + self.block_size] for i in range(0, whole, self.block_size)]
        self._pending = data[whole:].copy()
        return blocks

    def reset(self) -> None:
        self._pending = np.empty(0, dtype=np.float32)


class CapturePipeline:
    """
    Turns captured float audio into send_audio messages.

    Attributes:
        frames_sent: Number of frames handed to the channel
        frames_dropped: Number of frames discarded because the channel was not open
    """

    def __init__(
        self,
        channel: AudioChannel,
        block_size: int = CAPTURE_BLOCK_SIZE,
        sample_rate: int = INPUT_SAMPLE_RATE,
    ):
        self.channel = channel
        self.sample_rate = sample_rate
        self.mime_type = f"audio/pcm;rate={sample_rate}"
        self.framer = BlockFramer(block_size)
        self.frames_sent = 0
        self.frames_dropped = 0

    def encode_block(self, block: np.ndarray) -> AudioFrame:
        """Quantize one block of float samples into an AudioFrame."""
        return AudioFrame(
            data=float_to_pcm16(block),
            sample_rate=self.sample_rate,
            channels=AUDIO_CHANNELS,
            mime_type=self.mime_type,
        )

    async def send_frame(self, frame: AudioFrame) -> bool:
        """
        Send a frame if the channel is open.

        Returns:
            bool: True if the frame was sent, False if it was dropped
        """
        if not self.channel.is_open:
            self.frames_dropped += 1
            return False
        message = SendAudioMessage(payload=SendAudioPayload(media=frame.to_blob()))
        await self.channel.send(message.model_dump_json())
        self.frames_sent += 1
        return True

    async def process(self, samples: np.ndarray) -> int:
        """
        Frame, encode and send captured samples.

        Returns:
            int: Number of frames sent
        """
        sent = 0
        for block in self.framer.push(samples):
            if await self.send_frame(self.encode_block(block)):
                sent += 1
        return sent

    async def run(self, blocks: "asyncio.Queue[Optional[np.ndarray]]") -> None:
        """Consume captured blocks until a None sentinel arrives."""
        logger.info(f"Capture pipeline started ({self.sample_rate}Hz, {self.framer.block_size} samples per frame)")
        try:
            while True:
                samples = await blocks.get()
                if samples is None:
                    break
                await self.process(samples)
        finally:
            self.framer.reset()
            logger.info(
                f"Capture pipeline stopped: sent={self.frames_sent} dropped={self.frames_dropped}"
            )
