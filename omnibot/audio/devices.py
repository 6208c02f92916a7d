"""
PyAudio-backed host audio devices for the call client.

PyAudioMicrophone captures float32 blocks in PyAudio's callback thread and hands
them to the event loop without blocking. PyAudioSpeaker implements scheduled
buffer output: a playback thread waits for each chunk's start time, writes it
to the output stream and reports completion back on the event loop.

Requires the `audio` extra (PyAudio and the PortAudio library).
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from queue import Queue
from typing import Callable, Optional

import numpy as np
import pyaudio

from omnibot.config.constants import (
    AUDIO_CHANNELS,
    CAPTURE_BLOCK_SIZE,
    INPUT_SAMPLE_RATE,
    LOGGER_NAME,
    OUTPUT_SAMPLE_RATE,
)
from omnibot.exceptions import CallSetupError

logger = logging.getLogger(LOGGER_NAME)


class PyAudioMicrophone:
    """Microphone capture delivering float32 blocks onto an asyncio queue."""

    def __init__(
        self,
        sample_rate: int = INPUT_SAMPLE_RATE,
        block_size: int = CAPTURE_BLOCK_SIZE,
        device_index: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device_index = device_index
        self.p = None
        self.stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None

    def start(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
        """
        Open the input stream.

        Raises:
            CallSetupError: If the microphone cannot be opened
        """
        self._loop = loop
        self._queue = queue
        self.p = pyaudio.PyAudio()
        try:
            self.stream = self.p.open(
                format=pyaudio.paFloat32,
                channels=AUDIO_CHANNELS,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.block_size,
                stream_callback=self._audio_input_callback,
            )
        except OSError as e:
            self.p.terminate()
            self.p = None
            raise CallSetupError("Microphone connection failed.") from e
        self.stream.start_stream()
        logger.info(f"Microphone initialized: {self.sample_rate}Hz, {AUDIO_CHANNELS} channel(s)")

    def _audio_input_callback(self, in_data, frame_count, time_info, status):
        """Runs on PyAudio's thread; must return quickly."""
        block = np.frombuffer(in_data, dtype=np.float32).copy()
        self._loop.call_soon_threadsafe(self._queue.put_nowait, block)
        return (None, pyaudio.paContinue)

    def stop(self) -> None:
        """Stop capture and signal the end of the stream to the consumer."""
        if self.stream:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
        if self.p:
            self.p.terminate()
            self.p = None
        if self._loop and self._queue and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        logger.info("Microphone stopped")


@dataclass(eq=False)
class _ScheduledSource:
    buffer: np.ndarray
    start_time: float
    on_ended: Callable[[], None]
    stopped: bool = False


class PyAudioSpeaker:
    """Scheduled-buffer output on a PyAudio output stream."""

    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE, channels: int = AUDIO_CHANNELS):
        self.sample_rate = sample_rate
        self.channels = channels
        self.p = None
        self.stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: "Queue[Optional[_ScheduledSource]]" = Queue()
        self._thread: Optional[threading.Thread] = None
        self._epoch = time.monotonic()

    @property
    def current_time(self) -> float:
        return time.monotonic() - self._epoch

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self.p = pyaudio.PyAudio()
        try:
            self.stream = self.p.open(
                format=pyaudio.paFloat32,
                channels=self.channels,
                rate=self.sample_rate,
                output=True,
            )
        except OSError as e:
            self.p.terminate()
            self.p = None
            raise CallSetupError("Speaker could not be opened.") from e
        self._epoch = time.monotonic()
        self._thread = threading.Thread(target=self._play_loop, name="omnibot-playback", daemon=True)
        self._thread.start()
        logger.info(f"Speaker initialized: {self.sample_rate}Hz, {self.channels} channel(s)")

    def schedule(self, buffer, sample_rate, start_time, on_ended):
        if sample_rate != self.sample_rate:
            raise ValueError(f"Speaker runs at {self.sample_rate}Hz, got a {sample_rate}Hz buffer")
        source = _ScheduledSource(buffer=buffer, start_time=start_time, on_ended=on_ended)
        self._pending.put(source)
        return source

    def stop(self, source: _ScheduledSource) -> None:
        source.stopped = True

    def _play_loop(self) -> None:
        while True:
            source = self._pending.get()
            if source is None:
                break
            if not source.stopped:
                delay = source.start_time - self.current_time
                if delay > 0:
                    time.sleep(delay)
                # channels x frames -> interleaved frames
                samples = np.ascontiguousarray(source.buffer.T, dtype=np.float32)
                self.stream.write(samples.tobytes())
            if self._loop and not self._loop.is_closed():
                self._loop.call_soon_threadsafe(source.on_ended)

    def close(self) -> None:
        """
        Let every scheduled chunk finish, then release the stream.

        Blocks until the playback thread has drained its queue.
        """
        if self._thread:
            self._pending.put(None)
            self._thread.join()
            self._thread = None
        if self.stream:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
        if self.p:
            self.p.terminate()
            self.p = None
        logger.info("Speaker closed")
