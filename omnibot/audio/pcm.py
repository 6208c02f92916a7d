"""
PCM conversion helpers for the capture and playback pipelines.

Captured audio arrives as float samples in [-1.0, 1.0] and leaves as signed
16-bit little-endian PCM. Received audio goes the opposite way. Quantization
multiplies by 32768 and truncates toward zero; values outside the int16 range
are saturated rather than wrapped.
"""

import numpy as np

from omnibot.config.constants import PCM_SCALE
from omnibot.exceptions import MessageError

PCM_DTYPE = np.dtype("<i2")
INT16_MIN = -32768
INT16_MAX = 32767


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """
    Quantize float samples to 16-bit PCM bytes.

    Args:
        samples: Float samples, nominally in [-1.0, 1.0]

    Returns:
        Little-endian int16 bytes, two per sample
    """
    scaled = np.asarray(samples, dtype=np.float64) * PCM_SCALE
    # Saturate before the cast; NaN would otherwise be undefined
    scaled = np.nan_to_num(scaled, nan=0.0)
    clipped = np.clip(scaled, INT16_MIN, INT16_MAX)
    return clipped.astype(PCM_DTYPE).tobytes()


def pcm16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    """
    Decode 16-bit PCM bytes into per-channel float buffers.

    Args:
        data: Little-endian int16 bytes, interleaved when channels > 1
        channels: Number of interleaved channels

    Returns:
        A float32 array of shape (channels, frame_count)

    Raises:
        MessageError: If the byte length is not a whole number of samples
    """
    if channels < 1:
        raise ValueError("channels must be at least 1")
    if len(data) % 2:
        raise MessageError(f"PCM16 payload has odd byte length {len(data)}")
    samples = np.frombuffer(data, dtype=PCM_DTYPE)
    frame_count = len(samples) // channels
    interleaved = samples[: frame_count * channels].reshape(frame_count, channels)
    return (interleaved.T / PCM_SCALE).astype(np.float32)


def duration_of(frame_count: int, sample_rate: int) -> float:
    return frame_count / float(sample_rate)
