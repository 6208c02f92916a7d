"""
Client-side audio pipelines for live calls.

Key components:
- pcm: float <-> 16-bit PCM conversion (saturating quantization)
- capture: CapturePipeline, which frames microphone audio into send_audio messages
- playback: PlaybackPipeline and PlaybackClock, which schedule inbound audio gaplessly
- devices: PyAudio microphone and speaker (import directly; needs the `audio` extra)
"""

from omnibot.audio.capture import BlockFramer, CapturePipeline
from omnibot.audio.playback import PlaybackClock, PlaybackPipeline, ScheduledChunk
