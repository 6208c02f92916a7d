"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol names, audio formats and default model
settings so the relay and the client pipelines agree on them.
"""

# Logger name used throughout the application
LOGGER_NAME = "omnibot"

# Default Gemini Live model and voice
DEFAULT_LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-12-2025"
DEFAULT_VOICE = "Zephyr"
DEFAULT_SYSTEM_INSTRUCTION = (
    "You are the OmniBot Voice Agent. Handle inbound calls with business precision."
)

# WebSocket path of the live audio relay
LIVE_WS_PATH = "/ws/gemini-live"

# Audio format constants
INPUT_SAMPLE_RATE = 16000  # microphone -> upstream
OUTPUT_SAMPLE_RATE = 24000  # upstream -> speaker
AUDIO_CHANNELS = 1
CAPTURE_BLOCK_SIZE = 4096  # samples per transmitted frame
PCM_SCALE = 32768.0
PCM_INPUT_MIME = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"

# Client -> relay message types
MESSAGE_TYPE_SEND_AUDIO = "send_audio"

# One-shot generation operations
OPERATION_GENERATE_CONTENT = "generateContent"
OPERATION_GENERATE_VIDEOS = "generateVideos"

# Relay defaults
DEFAULT_CONNECT_TIMEOUT = 30.0  # seconds
DEFAULT_IDLE_TIMEOUT = 300.0  # seconds, 0 disables
DEFAULT_OUTBOUND_QUEUE_SIZE = 64
