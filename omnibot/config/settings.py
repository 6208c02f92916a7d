"""Environment-driven settings for the relay server and the call client."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import dotenv

from omnibot.config.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_LIVE_MODEL,
    DEFAULT_OUTBOUND_QUEUE_SIZE,
    DEFAULT_SYSTEM_INSTRUCTION,
    DEFAULT_VOICE,
)

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    """Centralized configuration, read once from the environment.

    Timeouts are in seconds. An idle timeout of 0 disables it.
    """

    gemini_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GEMINI_API_KEY"))
    live_model: str = field(default_factory=lambda: os.getenv("GEMINI_LIVE_MODEL", DEFAULT_LIVE_MODEL))
    voice_name: str = field(default_factory=lambda: os.getenv("GEMINI_VOICE", DEFAULT_VOICE))
    system_instruction: str = field(
        default_factory=lambda: os.getenv("SYSTEM_INSTRUCTION", DEFAULT_SYSTEM_INSTRUCTION)
    )
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3001")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    connect_timeout: float = field(
        default_factory=lambda: _env_float("RELAY_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT)
    )
    idle_timeout: float = field(
        default_factory=lambda: _env_float("RELAY_IDLE_TIMEOUT", DEFAULT_IDLE_TIMEOUT)
    )
    outbound_queue_size: int = field(
        default_factory=lambda: int(os.getenv("RELAY_OUTBOUND_QUEUE_SIZE", str(DEFAULT_OUTBOUND_QUEUE_SIZE)))
    )
    usage_store_path: Path = field(
        default_factory=lambda: Path(os.getenv("USAGE_STORE_PATH", "data/usage.json"))
    )
    cors_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS", "*"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""
    return Settings()
