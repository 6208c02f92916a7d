"""
Configuration module for the OmniBot voice relay.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Defines application-wide constants used across modules, including
  message types, audio formats, and default model settings.
- logging_config: Provides a consistent logging infrastructure with support for
  console and file-based logging with rotation capabilities.
- settings: Environment-driven settings (API key, model, timeouts, queue sizes),
  loaded from a .env file when present.

Usage examples:
```python
from omnibot.config.constants import LOGGER_NAME, PCM_INPUT_MIME
from omnibot.config.logging_config import configure_logging
from omnibot.config.settings import get_settings

logger = configure_logging()
settings = get_settings()
logger.info(f"Relaying to model {settings.live_model}")
```
"""
