"""
Run script for starting the OmniBot voice relay with low latency settings.

This script configures and starts the FastAPI relay with WebSocket settings
suited to realtime audio streaming between call clients and Gemini Live.

Usage:
    python run.py [--port PORT] [--host HOST]
"""

import argparse
import os
import sys

import uvicorn

from omnibot.config.logging_config import configure_logging
from omnibot.config.settings import get_settings

# Configure logging
logger = configure_logging()


def parse_args(argv=None):
    """Parse command line arguments."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Start the OmniBot voice relay")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the relay on (default: 3001 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the relay to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for starting the relay."""
    args = parse_args(argv)

    if not get_settings().gemini_api_key:
        logger.error("GEMINI_API_KEY environment variable not set")
        print("Error: GEMINI_API_KEY environment variable is required")
        print("Please set it using: export GEMINI_API_KEY='your-api-key'")
        sys.exit(1)

    logger.info(f"Starting relay on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")

    uvicorn.run(
        "omnibot.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        # HTTP/1.1 only
        http="h11",
        # We log sessions ourselves
        access_log=False,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
