"""
FastAPI server for the OmniBot live voice relay.

This module initializes and configures the FastAPI application that bridges
browser and desktop call clients to Gemini Live. It exposes:

- the live audio WebSocket, one RelaySession per connection
- the one-shot generation endpoint used by the dashboard's text, image and video features
- usage counters, health and service information endpoints
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnibot.config.constants import LIVE_WS_PATH
from omnibot.config.logging_config import configure_logging
from omnibot.config.settings import get_settings
from omnibot.exceptions import MessageError
from omnibot.models.messages import parse_generate_request
from omnibot.relay.upstream import GeminiLiveConnector
from omnibot.services.generation import GenerationService
from omnibot.services.usage import JsonFileUsageStore, UsageCounterService
from omnibot.websocket_manager import WebSocketManager

settings = get_settings()

# Configure logging
logger = configure_logging(settings.log_level)

if not settings.gemini_api_key:
    logger.warning("GEMINI_API_KEY not set. Please set it in environment.")

usage_service = UsageCounterService(JsonFileUsageStore(settings.usage_store_path))
usage_service.load()

websocket_manager = WebSocketManager(
    GeminiLiveConnector(api_key=settings.gemini_api_key),
    settings,
    usage=usage_service,
)
generation_service = GenerationService(api_key=settings.gemini_api_key, usage=usage_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Gemini proxy running on http://{settings.host}:{settings.port}")
    yield
    await websocket_manager.close_all()


app = FastAPI(
    title="OmniBot Voice Relay",
    description="Realtime audio relay between call clients and Gemini Live",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.websocket(LIVE_WS_PATH)
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for live audio calls.

    Each connection is bridged to its own Gemini Live session:
    - send_audio messages are forwarded upstream as realtime audio input
    - upstream messages come back wrapped as server_message
    - session_opened / session_closed / error report the session lifecycle
    """
    await websocket_manager.handle_websocket(websocket)


@app.post("/api/gemini")
async def gemini_proxy(body: Any = Body(None)):
    """Forward a one-shot generateContent or generateVideos call.

    Returns:
        The service's raw JSON response, or an {"error": ...} body with status
        400 (missing/unsupported operation) or 500 (upstream failure).
    """
    try:
        return await generation_service.run(parse_generate_request(body))
    except MessageError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except Exception as e:
        logger.error(f"Proxy error: {e}", exc_info=True)
        return JSONResponse({"error": str(e) or type(e).__name__}, status_code=500)


@app.get("/api/usage")
async def usage():
    """Monthly usage counters and the remaining quota for each pricing tier."""
    return usage_service.snapshot()


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information indicating the server is operational.
    """
    return {
        "status": "healthy",
        "gemini_api_key_configured": bool(settings.gemini_api_key),
        "active_sessions": websocket_manager.active_sessions,
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "OmniBot Voice Relay",
        "description": "Realtime audio relay between call clients and Gemini Live",
        "version": "1.0.0",
        "endpoints": {
            LIVE_WS_PATH: "WebSocket endpoint for live audio calls",
            "/api/gemini": "One-shot generation proxy",
            "/api/usage": "Usage counters",
            "/health": "Health check endpoint",
        },
    }
