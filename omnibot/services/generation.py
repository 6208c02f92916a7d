"""
One-shot generation forwarding for the dashboard's text, image and video features.

Requests are passed to the google-genai SDK unchanged and the SDK response is
returned as the camelCase JSON the service produced.
"""

import logging
from typing import Any, Dict, Optional

from google import genai

from omnibot.config.constants import (
    LOGGER_NAME,
    OPERATION_GENERATE_CONTENT,
    OPERATION_GENERATE_VIDEOS,
)
from omnibot.exceptions import MessageError, UpstreamError
from omnibot.models.messages import GenerateRequest
from omnibot.models.usage import UsageKind
from omnibot.services.usage import UsageCounterService

logger = logging.getLogger(LOGGER_NAME)

SUPPORTED_OPERATIONS = (OPERATION_GENERATE_CONTENT, OPERATION_GENERATE_VIDEOS)


class GenerationService:
    """Forwards generateContent and generateVideos calls."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[genai.Client] = None,
        usage: Optional[UsageCounterService] = None,
    ):
        self.api_key = api_key
        self._client = client
        self.usage = usage

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise UpstreamError("GEMINI_API_KEY environment variable not set")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def run(self, request: GenerateRequest) -> Dict[str, Any]:
        """
        Execute the requested operation.

        Raises:
            MessageError: If the operation is missing or unsupported
            UpstreamError: If no API key is configured
        """
        if not request.operation:
            raise MessageError("Missing operation")

        if request.operation == OPERATION_GENERATE_CONTENT:
            logger.info(f"Forwarding generateContent for model: {request.model}")
            result = await self.client.aio.models.generate_content(
                model=request.model, contents=request.contents, config=request.config
            )
            self._record(UsageKind.CONVERSATION)
        elif request.operation == OPERATION_GENERATE_VIDEOS:
            logger.info(f"Forwarding generateVideos for model: {request.model}")
            result = await self.client.aio.models.generate_videos(
                model=request.model,
                prompt=request.contents or request.prompt,
                config=request.config,
            )
            self._record(UsageKind.CREATIVE)
        else:
            raise MessageError("Unsupported operation")

        return result.model_dump(mode="json", by_alias=True, exclude_none=True)

    def _record(self, kind: UsageKind) -> None:
        if self.usage is not None:
            self.usage.increment(kind)
