"""Tiered Gemini access for the two oracles.

Tier Strategy:
- LITE: Flash-Lite reads full law texts and pulls out relevant snippets
- PRO: Pro plans the next research step
"""

from contextlib import asynccontextmanager
from enum import Enum
from dataclasses import dataclass
from typing import Any, Optional
import asyncio
import os
import logging

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)


class ModelTier(Enum):
    """Which oracle a call is for."""
    LITE = "lite"      # Snippet extraction
    PRO = "pro"        # Planning


@dataclass
class ModelConfig:
    model_id: str
    temperature: float = 1.0
    max_output_tokens: int = 8192


MODEL_CONFIGS: dict[ModelTier, ModelConfig] = {
    ModelTier.LITE: ModelConfig(
        model_id=os.getenv("LEXA_SNIPPET_MODEL", "gemini-flash-lite-latest"),
        temperature=0.2,
    ),
    ModelTier.PRO: ModelConfig(
        model_id=os.getenv("LEXA_PLANNER_MODEL", "gemini-2.5-pro"),
        max_output_tokens=16384,
    ),
}


class RequestThrottle:
    """Spaces request starts to fit a per-minute quota and caps in-flight calls.

    Snippet extraction fans out one LITE call per new document, so a round can
    start several requests at once.
    """

    def __init__(self, requests_per_minute: int = 60, max_in_flight: int = 10):
        self.interval = 60.0 / requests_per_minute if requests_per_minute > 0 else 0.0
        self.max_in_flight = max_in_flight
        self._next_start = 0.0
        # asyncio primitives are bound on first use, inside the running loop.
        self._gate: Optional[asyncio.Lock] = None
        self._in_flight: Optional[asyncio.Semaphore] = None

    @asynccontextmanager
    async def slot(self):
        if self._gate is None:
            self._gate = asyncio.Lock()
            self._in_flight = asyncio.Semaphore(self.max_in_flight)

        async with self._in_flight:
            async with self._gate:
                loop = asyncio.get_running_loop()
                delay = self._next_start - loop.time()
                if delay > 0:
                    logger.debug(f"Throttling Gemini request for {delay:.2f}s")
                    await asyncio.sleep(delay)
                self._next_start = loop.time() + self.interval
            yield


class GeminiClient:
    """Gemini client with timeout and request throttling.

    ``complete`` returns the raw response text (possibly empty); callers own
    parsing and validation of JSON output.
    """

    DEFAULT_TIMEOUT = 120.0

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        requests_per_minute: int = 60,
        max_in_flight: int = 10,
    ):
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY required")

        self.client = genai.Client(api_key=self.api_key)
        self.timeout = timeout
        self._throttle = RequestThrottle(requests_per_minute, max_in_flight)

    def _generation_config(
        self,
        tier: ModelTier,
        json_output: bool,
        response_schema: Optional[Any],
    ) -> types.GenerateContentConfig:
        mc = MODEL_CONFIGS[tier]
        config = types.GenerateContentConfig(
            temperature=mc.temperature,
            max_output_tokens=mc.max_output_tokens,
        )
        if json_output or response_schema is not None:
            config.response_mime_type = "application/json"
        if response_schema is not None:
            config.response_schema = response_schema
        return config

    async def complete(
        self,
        prompt: str,
        tier: ModelTier = ModelTier.PRO,
        json_output: bool = False,
        response_schema: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Send prompt to the tier's model and return the response text."""
        model_id = MODEL_CONFIGS[tier].model_id
        config = self._generation_config(tier, json_output, response_schema)
        limit = timeout or self.timeout

        async with self._throttle.slot():
            logger.debug(f"{tier.value} request to {model_id}: {len(prompt)} chars")
            try:
                response = await asyncio.wait_for(
                    asyncio.to_thread(
                        self.client.models.generate_content,
                        model=model_id,
                        contents=prompt,
                        config=config,
                    ),
                    timeout=limit,
                )
            except asyncio.TimeoutError:
                logger.error(f"{model_id} did not answer within {limit}s")
                raise TimeoutError(f"Gemini call timed out after {limit}s")

        text = response.text or ""
        logger.debug(f"{model_id} answered with {len(text)} chars")
        return text
