"""Generation client abstraction with a Google Gemini backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from google import genai
from google.genai import types

from gemchat.ai.contents import build_contents
from gemchat.ai.errors import to_generation_error
from gemchat.config import GeminiConfig
from gemchat.core.models import Message
from gemchat.log import get_logger

logger = get_logger(__name__)

PartialCallback = Callable[[str], None]


class GenerationClient(ABC):
    """Abstract base class for text generation backends."""

    @abstractmethod
    async def generate(
        self,
        history: list[Message],
        model_id: str,
        on_partial: PartialCallback,
        system_instruction: str | None = None,
    ) -> str:
        """Generate a reply to ``history`` and return the final text.

        ``on_partial`` is called one or more times with the *cumulative* text
        so far; each call replaces what was shown before. Failures are raised
        as :class:`~gemchat.ai.errors.GenerationError`.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...


class GeminiClient(GenerationClient):
    """Gemini backend using the official google-genai SDK."""

    def __init__(self, config: GeminiConfig):
        if not config.api_key:
            raise ValueError("Gemini API key is not configured (set GEMINI_API_KEY)")
        self._client = genai.Client(api_key=config.api_key)
        self._stream = config.stream
        self._temperature = config.temperature
        self._default_model = config.default_model

    async def generate(
        self,
        history: list[Message],
        model_id: str,
        on_partial: PartialCallback,
        system_instruction: str | None = None,
    ) -> str:
        contents = build_contents(history)
        config = types.GenerateContentConfig(
            temperature=self._temperature,
            system_instruction=system_instruction or None,
        )
        logger.debug("generate_request", model=model_id, turn_count=len(contents), stream=self._stream)

        try:
            if self._stream:
                text = ""
                stream = await self._client.aio.models.generate_content_stream(
                    model=model_id, contents=contents, config=config
                )
                async for chunk in stream:
                    if chunk.text:
                        text += chunk.text
                        on_partial(text)
            else:
                response = await self._client.aio.models.generate_content(
                    model=model_id, contents=contents, config=config
                )
                text = response.text or ""
                on_partial(text)
        except Exception as e:
            error = to_generation_error(e)
            logger.warning("generate_failed", model=model_id, kind=error.kind.value, error=error.message)
            raise error from e

        logger.debug("generate_response", model=model_id, length=len(text))
        return text

    async def health_check(self) -> bool:
        try:
            await self._client.aio.models.get(model=self._default_model)
        except Exception as e:
            logger.warning("gemini_health_check_failed", error=str(e))
            return False
        return True
