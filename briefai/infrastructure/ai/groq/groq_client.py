"""Concrete implementation of the AIModel interface using the Groq API.

Used as the alternative provider when Gemini is not configured or when
``ai.default_provider`` is set to ``groq``.
"""

import asyncio
import logging
import os
import time
from typing import List, Optional

from groq import (
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    BadRequestError,
    Groq,
    PermissionDeniedError,
    RateLimitError,
)

from briefai.domain.interfaces.ai_model import AIModel
from briefai.domain.models.ai import ChatMessage, StructuredAIResponse
from briefai.domain.models.errors import ConfigurationError, PermanentFailure, TransientFailure
from briefai.infrastructure.ai.gemini.gemini_client import parse_chat_completion

logger = logging.getLogger(__name__)


class GroqClient(AIModel):
    """Groq implementation of the AIModel interface."""

    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        timeout_s: float = 60.0,
    ):
        effective_api_key = api_key or os.getenv("GROQ_API_KEY")
        if not effective_api_key:
            raise ConfigurationError("Groq API key not provided and not found in environment variables.")

        self.client = Groq(api_key=effective_api_key, timeout=timeout_s, max_retries=0)
        self.model = model or self.DEFAULT_MODEL
        self.temperature = temperature
        logger.info(f"GroqClient initialized for model: {self.model}")

    async def send_messages(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        logger.debug(f"Sending {len(messages)} messages to Groq model: {self.model}")
        start_time = time.perf_counter()
        try:
            response = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=self.model,
                messages=messages,
                temperature=self.temperature,
            )
        except (AuthenticationError, PermissionDeniedError, BadRequestError) as e:
            logger.error(f"Groq rejected the request: {e}")
            raise PermanentFailure(f"Groq request rejected: {e}") from e
        except (RateLimitError, APIConnectionError) as e:
            logger.warning(f"Groq transient error: {type(e).__name__}: {e}")
            raise TransientFailure(f"Groq transient error: {e}") from e
        except APIStatusError as e:
            if e.status_code >= 500:
                raise TransientFailure(f"Groq server error {e.status_code}: {e}") from e
            raise PermanentFailure(f"Groq API error {e.status_code}: {e}") from e

        structured = parse_chat_completion(response)
        structured.latency_ms = (time.perf_counter() - start_time) * 1000
        return structured
