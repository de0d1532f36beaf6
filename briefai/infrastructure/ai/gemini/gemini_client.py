"""Concrete implementation of the AIModel interface for Google Gemini.

Gemini exposes an OpenAI-compatible chat completions endpoint, so the
official openai library is used with Gemini's base URL. Library errors are
translated into TransientFailure / PermanentFailure for the retry layer.
"""

import asyncio
import logging
import os
import time
from typing import Any, List, Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    BadRequestError,
    OpenAI,
    PermissionDeniedError,
    RateLimitError,
)

from briefai.domain.interfaces.ai_model import AIModel
from briefai.domain.models.ai import ChatMessage, StructuredAIResponse
from briefai.domain.models.common import TokenUsage
from briefai.domain.models.errors import ConfigurationError, PermanentFailure, TransientFailure

logger = logging.getLogger(__name__)

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def parse_chat_completion(response: Any) -> StructuredAIResponse:
    """Maps an OpenAI-style chat completion onto StructuredAIResponse."""
    try:
        choice = response.choices[0]
        content = choice.message.content or ""
        token_usage = None
        if getattr(response, "usage", None):
            token_usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return StructuredAIResponse(
            content=content,
            token_usage=token_usage,
            model_name=getattr(response, "model", None),
            finish_reason=getattr(choice, "finish_reason", None),
        )
    except (AttributeError, IndexError, TypeError) as e:
        logger.debug(f"Raw chat completion object: {response}")
        raise PermanentFailure(f"Invalid chat completion structure: {e}") from e


class GeminiClient(AIModel):
    """Gemini implementation of the AIModel interface."""

    DEFAULT_MODEL = "gemini-2.0-flash"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: str = GEMINI_OPENAI_BASE_URL,
        temperature: float = 0.7,
        timeout_s: float = 60.0,
    ):
        """Initializes the Gemini client.

        Args:
            api_key: Gemini API key. Reads from GEMINI_API_KEY env var if None.
            model: The Gemini model to use.
            base_url: OpenAI-compatible endpoint.
            temperature: Sampling temperature.
            timeout_s: Per-request timeout enforced by the SDK.
        """
        effective_api_key = api_key or os.getenv("GEMINI_API_KEY")
        if not effective_api_key:
            raise ConfigurationError("Gemini API key not provided and not found in environment variables.")

        # SDK retries are disabled; ApiRetryService owns retry policy
        self.client = OpenAI(
            api_key=effective_api_key, base_url=base_url, timeout=timeout_s, max_retries=0
        )
        self.model = model or self.DEFAULT_MODEL
        self.temperature = temperature
        logger.info(f"GeminiClient initialized for model: {self.model}")

    async def send_messages(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        logger.debug(f"Sending {len(messages)} messages to Gemini model: {self.model}")
        start_time = time.perf_counter()
        try:
            response = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=self.model,
                messages=messages,
                temperature=self.temperature,
            )
        except (AuthenticationError, PermissionDeniedError, BadRequestError) as e:
            logger.error(f"Gemini rejected the request: {e}")
            raise PermanentFailure(f"Gemini request rejected: {e}") from e
        except RateLimitError as e:
            logger.warning(f"Gemini rate limit encountered: {e}")
            raise TransientFailure(f"Gemini rate limit exceeded: {e}") from e
        except APIConnectionError as e:
            logger.warning(f"Gemini connection error: {e}")
            raise TransientFailure(f"Gemini connection error: {e}") from e
        except APIStatusError as e:
            logger.warning(f"Gemini API error (status {e.status_code}): {e}")
            if e.status_code >= 500:
                raise TransientFailure(f"Gemini server error {e.status_code}: {e}") from e
            raise PermanentFailure(f"Gemini API error {e.status_code}: {e}") from e

        structured = parse_chat_completion(response)
        structured.latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Received response from Gemini in {structured.latency_ms:.2f}ms. "
            f"Usage: {structured.token_usage}"
        )
        return structured
