"""Interface for AI Language Models (LLMs).

Defines the contract for sending chat messages to different AI providers
(e.g., Gemini, Groq).
"""

import abc
from typing import List

from ..models.ai import ChatMessage, StructuredAIResponse


class AIModel(abc.ABC):
    """Abstract Base Class for AI language model interactions."""

    @abc.abstractmethod
    async def send_messages(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        """Sends a list of messages to the AI model asynchronously.

        Args:
            messages: The conversation to send, system prompt first.

        Returns:
            A StructuredAIResponse containing the reply and metadata.

        Raises:
            TransientFailure: Rate limits, timeouts, server errors.
            PermanentFailure: Authentication or request validation errors.
        """
        pass
