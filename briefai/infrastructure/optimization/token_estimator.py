"""Service for estimating token counts for text or message lists.

Uses tiktoken so prompts can be checked against a budget before they are
sent to the AI model.
"""

import logging
from typing import List, Optional

import tiktoken

from briefai.domain.models.ai import ChatMessage
from briefai.domain.models.common import TokenCount

logger = logging.getLogger(__name__)

DEFAULT_TOKENIZER_MODEL = "cl100k_base"
MESSAGE_OVERHEAD_TOKENS = 4
REPLY_PRIMING_TOKENS = 2


class TokenEstimator:
    """Estimates token counts using tiktoken."""

    def __init__(self, tokenizer_model_name: Optional[str] = None):
        self.tokenizer_name = tokenizer_model_name or DEFAULT_TOKENIZER_MODEL
        self.tokenizer = tiktoken.get_encoding(self.tokenizer_name)
        logger.info(f"TokenEstimator initialized with tiktoken model: {self.tokenizer_name}")

    def estimate_tokens(self, text: str) -> TokenCount:
        if not text:
            return TokenCount(0)
        return TokenCount(len(self.tokenizer.encode(str(text))))

    def estimate_tokens_for_messages(self, messages: List[ChatMessage]) -> TokenCount:
        """Estimates the token count for a list of ChatMessages.

        Adds the per-message framing overhead and the reply priming tokens
        used by chat completion formats.
        """
        num_tokens = 0
        for message in messages:
            num_tokens += MESSAGE_OVERHEAD_TOKENS
            num_tokens += self.estimate_tokens(message.get("role", ""))
            num_tokens += self.estimate_tokens(message.get("content", ""))
        num_tokens += REPLY_PRIMING_TOKENS
        logger.debug(f"Estimated tokens for {len(messages)} messages: {num_tokens}")
        return TokenCount(num_tokens)
