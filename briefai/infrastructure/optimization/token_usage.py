"""In-process ledger of tokens spent on AI calls."""

import logging
from typing import Dict, Optional

from briefai.domain.models.common import TokenUsage
from briefai.domain.models.errors import TokenLimitExceeded

logger = logging.getLogger(__name__)


class TokenUsageTracker:
    """Accumulates token usage and enforces an optional overall limit."""

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.calls = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - self.total_tokens)

    def check(self, requested: int) -> None:
        """Raises TokenLimitExceeded if ``requested`` more tokens would pass the limit."""
        if self.limit is not None and self.total_tokens + requested > self.limit:
            raise TokenLimitExceeded(used=self.total_tokens, requested=requested, limit=self.limit)

    def record(self, usage: Optional[TokenUsage]) -> None:
        self.calls += 1
        if not usage:
            return
        self.prompt_tokens += usage.get("prompt_tokens", 0)
        self.completion_tokens += usage.get("completion_tokens", 0)
        logger.debug(f"Token usage recorded: {usage}. Total now {self.total_tokens}")

    def summary(self) -> Dict[str, Optional[int]]:
        return {
            "calls": self.calls,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "limit": self.limit,
            "remaining": self.remaining,
        }
