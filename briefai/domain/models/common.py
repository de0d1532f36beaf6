"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like cache keys, keywords and token
counts, keeping signatures readable and consistent.
"""

import time
from typing import NewType, TypedDict

# === Core Value Objects ===
Keyword = NewType("Keyword", str)            # A search keyword / topic
Url = NewType("Url", str)                    # Absolute URL of a search result
MessageRole = NewType("MessageRole", str)    # 'system', 'user', 'assistant'

# === Caching Context ===
CacheKey = NewType("CacheKey", str)          # Unique key for a cache entry
CachePrefix = NewType("CachePrefix", str)    # Category prefix (e.g., 'serp', 'brief')

# === Resilience Context ===
BreakerKey = NewType("BreakerKey", str)      # Operation class guarded by one breaker

# === Token Management ===
TokenCount = NewType("TokenCount", int)


class TokenUsage(TypedDict):
    """Represents token usage information from an AI call."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class BackoffPolicy(TypedDict):
    """Value Object representing retry backoff configuration."""
    max_attempts: int
    base_delay_s: float
    max_delay_s: float


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
