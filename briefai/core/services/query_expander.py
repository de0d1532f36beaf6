"""Expands a topic into a ranked list of derived search queries.

Primary query first, then semantic variants, long-tail variants and
competitor comparison queries. Priorities keep that order stable; the list
is truncated to ``max_queries``.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from briefai.domain.interfaces.ai_model import AIModel
from briefai.domain.models.ai import ChatMessage
from briefai.domain.models.common import BreakerKey, MessageRole
from briefai.domain.models.errors import BriefAIError
from briefai.domain.models.query import ExpansionOptions, QueryItem, QueryKind
from briefai.domain.models.serp import Competitor, domain_of
from briefai.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)

LLM_BREAKER_KEY = BreakerKey("llm")
MAX_AI_VARIANTS = 5

# Templates per language; "{t}" is replaced with the topic
SEMANTIC_TEMPLATES: Dict[str, List[str]] = {
    "en": ["how to {t}", "what is {t}", "{t} guide", "{t} tips", "{t} examples"],
    "tr": ["{t} nasıl", "{t} nedir", "{t} rehberi", "{t} ipuçları", "{t} örnekleri"],
}

LONGTAIL_TEMPLATES: Dict[str, List[str]] = {
    "en": [
        "how to do {t}",
        "{t} step by step",
        "{t} for beginners",
        "{t} tips",
        "{t} examples",
        "{t} 2024",
        "best {t}",
        "{t} checklist",
        "{t} comparison",
        "{t} review",
    ],
    "tr": [
        "{t} nasıl yapılır",
        "{t} adım adım",
        "{t} rehberi",
        "{t} ipuçları",
        "{t} örnekleri",
        "{t} 2024",
        "{t} Türkiye",
        "{t} en iyi",
        "{t} karşılaştırma",
        "{t} değerlendirme",
    ],
}

COMPARISON_SUFFIX: Dict[str, str] = {
    "en": "comparison",
    "tr": "karşılaştırması",
}

SEMANTIC_PROMPT = (
    'Generate 3-5 semantic variants of this search query that users might also search for: "{topic}". '
    "Focus on different user intents, synonyms, and related concepts. "
    "Return only the queries, one per line."
)

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def _templates(table: Dict[str, List[str]], language: str) -> List[str]:
    return table.get(language, table["en"])


def comparison_suffix(language: str) -> str:
    return COMPARISON_SUFFIX.get(language, COMPARISON_SUFFIX["en"])


def base_query_of(comparison_query: str, language: str = "en") -> str:
    """Strips the trailing comparison word from a competitor query."""
    suffix = f" {comparison_suffix(language)}"
    if comparison_query.endswith(suffix):
        return comparison_query[: -len(suffix)]
    return comparison_query


def parse_variant_lines(content: str, topic: str) -> List[str]:
    """Turns an LLM answer into distinct query strings, one per line."""
    variants: List[str] = []
    seen = {topic.strip().lower()}
    for line in content.splitlines():
        text = _LIST_MARKER.sub("", line).strip().strip('"\'').strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        variants.append(text)
    return variants[:MAX_AI_VARIANTS]


class QueryExpander:
    """Produces the ranked QueryItems for one fan-out run."""

    def __init__(
        self,
        ai_model: Optional[AIModel] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
    ):
        self.ai_model = ai_model
        self.breakers = breakers

    def fallback_semantic_variants(self, topic: str, language: str = "en") -> List[str]:
        return [tpl.format(t=topic) for tpl in _templates(SEMANTIC_TEMPLATES, language)]

    def longtail_variants(self, topic: str, language: str = "en") -> List[str]:
        return [tpl.format(t=topic) for tpl in _templates(LONGTAIL_TEMPLATES, language)]

    def competitor_queries(
        self, topic: str, competitors: Sequence[Competitor], limit: int = 3, language: str = "en"
    ) -> List[str]:
        suffix = comparison_suffix(language)
        return [
            f"{topic} {domain_of(c.url)} {suffix}"
            for c in list(competitors)[:limit]
        ]

    async def _ask_ai_for_variants(self, topic: str) -> List[str]:
        messages = [ChatMessage(role=MessageRole("user"), content=SEMANTIC_PROMPT.format(topic=topic))]
        response = await self.ai_model.send_messages(messages)
        return parse_variant_lines(response.content, topic)

    async def semantic_variants(self, topic: str, language: str = "en") -> List[str]:
        """Asks the AI model for variants, falling back to the locale templates."""
        if self.ai_model is None:
            return self.fallback_semantic_variants(topic, language)

        if self.breakers is not None:
            guarded = await self.breakers.run(
                LLM_BREAKER_KEY,
                lambda: self._ask_ai_for_variants(topic),
                fallback=list,
                operation_name="semantic_variants",
            )
            variants = guarded.value
        else:
            try:
                variants = await self._ask_ai_for_variants(topic)
            except BriefAIError as e:
                logger.warning(f"Semantic variant generation failed: {e}")
                variants = []

        if not variants:
            logger.info(f"No AI semantic variants for '{topic}', using templates")
            return self.fallback_semantic_variants(topic, language)
        return variants

    async def expand(
        self,
        topic: str,
        competitors: Sequence[Competitor] = (),
        options: Optional[ExpansionOptions] = None,
    ) -> List[QueryItem]:
        """Returns at most ``options.max_queries`` items sorted by ascending priority.

        The primary query is always included with priority 1.0.
        """
        opts = options or ExpansionOptions()
        items = [QueryItem(text=topic, kind=QueryKind.PRIMARY, priority=1.0)]

        if opts.include_semantic:
            for i, text in enumerate(await self.semantic_variants(topic, opts.language)):
                items.append(QueryItem(text=text, kind=QueryKind.SEMANTIC, priority=2 + i * 0.1))

        if opts.include_longtail:
            for i, text in enumerate(self.longtail_variants(topic, opts.language)):
                items.append(QueryItem(text=text, kind=QueryKind.LONGTAIL, priority=3 + i * 0.1))

        if opts.include_competitors and competitors:
            hints = self.competitor_queries(topic, competitors, opts.max_competitor_hints, opts.language)
            for i, text in enumerate(hints):
                items.append(QueryItem(text=text, kind=QueryKind.COMPETITOR, priority=4 + i * 0.1))

        # sorted() is stable, equal priorities keep insertion order
        ranked = sorted(items, key=lambda item: item.priority)[: max(1, opts.max_queries)]
        logger.debug(f"Expanded '{topic}' into {len(ranked)} queries (from {len(items)} candidates)")
        return ranked
