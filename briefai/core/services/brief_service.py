"""Generates SEO content briefs with the AI model.

The prompt is built from the topic, the selected competitors and optional
fan-out insights, trimmed to the prompt token budget, and sent through the
"llm" circuit breaker. Any failure yields a deterministic local brief
marked ``degraded``.
"""

import json
import logging
import re
from typing import List, Optional, Sequence

from pydantic import ValidationError

from briefai.domain.interfaces.ai_model import AIModel
from briefai.domain.interfaces.cache import CacheService
from briefai.domain.models.ai import ChatMessage
from briefai.domain.models.brief import (
    ContentBrief,
    FaqItem,
    OutlineSection,
    SchemaStrategy,
    TitleSuggestions,
)
from briefai.domain.models.common import BreakerKey, CachePrefix, MessageRole
from briefai.domain.models.errors import PermanentFailure
from briefai.domain.models.query import FanoutResult
from briefai.domain.models.serp import Competitor
from briefai.infrastructure.cache.caching_service import CachingServiceImpl
from briefai.infrastructure.optimization.token_estimator import TokenEstimator
from briefai.infrastructure.optimization.token_usage import TokenUsageTracker
from briefai.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)

LLM_BREAKER_KEY = BreakerKey("llm")
BRIEF_CACHE_PREFIX = CachePrefix("brief")
DEFAULT_MAX_PROMPT_TOKENS = 6000

SYSTEM_PROMPT = (
    "You are an SEO expert and content strategist with 25 years of experience. "
    "You answer with a single JSON object and nothing else."
)

RESPONSE_SHAPE = """{
  "userIntent": "Search intent analysis (Informational/Transactional/Navigational/Commercial)",
  "competitorTone": "Dominant tone and style of the competitors",
  "uniqueValue": "How this content will stand out from the competitors",
  "competitorAnalysisSummary": "Summary of the competitor analysis",
  "primaryKeyword": "<topic>",
  "secondaryKeywords": ["8 secondary keywords"],
  "titleSuggestions": {"clickFocused": "Click-focused title", "seoFocused": "SEO-focused title"},
  "metaDescription": "Meta description under 155 characters",
  "contentOutline": [
    {"level": "H1", "title": "Main heading", "content": "What this section covers", "keyInfo": "Key takeaway"},
    {"level": "H2", "title": "Section heading", "content": "What this section covers", "storytelling": "Storytelling idea"}
  ],
  "faqSection": [{"question": "Frequently asked question", "answer": "Detailed answer"}],
  "schemaStrategy": {"mainSchema": "Main schema type", "supportingSchemas": ["Supporting schema types"], "reasoning": "Why these schemas"}
}"""

RULES = """Rules:
1. Apply E-E-A-T (Experience, Expertise, Authoritativeness, Trustworthiness).
2. Offer a unique value proposition that differs from the competitors.
3. Give practical, actionable recommendations.
4. The outline must contain at least 6 H2 sections.
5. The FAQ must contain at least 10 questions.
6. Respond with JSON only."""

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Removes a surrounding Markdown code fence (```json ... ```)."""
    return _CODE_FENCE.sub("", text.strip())


def parse_brief(content: str, topic: str) -> ContentBrief:
    """Parses the model's JSON answer into a ContentBrief.

    Raises:
        PermanentFailure: The answer is not JSON or does not fit the schema.
    """
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise PermanentFailure(f"AI response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PermanentFailure("AI response JSON is not an object")
    data.setdefault("topic", topic)
    try:
        return ContentBrief.model_validate(data)
    except ValidationError as e:
        raise PermanentFailure(f"AI response does not match the brief schema: {e}") from e


def describe_competitor(competitor: Competitor, with_snippet: bool = True) -> str:
    line = f"- {competitor.title} ({competitor.domain}) - Position: #{competitor.position}"
    if with_snippet and competitor.snippet:
        line += f"\n  Summary: {competitor.snippet}"
    return line


def describe_insights(insights: FanoutResult) -> str:
    report = insights.report
    kinds = ", ".join(
        f"{kind.value} {stats.success_count}/{stats.count}" for kind, stats in report.by_kind.items()
    )
    text = (
        "QUERY FAN-OUT INSIGHTS:\n"
        f"- Queries analysed: {', '.join(insights.expanded_queries)}\n"
        f"- Success rate: {report.success_rate:.0%} ({kinds})\n"
        f"- Unique ranking pages: {report.unique_count}\n"
        f"- Recommended strategy: {report.recommended_strategy}"
    )
    if report.content_gaps:
        text += f"\n- Content gaps: {', '.join(report.content_gaps)}"
    if report.common_themes:
        text += f"\n- Common themes: {', '.join(report.common_themes)}"
    if report.competitive_advantages:
        text += f"\n- Competitive advantages: {', '.join(report.competitive_advantages)}"
    return text


def build_prompt(
    topic: str,
    competitors: Sequence[Competitor],
    insights: Optional[FanoutResult] = None,
    snippet_count: Optional[int] = None,
) -> str:
    """Builds the user prompt; only the first ``snippet_count`` competitors keep snippets."""
    keep = len(competitors) if snippet_count is None else snippet_count
    competitor_info = "\n".join(
        describe_competitor(c, with_snippet=i < keep) for i, c in enumerate(competitors)
    )
    sections = [
        f'Create a comprehensive content strategy for the topic "{topic}".',
        f"COMPETITOR ANALYSIS:\n{competitor_info or '- none selected'}",
    ]
    if insights is not None:
        sections.append(describe_insights(insights))
    sections.append("Respond in this JSON format:\n" + RESPONSE_SHAPE.replace("<topic>", topic))
    sections.append(RULES)
    return "\n\n".join(sections)


def fallback_brief(topic: str, competitors: Sequence[Competitor], reason: Optional[str] = None) -> ContentBrief:
    """Deterministic brief derived from the topic and competitors alone."""
    domains = ", ".join(c.domain for c in competitors) or "no competitors selected"
    avg_position = (
        round(sum(c.position for c in competitors) / len(competitors)) if competitors else 0
    )
    seo_title = f"{topic} Guide: Definition, Benefits and Strategies"
    return ContentBrief(
        topic=topic,
        user_intent=(
            f'Informational - readers want to understand "{topic}" in depth and apply it in practice. '
            f"Selected competitors ({domains}) rank at #{avg_position} on average."
        ),
        competitor_tone=(
            f"The {len(competitors)} analysed competitors mix a professional and friendly tone "
            "and explain technical details in plain language."
        ),
        unique_value=(
            f"Stand out from {domains} with current data, expert commentary "
            f"and a step-by-step implementation guide for {topic}."
        ),
        competitor_analysis_summary=(
            f"{len(competitors)} competitors selected: {domains}. They cover the basics "
            "but lack concrete examples and up-to-date case studies."
        ),
        primary_keyword=topic,
        secondary_keywords=[
            f"{topic} what is",
            f"how to {topic}",
            f"{topic} examples",
            f"{topic} benefits",
            f"{topic} strategies",
            f"{topic} tools",
            f"{topic} guide",
            f"{topic} tips",
        ],
        title_suggestions=TitleSuggestions(
            click_focused=f"{topic}: Everything You Need to Know to Succeed",
            seo_focused=seo_title,
        ),
        meta_description=(
            f"A complete guide to {topic}: definition, benefits, strategies and expert tips "
            "with practical examples."
        )[:155],
        content_outline=[
            OutlineSection(level="H1", title=seo_title,
                           content="State the topic clearly and what the reader will gain from this guide."),
            OutlineSection(level="H2", title=f"What Is {topic}? Core Concepts",
                           content="Explain the fundamentals with one or two concrete examples.",
                           key_info=f"The most important property and purpose of {topic}"),
            OutlineSection(level="H2", title=f"Benefits of {topic}",
                           content="List the benefits, each with a short example.",
                           storytelling="Tell the success story of a real user who applied this approach"),
            OutlineSection(level="H2", title=f"How to Apply {topic}: Step by Step",
                           content="Walk through the practical steps with a concrete example for each.",
                           key_info="The most critical step and what to watch out for"),
            OutlineSection(level="H2", title=f"{topic} Examples and Case Studies",
                           content="Examine successful implementations in detail.",
                           storytelling="How a company applied this strategy and what it achieved"),
            OutlineSection(level="H2", title=f"Common {topic} Mistakes",
                           content="Describe frequent mistakes and how to avoid them.",
                           key_info="The most frequent mistake and the tip that prevents it"),
            OutlineSection(level="H2", title=f"Tools and Resources for {topic}",
                           content="List useful tools and freely available resources.",
                           key_info="The most valuable free resource"),
        ],
        faq_section=[
            FaqItem(question=f"What is {topic} and why does it matter?",
                    answer=f"{topic} is [short definition] and matters because [key benefit]."),
            FaqItem(question=f"How do I get started with {topic}?",
                    answer="Start with [first step], then continue with [second step]."),
            FaqItem(question=f"How much does {topic} cost?",
                    answer="Costs depend on [factors] and typically range between [range]."),
            FaqItem(question=f"Which tools can I use for {topic}?",
                    answer="The core tools are [tool list]; [minimum requirements] are enough to begin."),
            FaqItem(question=f"How do I measure success with {topic}?",
                    answer="Success is measured with [metrics] and results appear within [timeframe]."),
        ],
        schema_strategy=SchemaStrategy(
            main_schema="Article",
            supporting_schemas=["FAQPage", "HowTo", "BreadcrumbList", "Organization"],
            reasoning=(
                "Article for the main content, FAQPage for the FAQ section, HowTo for the "
                "practical steps, Organization for the publisher details."
            ),
        ),
        degraded=True,
        failure_reason=reason,
    )


class BriefService:
    """Produces ContentBriefs, caching successful ones."""

    def __init__(
        self,
        ai_model: AIModel,
        breakers: CircuitBreakerRegistry,
        cache: Optional[CacheService] = None,
        token_estimator: Optional[TokenEstimator] = None,
        usage_tracker: Optional[TokenUsageTracker] = None,
        max_prompt_tokens: int = DEFAULT_MAX_PROMPT_TOKENS,
    ):
        self.ai_model = ai_model
        self.breakers = breakers
        self.cache = cache
        self.token_estimator = token_estimator
        self.usage_tracker = usage_tracker
        self.max_prompt_tokens = max_prompt_tokens

    @staticmethod
    def cache_key(topic: str, competitors: Sequence[Competitor]) -> str:
        return CachingServiceImpl.generate_key(BRIEF_CACHE_PREFIX, {
            "topic": topic,
            "competitors": ",".join(c.url for c in competitors),
        })

    def build_messages(
        self,
        topic: str,
        competitors: Sequence[Competitor],
        insights: Optional[FanoutResult] = None,
    ) -> List[ChatMessage]:
        """Builds the chat messages, dropping competitor snippets from the end until they fit."""
        snippet_count = len(competitors)
        while True:
            messages = [
                ChatMessage(role=MessageRole("system"), content=SYSTEM_PROMPT),
                ChatMessage(
                    role=MessageRole("user"),
                    content=build_prompt(topic, competitors, insights, snippet_count),
                ),
            ]
            if self.token_estimator is None:
                return messages
            tokens = self.token_estimator.estimate_tokens_for_messages(messages)
            if tokens <= self.max_prompt_tokens:
                return messages
            if snippet_count == 0:
                logger.warning(
                    f"Prompt for '{topic}' still has {tokens} tokens without snippets "
                    f"(budget {self.max_prompt_tokens})"
                )
                return messages
            snippet_count -= 1
            logger.debug(f"Prompt over budget ({tokens} tokens), keeping {snippet_count} snippets")

    async def _request_brief(self, topic: str, messages: List[ChatMessage]) -> ContentBrief:
        response = await self.ai_model.send_messages(messages)
        if self.usage_tracker is not None:
            self.usage_tracker.record(response.token_usage)
        return parse_brief(response.content, topic)

    async def generate_brief(
        self,
        topic: str,
        competitors: Sequence[Competitor],
        insights: Optional[FanoutResult] = None,
    ) -> ContentBrief:
        """Returns a brief for ``topic``; never raises for AI failures.

        Raises:
            TokenLimitExceeded: The prompt would exceed the token budget of the tracker.
        """
        key = self.cache_key(topic, competitors)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.info(f"Brief for '{topic}' served from cache")
                return cached

        messages = self.build_messages(topic, competitors, insights)
        if self.usage_tracker is not None and self.token_estimator is not None:
            self.usage_tracker.check(self.token_estimator.estimate_tokens_for_messages(messages))

        guarded = await self.breakers.run(
            LLM_BREAKER_KEY,
            lambda: self._request_brief(topic, messages),
            fallback=lambda: None,
            operation_name="generate_brief",
        )
        if guarded.degraded:
            logger.warning(f"Brief generation for '{topic}' degraded: {guarded.failure_reason}")
            return fallback_brief(topic, competitors, reason=guarded.failure_reason)

        brief = guarded.value
        if self.cache is not None:
            await self.cache.set(key, brief)
        return brief
