"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the fan-out and brief services. Every error is reported through
the UserInterface; nothing propagates back to Typer.
"""

import logging
import re
from typing import List, Optional

from briefai.core.services.brief_service import BriefService
from briefai.core.services.fanout_service import QueryFanoutService
from briefai.domain.interfaces.cache import CacheService
from briefai.domain.interfaces.user_interface import UserInterface
from briefai.domain.models.errors import BriefAIError, ConfigurationError
from briefai.domain.models.query import ExpansionOptions, QueryItem, QueryKind
from briefai.domain.models.serp import Competitor
from briefai.infrastructure.optimization.token_usage import TokenUsageTracker
from briefai.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        ui: UserInterface,
        cache_service: CacheService,
        breakers: CircuitBreakerRegistry,
        fanout_service: Optional[QueryFanoutService] = None,
        brief_service: Optional[BriefService] = None,
        usage_tracker: Optional[TokenUsageTracker] = None,
        language: str = "en",
        default_max_queries: int = 5,
    ):
        self.ui = ui
        self.cache_service = cache_service
        self.breakers = breakers
        self.fanout_service = fanout_service
        self.brief_service = brief_service
        self.usage_tracker = usage_tracker
        self.language = language
        self.default_max_queries = default_max_queries

    def _require_fanout(self) -> QueryFanoutService:
        if self.fanout_service is None:
            raise ConfigurationError(
                "SERP access is not configured: set DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD"
            )
        return self.fanout_service

    def _require_brief(self) -> BriefService:
        if self.brief_service is None:
            raise ConfigurationError(
                "No AI provider is configured: set GEMINI_API_KEY or GROQ_API_KEY"
            )
        return self.brief_service

    async def fetch_competitors(self, keyword: str, limit: Optional[int] = None) -> List[Competitor]:
        """Primary SERP lookup through the fan-out cache and the "serp" breaker."""
        outcome = await self._require_fanout().run_item(
            QueryItem(text=keyword, kind=QueryKind.PRIMARY, priority=1.0)
        )
        if not outcome.succeeded:
            self.ui.display_warning(f"Could not fetch results for '{keyword}': {outcome.failure_reason}")
            return []
        results = list(outcome.payload.results)
        return results if limit is None else results[:limit]

    async def handle_serp(self, keyword: str) -> None:
        logger.info(f"Handling 'serp' command for keyword: {keyword}")
        try:
            competitors = await self.fetch_competitors(keyword)
            self.ui.display_competitors(keyword, competitors)
        except BriefAIError as e:
            self.ui.display_error(str(e))
        except Exception as e:
            logger.error(f"SERP command failed: {e}", exc_info=True)
            self.ui.display_error(f"SERP lookup failed: {e}")

    async def handle_fanout(
        self,
        topic: str,
        max_queries: Optional[int] = None,
        batch_size: Optional[int] = None,
        include_semantic: bool = True,
        include_longtail: bool = True,
        include_competitors: bool = True,
    ) -> None:
        logger.info(f"Handling 'fanout' command for topic: {topic}")
        try:
            service = self._require_fanout()
            competitors = await self.fetch_competitors(topic) if include_competitors else []
            options = ExpansionOptions(
                max_queries=max_queries or self.default_max_queries,
                include_semantic=include_semantic,
                include_longtail=include_longtail,
                include_competitors=include_competitors,
                language=self.language,
            )
            result = await service.execute_fanout(topic, competitors, options, batch_size=batch_size)
            self.ui.display_fanout(result)
        except ValueError as e:
            self.ui.display_error(f"Invalid option: {e}")
        except BriefAIError as e:
            self.ui.display_error(str(e))
        except Exception as e:
            logger.error(f"Fan-out command failed: {e}", exc_info=True)
            self.ui.display_error(f"Fan-out failed: {e}")

    async def handle_brief(
        self,
        topic: str,
        competitor_count: int = 5,
        use_fanout: bool = True,
        as_json: bool = False,
    ) -> None:
        logger.info(f"Handling 'brief' command for topic: {topic}")
        try:
            brief_service = self._require_brief()
            competitors: List[Competitor] = []
            insights = None
            if self.fanout_service is not None:
                competitors = await self.fetch_competitors(topic, limit=competitor_count)
                if use_fanout:
                    insights = await self.fanout_service.execute_fanout(
                        topic,
                        competitors,
                        ExpansionOptions(max_queries=self.default_max_queries, language=self.language),
                    )
            else:
                self.ui.display_warning("SERP access is not configured; generating the brief without competitors.")

            brief = await brief_service.generate_brief(topic, competitors, insights)
            if as_json:
                self.ui.display_output(brief.model_dump_json(by_alias=True, indent=2), as_json=True)
            else:
                self.ui.display_brief(brief)
        except BriefAIError as e:
            self.ui.display_error(str(e))
        except Exception as e:
            logger.error(f"Brief command failed: {e}", exc_info=True)
            self.ui.display_error(f"Brief generation failed: {e}")

    async def handle_clear_cache(self, pattern: Optional[str] = None) -> None:
        """Clears the whole cache, or only the keys matching ``pattern``."""
        logger.info(f"Handling 'clear-cache' command (pattern={pattern!r})")
        try:
            if pattern:
                removed = await self.cache_service.invalidate(pattern)
                self.ui.display_info(f"Removed {removed} cache entries matching '{pattern}'.")
            else:
                await self.cache_service.clear()
                self.ui.display_info("Cache cleared successfully.")
        except re.error as e:
            self.ui.display_error(f"Invalid pattern '{pattern}': {e}")
        except Exception as e:
            logger.error(f"Failed to clear cache: {e}", exc_info=True)
            self.ui.display_error(f"Failed to clear cache: {e}")

    async def handle_cache_stats(self) -> None:
        stats = self.cache_service.stats()
        self.ui.display_table(
            "Cache",
            ["Size", "Max items", "Hits", "Misses", "Evictions", "Hit rate"],
            [[
                stats["size"], stats["max_items"], stats["hits"],
                stats["misses"], stats["evictions"], f"{stats['hit_rate']:.1%}",
            ]],
        )
        entries = stats.get("entries") or []
        if entries:
            self.ui.display_table(
                "Entries",
                ["Key", "Age (ms)", "TTL (ms)"],
                [[e["key"], e["age_ms"], e["ttl_ms"]] for e in entries],
            )

    async def handle_usage(self) -> None:
        """Shows token usage and the state of every circuit breaker."""
        if self.usage_tracker is not None:
            summary = self.usage_tracker.summary()
            self.ui.display_table(
                "Token usage",
                ["Calls", "Prompt", "Completion", "Total", "Limit", "Remaining"],
                [[
                    summary["calls"], summary["prompt_tokens"], summary["completion_tokens"],
                    summary["total_tokens"], summary["limit"] or "-",
                    "-" if summary["remaining"] is None else summary["remaining"],
                ]],
            )
        snapshot = self.breakers.snapshot()
        if snapshot:
            self.ui.display_table(
                "Circuit breakers",
                ["Key", "Phase", "Consecutive failures"],
                [[key, s["phase"], s["consecutive_failures"]] for key, s in snapshot.items()],
            )
        else:
            self.ui.display_info("No circuit breakers have been used yet.")
