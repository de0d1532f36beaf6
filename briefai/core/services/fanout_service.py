"""Query fan-out: expand a topic, run every derived query, aggregate the outcomes.

Each query goes through the cache first, then through the "serp" circuit
breaker (which wraps the retry policy). Queries run in batches; a failing
query becomes a failed QueryOutcome and never aborts the run.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence

from briefai.core.services.aggregator import aggregate
from briefai.core.services.query_expander import QueryExpander, base_query_of
from briefai.domain.events.fanout_events import EventSink, QueryCompleted, log_event
from briefai.domain.interfaces.cache import CacheService
from briefai.domain.interfaces.serp_provider import SerpProvider
from briefai.domain.models.common import BreakerKey, CachePrefix, now_ms
from briefai.domain.models.query import (
    CompetitorPayload,
    ExpansionOptions,
    FanoutResult,
    LongTailPayload,
    QueryItem,
    QueryKind,
    QueryOutcome,
    QueryPayload,
    SerpPayload,
)
from briefai.domain.models.serp import Competitor
from briefai.infrastructure.cache.caching_service import CachingServiceImpl
from briefai.infrastructure.resilience.batch_scheduler import run_batches
from briefai.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)

SERP_BREAKER_KEY = BreakerKey("serp")
SERP_CACHE_PREFIX = CachePrefix("serp")


class QueryFanoutService:
    """Runs the expander, batch scheduler, breaker and aggregator as one flow."""

    def __init__(
        self,
        serp_provider: SerpProvider,
        expander: QueryExpander,
        breakers: CircuitBreakerRegistry,
        cache: Optional[CacheService] = None,
        batch_size: int = 3,
        inter_batch_delay_s: float = 1.0,
        language: str = "en",
        location_code: int = 2840,
        event_sink: EventSink = log_event,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.serp_provider = serp_provider
        self.expander = expander
        self.breakers = breakers
        self.cache = cache
        self.batch_size = batch_size
        self.inter_batch_delay_s = inter_batch_delay_s
        self.language = language
        self.location_code = location_code
        self._event_sink = event_sink
        self._sleep = sleep

    def cache_key(self, item: QueryItem) -> str:
        return CachingServiceImpl.generate_key(SERP_CACHE_PREFIX, {
            "query": item.text,
            "kind": item.kind.value,
            "language": self.language,
            "location": self.location_code,
        })

    async def _fetch(self, query: str) -> List[Competitor]:
        return await self.serp_provider.fetch_serp_results(
            query, location_code=self.location_code, language_code=self.language
        )

    async def execute_query(self, item: QueryItem) -> QueryPayload:
        """Dispatches one query by kind and returns its payload."""
        if item.kind == QueryKind.LONGTAIL:
            results = await self._fetch(item.text)
            return LongTailPayload(
                results=results,
                suggested_content=f'Create comprehensive guide for "{item.text}"',
            )
        if item.kind == QueryKind.COMPETITOR:
            base_query = base_query_of(item.text, self.language)
            results = await self._fetch(base_query)
            return CompetitorPayload(results=results, comparison_query=item.text, base_query=base_query)
        return SerpPayload(results=await self._fetch(item.text), kind=item.kind)

    async def run_item(self, item: QueryItem) -> QueryOutcome:
        key = self.cache_key(item)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                outcome = QueryOutcome(
                    item=item, succeeded=True, completed_at_ms=now_ms(), payload=cached, from_cache=True
                )
                self._emit_completed(outcome)
                return outcome

        guarded = await self.breakers.run(
            SERP_BREAKER_KEY,
            lambda: self.execute_query(item),
            fallback=lambda: None,
            operation_name=f"serp:{item.kind.value}",
        )

        if guarded.degraded:
            outcome = QueryOutcome(
                item=item,
                succeeded=False,
                completed_at_ms=now_ms(),
                failure_reason=guarded.failure_reason,
                degraded=True,
            )
        else:
            if self.cache is not None:
                await self.cache.set(key, guarded.value)
            outcome = QueryOutcome(
                item=item, succeeded=True, completed_at_ms=now_ms(), payload=guarded.value
            )
        self._emit_completed(outcome)
        return outcome

    def _emit_completed(self, outcome: QueryOutcome) -> None:
        self._event_sink(QueryCompleted(
            query=outcome.item.text,
            kind=outcome.item.kind.value,
            succeeded=outcome.succeeded,
            from_cache=outcome.from_cache,
        ))

    @staticmethod
    def _failed_outcome(item: QueryItem, error: BaseException) -> QueryOutcome:
        return QueryOutcome(
            item=item,
            succeeded=False,
            completed_at_ms=now_ms(),
            failure_reason=f"{type(error).__name__}: {error}",
        )

    async def execute_fanout(
        self,
        topic: str,
        competitors: Sequence[Competitor] = (),
        options: Optional[ExpansionOptions] = None,
        batch_size: Optional[int] = None,
    ) -> FanoutResult:
        """Expands ``topic`` and runs every derived query in batches.

        Outcomes come back in the expander's order, one per query.
        ``batch_size`` overrides the service default for this run.
        """
        started = time.perf_counter()
        size = batch_size or self.batch_size
        opts = options or ExpansionOptions(language=self.language)
        items = await self.expander.expand(topic, competitors, opts)
        logger.info(f"Fan-out for '{topic}': {len(items)} queries in batches of {size}")

        outcomes = await run_batches(
            items,
            size,
            self.run_item,
            inter_batch_delay_s=self.inter_batch_delay_s,
            on_error=self._failed_outcome,
            sleep=self._sleep,
            event_sink=self._event_sink,
        )

        report = aggregate(outcomes)
        elapsed = time.perf_counter() - started
        logger.info(
            f"Fan-out for '{topic}' finished in {elapsed:.2f}s: "
            f"{report.succeeded}/{report.total} succeeded"
        )
        return FanoutResult(
            primary_query=topic,
            expanded_queries=[item.text for item in items],
            outcomes=outcomes,
            report=report,
            execution_time_s=elapsed,
        )
