"""Domain models for query fan-out.

A topic is expanded into QueryItems, each item is executed once and yields a
QueryOutcome, and the outcomes are folded into an AggregateReport.
Payloads are a small tagged union: one dataclass per query kind.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .serp import Competitor


class QueryKind(str, Enum):
    PRIMARY = "primary"
    SEMANTIC = "semantic"
    LONGTAIL = "longtail"
    COMPETITOR = "competitor"


@dataclass(frozen=True)
class QueryItem:
    """A derived query produced by the expander; lower priority runs first."""
    text: str
    kind: QueryKind
    priority: float


# --- Payloads (one variant per query kind) ---

@dataclass(frozen=True)
class SerpPayload:
    """Plain SERP results for primary and semantic queries."""
    results: List[Competitor]
    kind: QueryKind = QueryKind.PRIMARY


@dataclass(frozen=True)
class LongTailPayload:
    """SERP results plus a coarse long-tail opportunity assessment."""
    results: List[Competitor]
    search_volume: str = "low-to-medium"
    competition: str = "low"
    opportunity: str = "high"
    suggested_content: str = ""
    kind: QueryKind = QueryKind.LONGTAIL


@dataclass(frozen=True)
class CompetitorPayload:
    """SERP results for the base query behind a competitor comparison query."""
    results: List[Competitor]
    comparison_query: str
    base_query: str
    analysis_type: str = "competitive"
    kind: QueryKind = QueryKind.COMPETITOR


QueryPayload = Union[SerpPayload, LongTailPayload, CompetitorPayload]


@dataclass(frozen=True)
class QueryOutcome:
    """Result of executing one QueryItem. Never mutated after creation."""
    item: QueryItem
    succeeded: bool
    completed_at_ms: int
    payload: Optional[QueryPayload] = None
    failure_reason: Optional[str] = None
    degraded: bool = False
    from_cache: bool = False


# --- Options and results ---

@dataclass
class ExpansionOptions:
    """Controls which query kinds the expander produces and how many."""
    max_queries: int = 5
    include_semantic: bool = True
    include_longtail: bool = True
    include_competitors: bool = True
    max_competitor_hints: int = 3
    language: str = "en"


@dataclass(frozen=True)
class KindStats:
    count: int
    success_count: int
    success_rate: float
    avg_priority: float


@dataclass
class AggregateReport:
    """Success statistics and deduplicated results for a set of outcomes."""
    total: int
    succeeded: int
    failed: int
    success_rate: float
    unique_count: int
    unique_results: List[Competitor] = field(default_factory=list)
    by_kind: Dict[QueryKind, KindStats] = field(default_factory=dict)
    recommended_strategy: str = ""
    content_gaps: List[str] = field(default_factory=list)
    common_themes: List[str] = field(default_factory=list)
    competitive_advantages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "unique_count": self.unique_count,
            "unique_results": [r.to_dict() for r in self.unique_results],
            "by_kind": {
                kind.value: {
                    "count": stats.count,
                    "success_count": stats.success_count,
                    "success_rate": stats.success_rate,
                    "avg_priority": stats.avg_priority,
                }
                for kind, stats in self.by_kind.items()
            },
            "recommended_strategy": self.recommended_strategy,
            "content_gaps": list(self.content_gaps),
            "common_themes": list(self.common_themes),
            "competitive_advantages": list(self.competitive_advantages),
        }


@dataclass
class FanoutResult:
    """Everything a fan-out run produced."""
    primary_query: str
    expanded_queries: List[str]
    outcomes: List[QueryOutcome]
    report: AggregateReport
    execution_time_s: float

    @property
    def success_rate(self) -> float:
        return self.report.success_rate

    @property
    def fallback_used(self) -> bool:
        return self.report.success_rate < 0.8
