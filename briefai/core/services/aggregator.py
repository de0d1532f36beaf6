"""Folds fan-out outcomes into success statistics and unique results."""

import logging
from typing import Dict, List, Sequence

from briefai.domain.models.query import AggregateReport, KindStats, QueryKind, QueryOutcome
from briefai.domain.models.serp import Competitor

logger = logging.getLogger(__name__)

STRONG_KIND_THRESHOLD = 0.7

CONTENT_GAPS = [
    "Up-to-date local data",
    "Step-by-step implementation guide",
    "Real user experiences",
    "Local case studies",
    "Visual and video content",
    "Expert interviews",
]
COMMON_THEMES = [
    "Technical details",
    "Practical applications",
    "Comparative analysis",
    "Current trends",
]
COMPETITIVE_ADVANTAGES = [
    "Locally tailored content",
    "Current-year data",
    "Expert opinions",
    "Practical implementation examples",
]
MAX_CONTENT_GAPS = 4
MAX_COMMON_THEMES = 3


def dedupe_results(outcomes: Sequence[QueryOutcome]) -> List[Competitor]:
    """First occurrence of each URL across successful payloads, in outcome order."""
    seen = set()
    unique: List[Competitor] = []
    for outcome in outcomes:
        if not outcome.succeeded or outcome.payload is None:
            continue
        for result in outcome.payload.results:
            if not result.url or result.url in seen:
                continue
            seen.add(result.url)
            unique.append(result)
    return unique


def kind_stats(outcomes: Sequence[QueryOutcome]) -> Dict[QueryKind, KindStats]:
    grouped: Dict[QueryKind, List[QueryOutcome]] = {}
    for outcome in outcomes:
        grouped.setdefault(outcome.item.kind, []).append(outcome)

    stats = {}
    for kind, group in grouped.items():
        success_count = sum(1 for o in group if o.succeeded)
        stats[kind] = KindStats(
            count=len(group),
            success_count=success_count,
            success_rate=success_count / len(group),
            avg_priority=sum(o.item.priority for o in group) / len(group),
        )
    return stats


def recommended_strategy(by_kind: Dict[QueryKind, KindStats]) -> str:
    strong = {kind for kind, s in by_kind.items() if s.success_rate > STRONG_KIND_THRESHOLD}
    if QueryKind.LONGTAIL in strong:
        return "Focus on long-tail keywords and comprehensive guides"
    if QueryKind.SEMANTIC in strong:
        return "Expand content with semantic variations and related topics"
    return "Focus on primary query optimization and competitor analysis"


def content_gaps(unique_results: Sequence[Competitor]) -> List[str]:
    """Generic gap checklist, shortened when few pages rank."""
    return CONTENT_GAPS[:min(MAX_CONTENT_GAPS, len(unique_results))]


def common_themes(unique_results: Sequence[Competitor]) -> List[str]:
    return COMMON_THEMES[:min(MAX_COMMON_THEMES, len(unique_results))]


def aggregate(outcomes: Sequence[QueryOutcome]) -> AggregateReport:
    """Builds the AggregateReport for a completed fan-out.

    ``success_rate`` is 0.0 for an empty outcome list.
    """
    total = len(outcomes)
    succeeded = sum(1 for o in outcomes if o.succeeded)
    unique = dedupe_results(outcomes)
    by_kind = kind_stats(outcomes)

    report = AggregateReport(
        total=total,
        succeeded=succeeded,
        failed=total - succeeded,
        success_rate=succeeded / total if total else 0.0,
        unique_count=len(unique),
        unique_results=unique,
        by_kind=by_kind,
        recommended_strategy=recommended_strategy(by_kind),
        content_gaps=content_gaps(unique),
        common_themes=common_themes(unique),
        competitive_advantages=list(COMPETITIVE_ADVANTAGES),
    )
    logger.debug(f"Aggregated {total} outcomes: {succeeded} succeeded, {len(unique)} unique results")
    return report
