import pytest

from briefai.core.services.fanout_service import QueryFanoutService
from briefai.core.services.query_expander import QueryExpander
from briefai.domain.events.fanout_events import BatchCompleted, QueryCompleted
from briefai.domain.models.errors import FailureKind, PermanentFailure, TransientFailure
from briefai.domain.models.query import (
    CompetitorPayload,
    ExpansionOptions,
    LongTailPayload,
    QueryItem,
    QueryKind,
    SerpPayload,
)
from briefai.infrastructure.cache.caching_service import CachingServiceImpl
from briefai.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry


@pytest.fixture
def cache(clock):
    return CachingServiceImpl(clock=clock)


@pytest.fixture
def service(mock_serp_provider, breakers, cache, events, fake_sleep):
    return QueryFanoutService(
        serp_provider=mock_serp_provider,
        expander=QueryExpander(),
        breakers=breakers,
        cache=cache,
        batch_size=3,
        inter_batch_delay_s=1.0,
        event_sink=events.append,
        sleep=fake_sleep,
    )


def fail_for(failing_queries, results, error_cls=PermanentFailure):
    def _side_effect(keyword, location_code=None, language_code=None):
        if keyword in failing_queries:
            raise error_cls(f"forced failure for {keyword}")
        return results
    return _side_effect


@pytest.mark.asyncio
async def test_digital_marketing_scenario(service, mock_serp_provider, make_competitors, events, sleeps):
    failing = {"what is digital marketing", "digital marketing tips"}
    mock_serp_provider.fetch_serp_results.side_effect = fail_for(failing, make_competitors())

    result = await service.execute_fanout("digital marketing", [], ExpansionOptions(max_queries=7))

    batches = [e.size for e in events if isinstance(e, BatchCompleted)]
    assert batches == [3, 3, 1]
    assert sleeps == [1.0, 1.0]
    assert len(result.outcomes) == 7
    assert [o.item.text for o in result.outcomes] == result.expanded_queries
    assert result.report.succeeded == 5
    assert result.success_rate == pytest.approx(5 / 7)
    assert result.fallback_used is True

    failed = [o for o in result.outcomes if not o.succeeded]
    assert {o.item.text for o in failed} == failing
    assert all(o.degraded and "forced failure" in o.failure_reason for o in failed)


@pytest.mark.asyncio
async def test_all_success_does_not_flag_fallback(service):
    result = await service.execute_fanout("seo", [], ExpansionOptions(max_queries=4))

    assert result.success_rate == 1.0
    assert result.fallback_used is False
    assert result.report.unique_count == 3
    assert result.execution_time_s >= 0


@pytest.mark.asyncio
async def test_payload_variant_matches_kind(service, mock_serp_provider, make_competitors):
    options = ExpansionOptions(max_queries=50, include_semantic=False)
    result = await service.execute_fanout("seo", make_competitors(count=1), options)

    by_kind = {}
    for o in result.outcomes:
        by_kind.setdefault(o.item.kind, o.payload)
    assert isinstance(by_kind[QueryKind.PRIMARY], SerpPayload)
    assert isinstance(by_kind[QueryKind.LONGTAIL], LongTailPayload)
    competitor = by_kind[QueryKind.COMPETITOR]
    assert isinstance(competitor, CompetitorPayload)
    assert competitor.comparison_query == "seo site0.com comparison"
    assert competitor.base_query == "seo site0.com"

    queried = [c.args[0] for c in mock_serp_provider.fetch_serp_results.call_args_list]
    assert "seo site0.com" in queried
    assert "seo site0.com comparison" not in queried


@pytest.mark.asyncio
async def test_successful_payloads_are_cached(service, mock_serp_provider, events):
    await service.execute_fanout("seo", [], ExpansionOptions(max_queries=2))
    calls = mock_serp_provider.fetch_serp_results.await_count

    second = await service.execute_fanout("seo", [], ExpansionOptions(max_queries=2))

    assert mock_serp_provider.fetch_serp_results.await_count == calls
    assert all(o.from_cache for o in second.outcomes)
    completed = [e for e in events if isinstance(e, QueryCompleted)]
    assert len(completed) == 4


@pytest.mark.asyncio
async def test_failed_queries_are_not_cached(service, mock_serp_provider, cache):
    mock_serp_provider.fetch_serp_results.side_effect = TransientFailure("503")

    await service.run_item(QueryItem(text="seo", kind=QueryKind.PRIMARY, priority=1.0))

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_open_breaker_skips_remaining_queries(
    mock_serp_provider, retry_service, clock, events, fake_sleep
):
    breakers = CircuitBreakerRegistry(retry_service, failure_threshold=2, clock=clock, event_sink=events.append)
    service = QueryFanoutService(
        serp_provider=mock_serp_provider,
        expander=QueryExpander(),
        breakers=breakers,
        batch_size=1,
        event_sink=events.append,
        sleep=fake_sleep,
    )
    mock_serp_provider.fetch_serp_results.side_effect = TransientFailure("down")

    result = await service.execute_fanout("seo", [], ExpansionOptions(max_queries=4))

    assert mock_serp_provider.fetch_serp_results.await_count == 2
    assert result.report.succeeded == 0
    assert "CircuitOpenFailure" in result.outcomes[2].failure_reason
    assert breakers.get("serp").state.consecutive_failures == 2
    assert FailureKind.CIRCUIT_OPEN.value in [getattr(e, "failure_kind", None) for e in events]


@pytest.mark.asyncio
async def test_unexpected_errors_become_failed_outcomes(service, mocker):
    mocker.patch.object(service.cache, "get", side_effect=RuntimeError("cache broken"))

    result = await service.execute_fanout("seo", [], ExpansionOptions(max_queries=2))

    assert len(result.outcomes) == 2
    assert all(not o.succeeded for o in result.outcomes)
    assert "cache broken" in result.outcomes[0].failure_reason


def test_batch_size_must_be_positive(mock_serp_provider, breakers):
    with pytest.raises(ValueError):
        QueryFanoutService(mock_serp_provider, QueryExpander(), breakers, batch_size=0)
