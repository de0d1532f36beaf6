import pytest

from briefai.domain.events.fanout_events import RetryScheduled
from briefai.domain.models.common import BackoffPolicy
from briefai.domain.models.errors import PermanentFailure, TransientFailure
from briefai.infrastructure.resilience.api_retry import ApiRetryService, backoff_delay


class FlakyOperation:
    """Fails with the given errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def service(fake_sleep, events):
    return ApiRetryService(max_attempts=4, base_delay_s=1.0, max_delay_s=10.0,
                           sleep=fake_sleep, event_sink=events.append)


@pytest.mark.asyncio
async def test_success_on_first_attempt_does_not_sleep(service, sleeps):
    operation = FlakyOperation([])
    assert await service.execute_with_retry(operation) == "ok"
    assert operation.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_retries_transient_errors_with_exponential_backoff(service, sleeps, events):
    operation = FlakyOperation([TransientFailure("429"), TransientFailure("503")])

    assert await service.execute_with_retry(operation, operation_name="fetch") == "ok"

    assert operation.calls == 3
    assert sleeps == [1.0, 2.0]
    retries = [e for e in events if isinstance(e, RetryScheduled)]
    assert [(e.operation, e.attempt_number) for e in retries] == [("fetch", 1), ("fetch", 2)]


@pytest.mark.asyncio
async def test_last_error_is_raised_unchanged(service, sleeps):
    last = TransientFailure("still down")
    operation = FlakyOperation([TransientFailure("1"), TransientFailure("2"), TransientFailure("3"), last])

    with pytest.raises(TransientFailure) as excinfo:
        await service.execute_with_retry(operation)

    assert excinfo.value is last
    assert operation.calls == 4
    assert sleeps == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried(service, sleeps):
    operation = FlakyOperation([PermanentFailure("bad credentials")])

    with pytest.raises(PermanentFailure):
        await service.execute_with_retry(operation)

    assert operation.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_custom_predicate_controls_retries(service):
    operation = FlakyOperation([ValueError("no retry")])

    with pytest.raises(ValueError):
        await service.execute_with_retry(operation, should_retry=lambda e: not isinstance(e, ValueError))

    assert operation.calls == 1


@pytest.mark.parametrize("attempt,expected", [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0), (4, 10.0), (10, 10.0)])
def test_backoff_delay_is_capped(attempt, expected):
    assert backoff_delay(attempt, 1.0, 10.0) == expected


def test_from_policy(fake_sleep):
    service = ApiRetryService.from_policy(
        BackoffPolicy(max_attempts=2, base_delay_s=0.5, max_delay_s=3.0), sleep=fake_sleep
    )
    assert (service.max_attempts, service.base_delay_s, service.max_delay_s) == (2, 0.5, 3.0)


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        ApiRetryService(max_attempts=0)
