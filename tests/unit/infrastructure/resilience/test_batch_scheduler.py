import asyncio

import pytest

from briefai.domain.events.fanout_events import BatchCompleted
from briefai.infrastructure.resilience.batch_scheduler import create_batches, run_batches


def test_create_batches_splits_in_order():
    assert create_batches(list(range(7)), 3) == [[0, 1, 2], [3, 4, 5], [6]]
    assert create_batches([], 3) == []


def test_create_batches_rejects_non_positive_size():
    with pytest.raises(ValueError):
        create_batches([1, 2], 0)


@pytest.mark.asyncio
async def test_results_keep_input_order(fake_sleep, events):
    async def per_item(n):
        # later items finish first inside a batch
        await asyncio.sleep(0.001 * (5 - n))
        return n * 10

    results = await run_batches([1, 2, 3, 4], 2, per_item, sleep=fake_sleep, event_sink=events.append)

    assert results == [10, 20, 30, 40]


@pytest.mark.asyncio
async def test_failures_do_not_abort_siblings_or_later_batches(fake_sleep, events):
    async def per_item(n):
        if n in (1, 4):
            raise RuntimeError(f"boom {n}")
        return n

    results = await run_batches(list(range(6)), 3, per_item, sleep=fake_sleep, event_sink=events.append)

    assert [r for r in results if not isinstance(r, Exception)] == [0, 2, 3, 5]
    assert isinstance(results[1], RuntimeError)
    assert isinstance(results[4], RuntimeError)


@pytest.mark.asyncio
async def test_on_error_converts_failures(fake_sleep, events):
    async def per_item(n):
        raise ValueError("bad")

    results = await run_batches(
        ["a", "b"], 5, per_item,
        on_error=lambda item, exc: f"{item}:{exc}",
        sleep=fake_sleep, event_sink=events.append,
    )

    assert results == ["a:bad", "b:bad"]


@pytest.mark.asyncio
async def test_sleeps_between_batches_but_not_after_last(fake_sleep, sleeps, events):
    async def per_item(n):
        return n

    await run_batches(list(range(7)), 3, per_item, inter_batch_delay_s=1.0,
                      sleep=fake_sleep, event_sink=events.append)

    assert sleeps == [1.0, 1.0]
    completed = [e for e in events if isinstance(e, BatchCompleted)]
    assert [e.size for e in completed] == [3, 3, 1]


@pytest.mark.asyncio
async def test_batches_run_sequentially(fake_sleep, events):
    running = 0
    peak = 0

    async def per_item(n):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0)
        running -= 1
        return n

    await run_batches(list(range(9)), 3, per_item, sleep=fake_sleep, event_sink=events.append)

    assert peak <= 3
