"""Runs work items in fixed-size concurrent batches.

Items inside a batch start together and the batch ends when all of them
have settled. Batches run strictly one after another with a fixed pause in
between to stay under external API rate limits.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

from briefai.domain.events.fanout_events import BatchCompleted, EventSink, log_event

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_INTER_BATCH_DELAY_S = 1.0


def create_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


async def run_batches(
    items: Sequence[T],
    batch_size: int,
    per_item: Callable[[T], Awaitable[R]],
    inter_batch_delay_s: float = DEFAULT_INTER_BATCH_DELAY_S,
    on_error: Optional[Callable[[T, BaseException], R]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    event_sink: EventSink = log_event,
) -> List[Union[R, BaseException]]:
    """Runs ``per_item`` over ``items`` in batches and returns results in input order.

    A failing item never cancels its siblings or later batches. Its slot holds
    ``on_error(item, exc)`` when given, otherwise the exception itself.
    """
    batches = create_batches(items, batch_size)
    results: List[Union[R, BaseException]] = []

    for index, batch in enumerate(batches):
        settled = await asyncio.gather(*(per_item(item) for item in batch), return_exceptions=True)

        failures = 0
        for item, outcome in zip(batch, settled):
            if isinstance(outcome, BaseException):
                failures += 1
                logger.warning(f"Batch item {item!r} failed: {outcome}")
                results.append(on_error(item, outcome) if on_error else outcome)
            else:
                results.append(outcome)

        logger.debug(f"Batch {index + 1}/{len(batches)} settled ({len(batch)} items, {failures} failed)")
        event_sink(BatchCompleted(
            batch_index=index,
            batch_count=len(batches),
            size=len(batch),
            failures=failures,
        ))

        if index < len(batches) - 1 and inter_batch_delay_s > 0:
            await sleep(inter_batch_delay_s)

    return results
