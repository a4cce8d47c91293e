"""Property tests for batch claim disjointness and replay order."""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from changefeed.capture import ChangePayload
from changefeed.outbox import EventPublisher, InMemoryBatchDispatcher, InMemoryEventLogRepository, NullBroadcaster


async def _seeded_dispatcher(count: int) -> InMemoryBatchDispatcher:
    log = InMemoryEventLogRepository()
    publisher = EventPublisher(log, NullBroadcaster())
    for index in range(count):
        await publisher.publish("dept", "update", ChangePayload(new_values={"loc": str(index)}), str(index))
    return InMemoryBatchDispatcher(log)


@given(
    event_count=st.integers(min_value=0, max_value=60),
    limits=st.lists(st.integers(min_value=1, max_value=25), min_size=1, max_size=8),
)
@settings(max_examples=30, deadline=None)
def test_property_concurrent_claims_partition_the_log(event_count: int, limits: list[int]) -> None:
    """Property: concurrent claims never overlap and never exceed the backlog."""

    async def _run() -> None:
        dispatcher = await _seeded_dispatcher(event_count)
        batches = await asyncio.gather(
            *(dispatcher.claim(limit, f"batch-{index}") for index, limit in enumerate(limits))
        )
        claimed: list[int] = []
        for limit, batch in zip(limits, batches):
            ids = [entry.id for entry in batch]
            assert ids == sorted(ids)
            assert len(ids) <= limit
            claimed.extend(ids)
        assert len(claimed) == len(set(claimed))
        assert len(claimed) == min(event_count, sum(limits))
        assert await dispatcher.backlog() == event_count - len(claimed)

    asyncio.run(_run())


@given(
    event_count=st.integers(min_value=1, max_value=40),
    rounds=st.lists(st.tuples(st.integers(min_value=1, max_value=10), st.booleans()), min_size=1, max_size=10),
)
@settings(max_examples=30, deadline=None)
def test_property_processed_events_are_never_redelivered(
    event_count: int, rounds: list[tuple[int, bool]]
) -> None:
    """Property: once a batch is marked processed its events are never claimed again."""

    async def _run() -> None:
        dispatcher = await _seeded_dispatcher(event_count)
        processed: set[int] = set()
        for index, (limit, complete) in enumerate(rounds):
            batch_id = f"round-{index}"
            entries = await dispatcher.claim(limit, batch_id)
            ids = {entry.id for entry in entries}
            assert ids.isdisjoint(processed)
            if complete:
                assert await dispatcher.mark_processed(batch_id) == len(ids)
                processed |= ids
            else:
                assert await dispatcher.release(batch_id) == len(ids)

    asyncio.run(_run())
