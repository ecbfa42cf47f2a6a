#!/usr/bin/env python3
"""Unittests for the observable state, and the packet counter."""

import asyncio

from tests.helpers import wait_for
from wearable_tx.counter import PacketCounter
from wearable_tx.observable import ObservableState, StreamSnapshot


def test_update_notifies_on_change_only() -> None:
    state = ObservableState()
    seen: list[StreamSnapshot] = []
    state.subscribe(seen.append)

    assert state.update(is_active=True) is True
    assert state.update(is_active=True) is False  # no change
    assert state.update(is_active=True, retry_attempts=0) is False

    assert len(seen) == 1
    assert seen[0] == StreamSnapshot(is_active=True)


def test_unsubscribe() -> None:
    state = ObservableState()
    seen: list[StreamSnapshot] = []
    unsubscribe = state.subscribe(seen.append)

    unsubscribe()
    unsubscribe()  # idempotent
    state.update(last_error="boom")

    assert seen == []
    assert state.snapshot.last_error == "boom"


def test_updates_dropped_after_close() -> None:
    state = ObservableState()
    seen: list[StreamSnapshot] = []
    state.subscribe(seen.append)

    state.close()

    assert state.update(is_active=True) is False
    assert state.snapshot.is_active is False
    assert seen == []


def test_observer_errors_are_contained() -> None:
    state = ObservableState()
    seen: list[StreamSnapshot] = []

    def bad_observer(snapshot: StreamSnapshot) -> None:
        raise RuntimeError("UI has gone")

    state.subscribe(bad_observer)
    state.subscribe(seen.append)

    assert state.update(packets_received=1) is True
    assert len(seen) == 1


async def test_counter_flushes_periodically() -> None:
    published: list[int] = []
    counter = PacketCounter(published.append, flush_interval=0.01)

    counter.start()
    counter.increment()
    counter.increment(2)
    assert counter.total == 3

    await wait_for(lambda: published == [3])

    await asyncio.sleep(0.03)
    assert published == [3]  # nothing new, so nothing published

    counter.increment()
    await wait_for(lambda: published == [3, 4])  # the total is cumulative

    counter.stop()
    await counter.wait_stopped()
    assert not counter.is_running


def test_counter_stop_and_reset() -> None:
    published: list[int] = []
    counter = PacketCounter(published.append)

    counter.increment(5)
    counter.stop()
    assert published == [5]

    counter.increment(2)
    counter.stop(reset_total=True)
    assert published == [5, 0]
    assert counter.total == 0
