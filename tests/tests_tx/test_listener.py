#!/usr/bin/env python3
"""Tests for the listener supervisor (one per stream kind)."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from tests.helpers import RecordingNotifier, settle, wait_for
from wearable_tx.backoff import BackoffPolicy
from wearable_tx.const import StreamKind
from wearable_tx.exceptions import ConnectivityError, ProtocolFsmError, TransportError
from wearable_tx.listener import (
    ListenerCapability,
    ListenerConfig,
    StreamListener,
    StreamState,
)

BACKOFF = BackoffPolicy(base_delay=0.01, max_delay=0.04, max_attempts=3, jitter=0.3)
CONFIG = ListenerConfig(backoff=BACKOFF, flush_interval=0.01)


class FakeChannel:
    """A notify channel of a fake device."""

    def __init__(self) -> None:
        self.connected = True
        self.fail = 0  # the next subscribes that fail
        self.attempts = 0
        self.handler: Any = None
        self.unsubscribed: list[str] = []
        self.unsubscribe_error: Exception | None = None

    async def subscribe(self, handler: Callable[[bytes], None]) -> str:
        self.attempts += 1
        if self.fail > 0:
            self.fail -= 1
            raise TransportError("GATT error")
        self.handler = handler
        return f"handle-{self.attempts}"

    async def unsubscribe(self, handle: str) -> None:
        if self.unsubscribe_error:
            raise self.unsubscribe_error
        self.unsubscribed.append(handle)

    def capability(
        self, request_priority: Callable[[], Awaitable[None]] | None = None
    ) -> ListenerCapability:
        return ListenerCapability(self.subscribe, self.unsubscribe, request_priority)

    def is_connected(self) -> bool:
        return self.connected


def _make_listener(
    channel: FakeChannel,
    notifier: RecordingNotifier,
    kind: StreamKind = StreamKind.AUDIO,
    config: ListenerConfig = CONFIG,
    request_priority: Callable[[], Awaitable[None]] | None = None,
) -> StreamListener:
    return StreamListener(
        kind,
        channel.capability(request_priority),
        is_connected=channel.is_connected,
        config=config,
        notifier=notifier,
    )


async def test_start_not_connected(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    channel.connected = False
    listener = _make_listener(channel, notifier)

    with pytest.raises(ConnectivityError):
        await listener.start(lambda data: None)

    assert listener.state == StreamState.IDLE
    assert channel.attempts == 0
    assert notifier.notifications == [
        ("Not Connected", "Please connect to a device first to start audio listener.")
    ]


async def test_start_and_receive(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    listener = _make_listener(channel, notifier)
    received: list[bytes] = []

    await listener.start(received.append)

    assert listener.state == StreamState.ACTIVE
    assert listener.snapshot.is_active
    assert listener.counter.is_running

    for data in (b"\x01", bytearray(b"\x02"), b"", b"\x03"):
        channel.handler(data)

    assert received == [b"\x01", b"\x02", b"\x03"]  # empty packets are not passed on
    await wait_for(lambda: listener.snapshot.packets_received == 4)

    await listener.stop()
    assert listener.state == StreamState.IDLE
    assert channel.unsubscribed == ["handle-1"]


async def test_packet_counts_are_batched(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    config = ListenerConfig(backoff=BACKOFF, flush_interval=10.0)
    listener = _make_listener(channel, notifier, config=config)
    updates: list[int] = []
    listener.observable.subscribe(lambda s: updates.append(s.packets_received))

    await listener.start(lambda data: None)
    for _ in range(100):
        channel.handler(b"\x00")
    await settle()

    assert listener.snapshot.packets_received == 0  # not yet flushed
    assert listener.counter.total == 100

    listener.counter.flush()
    assert listener.snapshot.packets_received == 100
    assert updates.count(100) == 1
    await listener.stop()


async def test_restart_stops_first(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    listener = _make_listener(channel, notifier)

    await listener.start(lambda data: None)
    await listener.start(lambda data: None)

    assert listener.state == StreamState.ACTIVE
    assert channel.unsubscribed == ["handle-1"]
    assert channel.attempts == 2
    await listener.stop()


async def test_requests_priority(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    priority = AsyncMock()
    listener = _make_listener(channel, notifier, request_priority=priority)

    await listener.start(lambda data: None)

    priority.assert_awaited_once()
    assert listener.state == StreamState.ACTIVE
    await listener.stop()


async def test_priority_failure_does_not_block(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    priority = AsyncMock(side_effect=RuntimeError("not supported"))
    listener = _make_listener(channel, notifier, request_priority=priority)

    await listener.start(lambda data: None)

    assert listener.state == StreamState.ACTIVE
    await listener.stop()


async def test_retries_then_succeeds(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    channel.fail = 2
    listener = _make_listener(channel, notifier)

    await listener.start(lambda data: None)
    assert listener.state == StreamState.RETRYING
    assert listener.snapshot.is_retrying
    assert listener.snapshot.retry_attempts == 1
    assert listener.next_retry_delay is not None

    await wait_for(lambda: listener.state == StreamState.ACTIVE)

    assert channel.attempts == 3
    assert listener.retry.attempt_count == 0
    assert listener.snapshot.retry_attempts == 0
    assert listener.snapshot.last_error is None
    await listener.stop()


async def test_subscribe_without_handle_is_a_failure(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    capability = ListenerCapability(AsyncMock(return_value=None), AsyncMock())
    listener = StreamListener(
        StreamKind.BUTTON,
        capability,
        is_connected=channel.is_connected,
        config=CONFIG,
        notifier=notifier,
    )

    await listener.start(lambda data: None)

    assert listener.state == StreamState.RETRYING
    await listener.stop()


async def test_retries_exhausted(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    channel.fail = 99
    listener = _make_listener(channel, notifier)

    await listener.start(lambda data: None)
    await wait_for(lambda: listener.state == StreamState.FAILED)
    await settle()

    assert channel.attempts == 1 + BACKOFF.max_attempts
    assert not listener.snapshot.is_active
    assert not listener.snapshot.is_retrying
    assert notifier.notifications == [
        (
            "Audio Listener Failed",
            "Failed to start audio listener after 3 attempts. Please try again manually.",
        )
    ]

    await asyncio.sleep(BACKOFF.max_delay * 3)
    assert channel.attempts == 1 + BACKOFF.max_attempts

    await listener.stop()
    assert listener.state == StreamState.IDLE


async def test_kinds_are_independent(notifier: RecordingNotifier) -> None:
    """One stream kind may be retrying while another is active."""
    audio, button = FakeChannel(), FakeChannel()
    audio.fail = 99
    audio_listener = _make_listener(audio, notifier, StreamKind.AUDIO)
    button_listener = _make_listener(button, notifier, StreamKind.BUTTON)

    await audio_listener.start(lambda data: None)
    await button_listener.start(lambda data: None)

    assert audio_listener.state == StreamState.RETRYING
    assert button_listener.state == StreamState.ACTIVE

    await audio_listener.stop()
    assert button_listener.state == StreamState.ACTIVE
    await button_listener.stop()


async def test_stop_when_retrying(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    channel.fail = 99
    listener = _make_listener(channel, notifier)

    await listener.start(lambda data: None)
    await listener.stop()

    assert listener.state == StreamState.IDLE
    assert listener.next_retry_delay is None
    assert channel.unsubscribed == []  # it was never subscribed

    await asyncio.sleep(BACKOFF.max_delay * 3)
    assert channel.attempts == 1


async def test_stop_failure_is_reported(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    listener = _make_listener(channel, notifier)
    await listener.start(lambda data: None)

    channel.unsubscribe_error = RuntimeError("GATT busy")
    await listener.stop()

    assert listener.state == StreamState.IDLE
    assert listener.snapshot.last_error == "Failed to stop audio listener"
    assert notifier.notifications[-1] == (
        "Error",
        "Failed to stop audio listener: GATT busy",
    )


@pytest.mark.parametrize("reset_on_stop,expected", [(True, 0), (False, 2)])
async def test_counter_on_stop(
    notifier: RecordingNotifier, reset_on_stop: bool, expected: int
) -> None:
    channel = FakeChannel()
    config = ListenerConfig(
        backoff=BACKOFF, flush_interval=10.0, reset_counter_on_stop=reset_on_stop
    )
    listener = _make_listener(channel, notifier, config=config)

    await listener.start(lambda data: None)
    channel.handler(b"\x01")
    channel.handler(b"\x02")
    await listener.stop()

    assert listener.snapshot.packets_received == expected
    assert not listener.counter.is_running


async def test_connection_lost_resubscribes(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    listener = _make_listener(channel, notifier)
    await listener.start(lambda data: None)

    listener.connection_lost()
    assert listener.state == StreamState.RETRYING

    await wait_for(lambda: listener.state == StreamState.ACTIVE)
    assert channel.attempts == 2
    await listener.stop()


async def test_connection_lost_when_idle(notifier: RecordingNotifier) -> None:
    listener = _make_listener(FakeChannel(), notifier)

    listener.connection_lost()
    assert listener.state == StreamState.IDLE


async def test_handler_errors_are_contained(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    listener = _make_listener(channel, notifier)

    def handler(data: bytes) -> None:
        raise ValueError("bad packet")

    await listener.start(handler)
    channel.handler(b"\x01")  # does not raise

    assert listener.state == StreamState.ACTIVE
    assert listener.counter.total == 1
    await listener.stop()


async def test_invalid_transition(notifier: RecordingNotifier) -> None:
    listener = _make_listener(FakeChannel(), notifier)

    with pytest.raises(ProtocolFsmError):
        listener._set_state(StreamState.ACTIVE)


async def test_close_keeps_subscription(notifier: RecordingNotifier) -> None:
    channel = FakeChannel()
    listener = _make_listener(channel, notifier)
    await listener.start(lambda data: None)

    listener.close()

    assert listener.state == StreamState.ACTIVE
    assert channel.unsubscribed == []
    assert listener.observable.is_closed
