#!/usr/bin/env python3
"""Tests for the DeviceListener (a listener supervisor per stream kind)."""

from collections.abc import Callable
from typing import Any

import pytest

from tests.helpers import RecordingNotifier, wait_for
from wearable_relay import ConnectivityError, DeviceListener, ListenerError, StreamKind
from wearable_tx.interfaces import DeviceInterface
from wearable_tx.listener import ListenerCapability, StreamState

FAST = {"base_delay": 0.01, "max_delay": 0.04, "max_attempts": 3, "flush_interval": 0.01}


class FakeDevice(DeviceInterface):
    """A device with a notify channel per stream kind."""

    def __init__(self) -> None:
        self.connected = True
        self.failing: set[StreamKind] = set()
        self.handlers: dict[StreamKind, Any] = {}
        self.unsubscribed: list[StreamKind] = []
        self._listeners: list[Callable[[], None]] = []

    def is_connected(self) -> bool:
        return self.connected

    def capability(self, kind: StreamKind) -> ListenerCapability:
        async def subscribe(handler: Callable[[bytes], None]) -> StreamKind:
            if kind in self.failing:
                raise OSError(f"{kind} characteristic not found")
            self.handlers[kind] = handler
            return kind

        async def unsubscribe(handle: StreamKind) -> None:
            self.unsubscribed.append(handle)

        return ListenerCapability(subscribe, unsubscribe)

    def add_disconnect_listener(
        self, listener: Callable[[], None]
    ) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def drop_link(self) -> None:
        for listener in list(self._listeners):
            listener()


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


async def test_start_each_kind(device: FakeDevice, notifier: RecordingNotifier) -> None:
    listener = DeviceListener(device, FAST, notifier=notifier)
    received: list[tuple[str, bytes]] = []

    await listener.start_audio_listener(lambda d: received.append(("audio", d)))
    await listener.start_button_listener(lambda d: received.append(("button", d)))
    await listener.start_battery_listener(lambda d: received.append(("battery", d)))

    for kind in StreamKind:
        assert listener.state(kind) == StreamState.ACTIVE

    device.handlers[StreamKind.BUTTON](b"\x01")
    device.handlers[StreamKind.BATTERY](b"\x64")
    assert received == [("button", b"\x01"), ("battery", b"\x64")]

    await wait_for(lambda: listener.snapshot(StreamKind.BUTTON).packets_received == 1)
    assert listener.snapshot(StreamKind.AUDIO).packets_received == 0

    await listener.stop_audio_listener()
    await listener.stop_button_listener()
    await listener.stop_battery_listener()
    assert device.unsubscribed == list(StreamKind)


async def test_kinds_retry_independently(
    device: FakeDevice, notifier: RecordingNotifier
) -> None:
    device.failing = {StreamKind.AUDIO}
    listener = DeviceListener(device, FAST, notifier=notifier)

    await listener.start(StreamKind.AUDIO, lambda d: None)
    await listener.start(StreamKind.BUTTON, lambda d: None)

    assert listener.state(StreamKind.AUDIO) == StreamState.RETRYING
    assert listener.state(StreamKind.BUTTON) == StreamState.ACTIVE
    assert listener.is_retrying

    device.failing = set()
    await wait_for(lambda: listener.state(StreamKind.AUDIO) == StreamState.ACTIVE)
    assert not listener.is_retrying

    await listener.stop_all()
    for kind in StreamKind:
        assert listener.state(kind) == StreamState.IDLE


async def test_exhaustion_is_notified_per_kind(
    device: FakeDevice, notifier: RecordingNotifier
) -> None:
    device.failing = {StreamKind.BATTERY}
    listener = DeviceListener(device, FAST, notifier=notifier)

    await listener.start(StreamKind.BATTERY, lambda d: None)
    await wait_for(lambda: listener.state(StreamKind.BATTERY) == StreamState.FAILED)
    await wait_for(lambda: len(notifier.notifications) == 1)

    assert notifier.notifications[0][0] == "Battery Listener Failed"
    await listener.stop_all()


async def test_start_when_not_connected(
    device: FakeDevice, notifier: RecordingNotifier
) -> None:
    device.connected = False
    listener = DeviceListener(device, FAST, notifier=notifier)

    with pytest.raises(ConnectivityError):
        await listener.start_audio_listener(lambda d: None)

    assert notifier.notifications[0][0] == "Not Connected"


async def test_link_lost_resubscribes(
    device: FakeDevice, notifier: RecordingNotifier
) -> None:
    listener = DeviceListener(device, FAST, notifier=notifier)
    await listener.start(StreamKind.AUDIO, lambda d: None)

    device.drop_link()
    assert listener.state(StreamKind.AUDIO) == StreamState.RETRYING
    assert listener.state(StreamKind.BUTTON) == StreamState.IDLE  # was not active

    await wait_for(lambda: listener.state(StreamKind.AUDIO) == StreamState.ACTIVE)
    await listener.stop_all()


async def test_close_detaches(device: FakeDevice, notifier: RecordingNotifier) -> None:
    listener = DeviceListener(device, FAST, notifier=notifier)
    await listener.start(StreamKind.AUDIO, lambda d: None)

    listener.close()

    assert device._listeners == []
    assert device.unsubscribed == []  # the subscription is kept


async def test_unknown_kind(device: FakeDevice) -> None:
    listener = DeviceListener(device)

    with pytest.raises(ListenerError):
        listener.state("video")  # type: ignore[arg-type]


async def test_counter_reset_is_configurable(
    device: FakeDevice, notifier: RecordingNotifier
) -> None:
    listener = DeviceListener(
        device, {**FAST, "reset_counter_on_stop": False}, notifier=notifier
    )
    await listener.start(StreamKind.BUTTON, lambda d: None)
    device.handlers[StreamKind.BUTTON](b"\x01")

    await listener.stop(StreamKind.BUTTON)

    assert listener.snapshot(StreamKind.BUTTON).packets_received == 1
