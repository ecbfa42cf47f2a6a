#!/usr/bin/env python3
"""Wearable relay - the device listener (a StreamListener per stream kind)."""

from __future__ import annotations

import logging
from typing import Any

from wearable_tx.interfaces import DeviceInterface
from wearable_tx.lifecycle import LifecycleNotifier, LoggingNotifier
from wearable_tx.listener import ListenerConfig, StreamListener, StreamState
from wearable_tx.observable import StreamSnapshot
from wearable_tx.typing import BytesHandlerT

from .const import StreamKind
from .exceptions import ListenerError
from .schemas import SCH_LISTENER_CONFIG

_LOGGER = logging.getLogger(__name__)


class DeviceListener:
    """Listen to the notifications of a device, one independent stream per kind.

    Each kind has its own retry state, subscription and packet counter, so (say)
    the audio stream may be retrying while the button stream is active.
    """

    def __init__(
        self,
        device: DeviceInterface,
        config: dict[str, Any] | None = None,
        /,
        *,
        notifier: LifecycleNotifier | None = None,
    ) -> None:
        self.device = device
        self.config = SCH_LISTENER_CONFIG(config or {})

        listener_config = ListenerConfig.from_dict(self.config)
        notifier = notifier or LoggingNotifier()

        self._listeners: dict[StreamKind, StreamListener] = {
            kind: StreamListener(
                kind,
                device.capability(kind),
                is_connected=device.is_connected,
                config=listener_config,
                notifier=notifier,
            )
            for kind in StreamKind
        }
        self._remove_listener = device.add_disconnect_listener(self.connection_lost)

    def __repr__(self) -> str:
        states = ", ".join(f"{k}={v.state}" for k, v in self._listeners.items())
        return f"<DeviceListener {states}>"

    def listener(self, kind: StreamKind) -> StreamListener:
        try:
            return self._listeners[StreamKind(kind)]
        except ValueError as err:
            raise ListenerError(f"Unknown stream kind: {kind}") from err

    def state(self, kind: StreamKind) -> StreamState:
        return self.listener(kind).state

    def snapshot(self, kind: StreamKind) -> StreamSnapshot:
        return self.listener(kind).snapshot

    @property
    def is_retrying(self) -> bool:
        return any(ls.state == StreamState.RETRYING for ls in self._listeners.values())

    async def start(self, kind: StreamKind, handler: BytesHandlerT) -> None:
        """Start (or restart) the listener of a stream kind.

        :raises ConnectivityError: If the device is not connected.
        """
        await self.listener(kind).start(handler)

    async def stop(self, kind: StreamKind) -> None:
        await self.listener(kind).stop()

    async def stop_all(self) -> None:
        for listener in self._listeners.values():
            await listener.stop()

    def connection_lost(self) -> None:
        """The device link was lost: the active streams will resubscribe."""
        for listener in self._listeners.values():
            listener.connection_lost()

    def close(self) -> None:
        """Detach from the owner (e.g. the UI), without unsubscribing."""
        self._remove_listener()
        for listener in self._listeners.values():
            listener.close()

    async def start_audio_listener(self, handler: BytesHandlerT) -> None:
        await self.start(StreamKind.AUDIO, handler)

    async def stop_audio_listener(self) -> None:
        await self.stop(StreamKind.AUDIO)

    async def start_button_listener(self, handler: BytesHandlerT) -> None:
        await self.start(StreamKind.BUTTON, handler)

    async def stop_button_listener(self) -> None:
        await self.stop(StreamKind.BUTTON)

    async def start_battery_listener(self, handler: BytesHandlerT) -> None:
        await self.start(StreamKind.BATTERY, handler)

    async def stop_battery_listener(self) -> None:
        await self.stop(StreamKind.BATTERY)
