#!/usr/bin/env python3
"""Wearable relay - a BLE device (via bleak) that exposes notify channels.

Each stream kind is a notify characteristic of the wearable; its capability
record is what a StreamListener uses to (un)subscribe.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from wearable_tx.interfaces import DeviceInterface
from wearable_tx.listener import ListenerCapability
from wearable_tx.typing import BytesHandlerT

from .const import StreamKind
from .exceptions import DeviceNotFound, ListenerError, TransportError
from .schemas import (
    SCH_DEVICE_CONFIG,
    SZ_ADDRESS,
    SZ_AUDIO_CHAR,
    SZ_BATTERY_CHAR,
    SZ_BUTTON_CHAR,
    SZ_SCAN_TIMEOUT,
)

_LOGGER = logging.getLogger(__name__)

_CHAR_KEYS = {
    StreamKind.AUDIO: SZ_AUDIO_CHAR,
    StreamKind.BUTTON: SZ_BUTTON_CHAR,
    StreamKind.BATTERY: SZ_BATTERY_CHAR,
}


class BleakDevice(DeviceInterface):
    """A wearable, connected via bleak."""

    def __init__(
        self, address: str, config: Mapping[str, Any] | None = None
    ) -> None:
        self._config = SCH_DEVICE_CONFIG({**(config or {}), SZ_ADDRESS: address})
        self.address: str = self._config[SZ_ADDRESS]

        self._client: BleakClient | None = None
        self._disconnecting = False
        self._listeners: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        return f"<BleakDevice address={self.address}>"

    def characteristic(self, kind: StreamKind) -> str:
        try:
            return self._config[_CHAR_KEYS[kind]]  # type: ignore[no-any-return]
        except KeyError as err:
            raise ListenerError(f"No characteristic for stream kind: {kind}") from err

    async def connect(self) -> None:
        """Find the device by its address, and connect to it.

        :raises DeviceNotFound: If the device is not found within the scan timeout.
        :raises TransportError: If the device was found, but could not be connected.
        """

        if self.is_connected():
            return

        _LOGGER.info("Scanning for %s...", self.address)
        device = await BleakScanner.find_device_by_address(
            self.address, timeout=self._config[SZ_SCAN_TIMEOUT]
        )
        if device is None:
            raise DeviceNotFound(f"Device not found: {self.address}")

        self._client = BleakClient(device, disconnected_callback=self._disconnected)
        self._disconnecting = False

        try:
            await self._client.connect()
        except (BleakError, TimeoutError) as err:
            self._client = None
            raise TransportError(f"Unable to connect to {self.address}: {err}") from err

        _LOGGER.info("Connected to %s", self.address)

    async def disconnect(self) -> None:
        if self._client is None:
            return

        self._disconnecting = True
        client, self._client = self._client, None
        try:
            await client.disconnect()
        except BleakError as err:
            _LOGGER.warning("Error while disconnecting from %s: %s", self.address, err)
        _LOGGER.info("Disconnected from %s", self.address)

    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    def _disconnected(self, client: BleakClient) -> None:
        if self._disconnecting:
            return

        _LOGGER.warning("Lost the connection to %s", self.address)
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as err:  # noqa: BLE001
                _LOGGER.exception("Error in a disconnect listener: %s", err)

    def add_disconnect_listener(
        self, listener: Callable[[], None]
    ) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def capability(self, kind: StreamKind) -> ListenerCapability:
        char = self.characteristic(kind)

        async def subscribe(handler: BytesHandlerT) -> str:
            if self._client is None:
                raise TransportError(f"Not connected to {self.address}")
            await self._client.start_notify(char, lambda _, data: handler(data))
            return char

        async def unsubscribe(handle: str) -> None:
            if self._client is None or not self._client.is_connected:
                return  # the subscription died with the link
            await self._client.stop_notify(handle)

        # bleak has no cross-platform API for the connection priority
        return ListenerCapability(subscribe, unsubscribe)
