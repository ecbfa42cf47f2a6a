#!/usr/bin/env python3
"""Wearable relay - relay the sensor data of a wearable to a websocket server.

Works with the transport layer (wearable_tx) for connection management.
"""

from __future__ import annotations

from wearable_tx import (
    LoggingNotifier,
    StaticReachability,
    StreamSnapshot,
    TcpProbeMonitor,
)

from .ble import BleakDevice
from .const import EventKind, ReadyState, StreamKind
from .exceptions import (
    ConnectivityError,
    DeviceNotFound,
    ListenerError,
    RelayException,
    RetryExhaustedError,
    TransportError,
    ValidationError,
)
from .listener import DeviceListener
from .streamer import Streamer

__version__ = "0.1.0"

__all__ = [
    "BleakDevice",
    "ConnectivityError",
    "DeviceListener",
    "DeviceNotFound",
    "EventKind",
    "ListenerError",
    "LoggingNotifier",
    "ReadyState",
    "RelayException",
    "RetryExhaustedError",
    "StaticReachability",
    "StreamKind",
    "StreamSnapshot",
    "Streamer",
    "TcpProbeMonitor",
    "TransportError",
    "ValidationError",
]
