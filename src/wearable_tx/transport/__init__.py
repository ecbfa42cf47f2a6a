#!/usr/bin/env python3
"""Wearable relay - websocket-like event transports.

Operates at the transport layer of: app - supervisor - transport - socket

"""

from __future__ import annotations

from .base import TransportConfig as TransportConfig
from .callback import CallbackTransport as CallbackTransport
from .factory import (
    RelayTransportT as RelayTransportT,
    TransportConstructorT as TransportConstructorT,
    transport_factory as transport_factory,
)
from .websocket import WebSocketTransport as WebSocketTransport

__all__ = [
    "CallbackTransport",
    "RelayTransportT",
    "TransportConfig",
    "TransportConstructorT",
    "WebSocketTransport",
    "transport_factory",
]
