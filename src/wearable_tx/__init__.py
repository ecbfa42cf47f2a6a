#!/usr/bin/env python3
"""Wearable relay - the transport layer.

Keeps a stream of framed events flowing from a wearable to a server, across an
unreliable transport: a connection supervisor (with backoff, heartbeat and
network-triggered recovery) and a listener supervisor per stream kind.
"""

from __future__ import annotations

from .backoff import LISTENER_BACKOFF, SOCKET_BACKOFF, BackoffPolicy
from .codec import (
    AUDIO_PROFILE,
    BUTTON_PROFILE,
    FramedEvent,
    StreamProfile,
    encode,
    encode_ping,
    write_event,
)
from .const import EventKind, ReadyState, StreamKind
from .exceptions import (
    ConnectivityError,
    ProtocolFsmError,
    RelayException,
    RetryExhaustedError,
    TransportError,
    TransportSourceInvalid,
    ValidationError,
)
from .lifecycle import LifecycleNotifier, LoggingNotifier
from .listener import ListenerCapability, ListenerConfig, StreamListener, StreamState
from .observable import ObservableState, StreamSnapshot
from .protocol import ConnectionContext, SupervisorConfig
from .reachability import ReachabilityMonitor, StaticReachability, TcpProbeMonitor
from .transport import CallbackTransport, TransportConfig, WebSocketTransport
from .typing import Reachability, RetryContext

__version__ = "0.1.0"

__all__ = [
    "AUDIO_PROFILE",
    "BUTTON_PROFILE",
    "LISTENER_BACKOFF",
    "SOCKET_BACKOFF",
    #
    "BackoffPolicy",
    "CallbackTransport",
    "ConnectionContext",
    "ConnectivityError",
    "EventKind",
    "FramedEvent",
    "LifecycleNotifier",
    "ListenerCapability",
    "ListenerConfig",
    "LoggingNotifier",
    "ObservableState",
    "ProtocolFsmError",
    "Reachability",
    "ReachabilityMonitor",
    "ReadyState",
    "RelayException",
    "RetryContext",
    "RetryExhaustedError",
    "StaticReachability",
    "StreamKind",
    "StreamListener",
    "StreamProfile",
    "StreamSnapshot",
    "StreamState",
    "SupervisorConfig",
    "TcpProbeMonitor",
    "TransportConfig",
    "TransportError",
    "TransportSourceInvalid",
    "ValidationError",
    "WebSocketTransport",
    #
    "encode",
    "encode_ping",
    "write_event",
]
