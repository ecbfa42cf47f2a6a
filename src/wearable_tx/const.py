#!/usr/bin/env python3
"""Wearable relay - constants for the transport layer."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from types import MappingProxyType
from typing import Any, Final

# framed events (the header is a JSON line, optionally followed by raw bytes)
PROTOCOL_VERSION: Final[str] = "1.0.0"
FRAME_DELIMITER: Final[str] = "\n"

SZ_TYPE: Final = "type"
SZ_DATA: Final = "data"
SZ_VERSION: Final = "version"
SZ_PAYLOAD_LENGTH: Final = "payload_length"
SZ_TIMESTAMP: Final = "timestamp"
SZ_PING_TIME: Final = "t"

# the device emits 16 kHz, 16-bit, mono PCM
AUDIO_FORMAT: Final[MappingProxyType[str, Any]] = MappingProxyType(
    {"rate": 16000, "width": 2, "channels": 1}
)

# closing with exactly this pair means "stopped on purpose, do not reconnect"
MANUAL_CLOSE_CODE: Final[int] = 1000
MANUAL_CLOSE_REASON: Final[str] = "manual-stop"
NORMAL_CLOSE_CODE: Final[int] = 1000
ABNORMAL_CLOSE_CODE: Final[int] = 1006

# socket (streamer) retry policy: 3s, 6s, 12s, ... capped at 30s
DEFAULT_BASE_DELAY: Final[float] = 3.0
DEFAULT_MAX_DELAY: Final[float] = 30.0
DEFAULT_MAX_ATTEMPTS: Final[int] = 10
DEFAULT_HEARTBEAT_INTERVAL: Final[float] = 25.0

# listener retry policy: 1s, 2s, 4s, ... capped at 60s, plus up to 30% jitter
LISTENER_BASE_DELAY: Final[float] = 1.0
LISTENER_MAX_DELAY: Final[float] = 60.0
LISTENER_JITTER: Final[float] = 0.3

DEFAULT_FLUSH_INTERVAL: Final[float] = 0.5

DEFAULT_OPEN_TIMEOUT: Final[float] = 10.0
DEFAULT_CLOSE_TIMEOUT: Final[float] = 5.0
DEFAULT_PING_INTERVAL: Final[float] = 20.0

DEFAULT_KEEP_ALIVE_TITLE: Final[str] = "Streaming active"
DEFAULT_KEEP_ALIVE_BODY: Final[str] = "Keeping WebSocket connection alive"

# user-facing error texts
ERR_TARGET_REQUIRED: Final[str] = "WebSocket URL is required."
ERR_NO_INTERNET: Final[str] = "No internet connection."
ERR_RECONNECTING: Final[str] = "Connection closed; attempting to reconnect."

NOTIFY_CONNECTION_LOST: Final[str] = "Connection lost"
NOTIFY_RECONNECT_FAILED: Final[str] = "Failed to reconnect after multiple attempts."
NOTIFY_NOT_CONNECTED: Final[str] = "Not Connected"
NOTIFY_ERROR: Final[str] = "Error"


class EventKind(StrEnum):
    """The tags of the framed events sent to the server."""

    AUDIO_START = "audio-start"
    AUDIO_CHUNK = "audio-chunk"
    AUDIO_STOP = "audio-stop"
    BUTTON_STATE = "button-state"
    BATTERY_LEVEL = "battery-level"
    PING = "ping"


class StreamKind(StrEnum):
    """The independently-managed categories of sensor data."""

    AUDIO = "audio"
    BUTTON = "button"
    BATTERY = "battery"


class ReadyState(IntEnum):
    """The ready state of a transport (numerically as per the WebSocket API)."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3
