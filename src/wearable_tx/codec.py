#!/usr/bin/env python3
"""Wearable relay - the framed event codec.

Each event is a JSON header terminated by a newline, optionally followed (as a
separate write) by exactly payload_length raw bytes:

    {"type": "audio-chunk", "data": {...}, "version": "1.0.0", "payload_length": 320}
    <320 bytes of PCM>

Only the encode direction is implemented; replies from the server are logged, not
parsed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .const import (
    AUDIO_FORMAT,
    FRAME_DELIMITER,
    PROTOCOL_VERSION,
    SZ_DATA,
    SZ_PAYLOAD_LENGTH,
    SZ_PING_TIME,
    SZ_TIMESTAMP,
    SZ_TYPE,
    SZ_VERSION,
    EventKind,
    ReadyState,
    StreamKind,
)
from .helpers import timestamp_ms

if TYPE_CHECKING:
    from .interfaces import TransportInterface

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FramedEvent:
    """One logical protocol message: a typed header plus an optional payload."""

    kind: str
    data: Mapping[str, Any] | None = None
    payload: bytes | None = None

    def __post_init__(self) -> None:
        if not self.kind:
            raise ValueError("An event must have a kind")
        if self.payload is not None and not isinstance(self.payload, bytes | bytearray):
            raise TypeError(f"Payload must be bytes, not {type(self.payload)}")

    def __str__(self) -> str:
        return f"{self.kind} ({self.payload_length} bytes)"

    @property
    def payload_length(self) -> int | None:
        """Return the payload length, or None if there is no payload."""
        return None if self.payload is None else len(self.payload)

    @property
    def header(self) -> dict[str, Any]:
        hdr: dict[str, Any] = {SZ_TYPE: str(self.kind)}
        if self.data is not None:
            hdr[SZ_DATA] = dict(self.data)
        hdr[SZ_VERSION] = PROTOCOL_VERSION
        hdr[SZ_PAYLOAD_LENGTH] = self.payload_length
        return hdr

    def encode(self) -> tuple[str, bytes | None]:
        """Return the header line, and the payload bytes if any are to be written."""
        line = json.dumps(self.header, separators=(",", ":")) + FRAME_DELIMITER
        return line, (bytes(self.payload) if self.payload else None)


def encode(
    kind: str, data: Mapping[str, Any] | None = None, payload: bytes | None = None
) -> tuple[str, bytes | None]:
    """Encode an event as (header line, payload bytes or None)."""
    return FramedEvent(kind, data, payload).encode()


def encode_ping(now_ms: int | None = None) -> str:
    """Return a control ping, which is not framed (and has no trailing newline)."""
    return json.dumps(
        {
            SZ_TYPE: str(EventKind.PING),
            SZ_PING_TIME: timestamp_ms() if now_ms is None else now_ms,
        },
        separators=(",", ":"),
    )


async def write_event(transport: TransportInterface | None, event: FramedEvent) -> bool:
    """Write an event to a transport, returning True if it was written.

    Writing to a missing transport, or one that is not open, is a logged no-op.
    Errors from the transport itself are not caught here.
    """

    if transport is None or transport.ready_state != ReadyState.OPEN:
        state = None if transport is None else transport.ready_state.name
        _LOGGER.debug("Not writing %s: transport is not open (%s)", event, state)
        return False

    header, payload = event.encode()
    await transport.write(header)
    if payload:
        await transport.write(payload)
    return True


########################################################################################
# Event factories


def audio_start_event() -> FramedEvent:
    return FramedEvent(EventKind.AUDIO_START, dict(AUDIO_FORMAT))


def audio_chunk_event(payload: bytes) -> FramedEvent:
    return FramedEvent(EventKind.AUDIO_CHUNK, dict(AUDIO_FORMAT), payload)


def audio_stop_event(now_ms: int | None = None) -> FramedEvent:
    return FramedEvent(
        EventKind.AUDIO_STOP,
        {SZ_TIMESTAMP: timestamp_ms() if now_ms is None else now_ms},
    )


def button_event(payload: bytes) -> FramedEvent:
    return FramedEvent(EventKind.BUTTON_STATE, None, payload)


def battery_event(payload: bytes) -> FramedEvent:
    return FramedEvent(EventKind.BATTERY_LEVEL, None, payload)


CHANNEL_EVENTS: dict[StreamKind, Callable[[bytes], FramedEvent]] = {
    StreamKind.AUDIO: audio_chunk_event,
    StreamKind.BUTTON: button_event,
    StreamKind.BATTERY: battery_event,
}


########################################################################################
# Stream profiles


@dataclass(frozen=True)
class StreamProfile:
    """The handshake events & enabled channels of a streaming unit.

    :param name: the name of the profile
    :param on_open: factories for the events sent each time the transport opens
    :param on_stop: factories for the events sent (best-effort) by stop()
    :param channels: the stream kinds that may be sent
    """

    name: str
    on_open: tuple[Callable[[], FramedEvent], ...] = ()
    on_stop: tuple[Callable[[], FramedEvent], ...] = ()
    channels: frozenset[StreamKind] = field(default_factory=lambda: frozenset(StreamKind))

    def open_events(self) -> list[FramedEvent]:
        return [f() for f in self.on_open]

    def stop_events(self) -> list[FramedEvent]:
        return [f() for f in self.on_stop]

    def channel_event(self, kind: StreamKind, payload: bytes) -> FramedEvent | None:
        """Return the event for a payload, or None if the channel is not enabled."""
        if kind not in self.channels:
            return None
        return CHANNEL_EVENTS[kind](payload)


AUDIO_PROFILE = StreamProfile(
    "audio",
    on_open=(audio_start_event,),
    on_stop=(audio_stop_event,),
    channels=frozenset(StreamKind),
)

BUTTON_PROFILE = StreamProfile(
    "button",
    channels=frozenset({StreamKind.BUTTON}),
)

PROFILES: dict[str, StreamProfile] = {
    p.name: p for p in (AUDIO_PROFILE, BUTTON_PROFILE)
}
