#!/usr/bin/env python3
"""Unittests for the framed event codec."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from wearable_tx.codec import (
    AUDIO_PROFILE,
    BUTTON_PROFILE,
    FramedEvent,
    audio_chunk_event,
    audio_start_event,
    audio_stop_event,
    encode,
    encode_ping,
    write_event,
)
from wearable_tx.const import EventKind, ReadyState, StreamKind


def test_header_without_payload() -> None:
    header, payload = encode(EventKind.AUDIO_START, {"rate": 16000})

    assert header.endswith("\n")
    assert header.count("\n") == 1
    assert payload is None
    assert json.loads(header) == {
        "type": "audio-start",
        "data": {"rate": 16000},
        "version": "1.0.0",
        "payload_length": None,
    }


def test_header_with_payload() -> None:
    header, payload = encode(EventKind.BUTTON_STATE, None, b"\x01\x02\x03")

    assert payload == b"\x01\x02\x03"
    assert json.loads(header) == {
        "type": "button-state",
        "version": "1.0.0",
        "payload_length": 3,
    }  # data is omitted when None


def test_payload_length_is_exact() -> None:
    event = audio_chunk_event(bytes(320))

    assert event.payload_length == 320
    assert json.loads(event.encode()[0])["payload_length"] == 320
    assert FramedEvent("x").payload_length is None


def test_empty_payload_is_not_written() -> None:
    """A zero-length payload is declared, but there are no bytes to write."""
    header, payload = encode(EventKind.BATTERY_LEVEL, None, b"")

    assert json.loads(header)["payload_length"] == 0
    assert payload is None


def test_invalid_events() -> None:
    with pytest.raises(ValueError):
        FramedEvent("")
    with pytest.raises(TypeError):
        FramedEvent(EventKind.AUDIO_CHUNK, None, "not bytes")  # type: ignore[arg-type]


def test_audio_events() -> None:
    assert audio_start_event().header["data"] == {
        "rate": 16000,
        "width": 2,
        "channels": 1,
    }
    assert audio_stop_event(now_ms=1234).header["data"] == {"timestamp": 1234}


def test_encode_ping() -> None:
    ping = encode_ping(now_ms=1700000000000)

    assert not ping.endswith("\n")
    assert json.loads(ping) == {"type": "ping", "t": 1700000000000}
    assert isinstance(json.loads(encode_ping())["t"], int)


async def test_write_event_header_then_payload() -> None:
    transport = MagicMock()
    transport.ready_state = ReadyState.OPEN
    transport.write = AsyncMock()

    assert await write_event(transport, audio_chunk_event(b"\xaa\xbb"))

    assert transport.write.await_count == 2
    header = transport.write.await_args_list[0].args[0]
    assert json.loads(header)["type"] == "audio-chunk"
    assert transport.write.await_args_list[1].args[0] == b"\xaa\xbb"


@pytest.mark.parametrize(
    "state", [ReadyState.CONNECTING, ReadyState.CLOSING, ReadyState.CLOSED]
)
async def test_write_event_not_open_is_a_noop(state: ReadyState) -> None:
    transport = MagicMock()
    transport.ready_state = state
    transport.write = AsyncMock()

    assert await write_event(transport, audio_start_event()) is False
    transport.write.assert_not_awaited()


async def test_write_event_no_transport() -> None:
    assert await write_event(None, audio_start_event()) is False


def test_profiles() -> None:
    assert [e.kind for e in AUDIO_PROFILE.open_events()] == [EventKind.AUDIO_START]
    assert [e.kind for e in AUDIO_PROFILE.stop_events()] == [EventKind.AUDIO_STOP]
    assert AUDIO_PROFILE.channel_event(StreamKind.BATTERY, b"\x64").kind == (
        EventKind.BATTERY_LEVEL
    )

    # the button profile has no handshake, and only the button channel
    assert BUTTON_PROFILE.open_events() == []
    assert BUTTON_PROFILE.stop_events() == []
    assert BUTTON_PROFILE.channel_event(StreamKind.AUDIO, b"\x00") is None
    assert BUTTON_PROFILE.channel_event(StreamKind.BUTTON, b"\x01").kind == (
        EventKind.BUTTON_STATE
    )
