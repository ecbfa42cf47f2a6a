#!/usr/bin/env python3
"""Wearable relay - constants for devices, listeners & streamers."""

from __future__ import annotations

from typing import Final

from wearable_tx.const import (  # noqa: F401
    EventKind as EventKind,
    ReadyState as ReadyState,
    StreamKind as StreamKind,
)

DEFAULT_SCAN_TIMEOUT: Final[float] = 10.0

# the notify characteristics of the wearable (audio, button & standard battery level)
DEFAULT_AUDIO_CHAR: Final[str] = "19b10001-e8f2-537e-4f6c-d104768a1214"
DEFAULT_BUTTON_CHAR: Final[str] = "23ba7925-0000-1000-7450-346eac492e92"
DEFAULT_BATTERY_CHAR: Final[str] = "00002a19-0000-1000-8000-00805f9b34fb"
