#!/usr/bin/env python3
"""Wearable relay - schemas for the configuration of devices & relays."""

from __future__ import annotations

import re
from typing import Final

import voluptuous as vol

from wearable_tx.schemas import (  # noqa: F401
    SCH_LISTENER_CONFIG as SCH_LISTENER_CONFIG,
    SCH_STREAMER_CONFIG as SCH_STREAMER_CONFIG,
)

from .const import (
    DEFAULT_AUDIO_CHAR,
    DEFAULT_BATTERY_CHAR,
    DEFAULT_BUTTON_CHAR,
    DEFAULT_SCAN_TIMEOUT,
)

SZ_ADDRESS: Final = "address"
SZ_SCAN_TIMEOUT: Final = "scan_timeout"
SZ_AUDIO_CHAR: Final = "audio_char"
SZ_BUTTON_CHAR: Final = "button_char"
SZ_BATTERY_CHAR: Final = "battery_char"

SZ_DEVICE: Final = "device"
SZ_LISTENER: Final = "listener"
SZ_STREAMER: Final = "streamer"

# a MAC address (most platforms), or a UUID (macOS)
_ADDRESS_REGEX = re.compile(
    r"^([0-9A-F]{2}:){5}[0-9A-F]{2}$|^[0-9A-F]{8}(-[0-9A-F]{4}){3}-[0-9A-F]{12}$",
    re.IGNORECASE,
)
_UUID_REGEX = re.compile(r"^[0-9A-F]{8}(-[0-9A-F]{4}){3}-[0-9A-F]{12}$", re.IGNORECASE)


def sch_address(value: str) -> str:
    """Validate a BLE device address."""
    if not isinstance(value, str) or not _ADDRESS_REGEX.match(value.strip()):
        raise vol.Invalid(f"Invalid device address: {value}")
    return value.strip().upper()


def sch_uuid(value: str) -> str:
    """Validate a characteristic UUID."""
    if not isinstance(value, str) or not _UUID_REGEX.match(value.strip()):
        raise vol.Invalid(f"Invalid characteristic UUID: {value}")
    return value.strip().lower()


SCH_DEVICE_CONFIG: Final = vol.Schema(
    {
        vol.Required(SZ_ADDRESS): sch_address,
        vol.Optional(SZ_SCAN_TIMEOUT, default=DEFAULT_SCAN_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(SZ_AUDIO_CHAR, default=DEFAULT_AUDIO_CHAR): sch_uuid,
        vol.Optional(SZ_BUTTON_CHAR, default=DEFAULT_BUTTON_CHAR): sch_uuid,
        vol.Optional(SZ_BATTERY_CHAR, default=DEFAULT_BATTERY_CHAR): sch_uuid,
    },
    extra=vol.PREVENT_EXTRA,
)

# the (optional) config file of the CLI: {"device": {...}, "listener": {...}, ...}
SCH_CONFIG_FILE: Final = vol.Schema(
    {
        vol.Optional(SZ_DEVICE, default={}): dict,
        vol.Optional(SZ_LISTENER, default={}): SCH_LISTENER_CONFIG,
        vol.Optional(SZ_STREAMER, default={}): SCH_STREAMER_CONFIG,
    },
    extra=vol.PREVENT_EXTRA,
)
