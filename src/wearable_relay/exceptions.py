#!/usr/bin/env python3
"""Wearable relay - exceptions above the supervisor/transport layer."""

from __future__ import annotations

from wearable_tx.exceptions import (
    ConnectivityError as ConnectivityError,
    ProtocolFsmError as ProtocolFsmError,
    RelayException as RelayException,
    RetryExhaustedError as RetryExhaustedError,
    TransportError as TransportError,
    TransportSourceInvalid as TransportSourceInvalid,
    ValidationError as ValidationError,
)


class _RelayUpperError(RelayException):
    """A failure in the upper layer (devices, listeners, streamers)."""


class DeviceNotFound(_RelayUpperError):
    """The BLE device could not be found (by its address)."""

    HINT = "check the device is powered on, in range, and not connected elsewhere"


class ListenerError(_RelayUpperError):
    """A listener could not be started (e.g. an unknown stream kind)."""
