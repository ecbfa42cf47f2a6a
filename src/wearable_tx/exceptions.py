#!/usr/bin/env python3
"""Wearable relay - exceptions within the transport/supervisor layer."""

from __future__ import annotations


class _RelayBaseError(Exception):
    """Base class for all wearable relay exceptions."""

    HINT: str | None = None

    def __init__(self, *args: object) -> None:
        super().__init__(*args)
        self.message = args[0] if args else None

    def __str__(self) -> str:
        if self.message and self.HINT:
            return f"{self.message} (hint: {self.HINT})"
        if self.message:
            return str(self.message)
        if self.HINT:
            return f"Hint: {self.HINT}"
        return ""


class RelayException(_RelayBaseError):
    """Base class for exceptions raised by this package."""


########################################################################################
# Errors raised synchronously by start(), before any transport is created


class ValidationError(RelayException):
    """The target (e.g. a URL) is missing or otherwise invalid."""


class ConnectivityError(RelayException):
    """There is no network connectivity, or the device is not connected."""

    HINT = "check the network (or the device link) and try again"


########################################################################################
# Errors at the transport layer (these are recoverable, and drive a retry)


class TransportError(RelayException):
    """The transport failed to open, closed abnormally, or failed to write."""


class TransportSourceInvalid(TransportError):
    """The target is not something a transport can be created for."""

    HINT = "use a ws:// or wss:// URL"


########################################################################################
# Errors at the supervisor layer


class RetryExhaustedError(RelayException):
    """The retry limit was reached; a new explicit start() is required."""


class ProtocolFsmError(RelayException):
    """The state machine was asked to make an undefined transition."""
