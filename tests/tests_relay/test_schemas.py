#!/usr/bin/env python3
"""Unittests for the device & config file schemas."""

import pytest
import voluptuous as vol

from wearable_relay.const import DEFAULT_AUDIO_CHAR, DEFAULT_SCAN_TIMEOUT
from wearable_relay.schemas import SCH_CONFIG_FILE, SCH_DEVICE_CONFIG


@pytest.mark.parametrize(
    "address,expected",
    [
        ("aa:bb:cc:dd:ee:ff", "AA:BB:CC:DD:EE:FF"),
        (" 01:23:45:67:89:AB ", "01:23:45:67:89:AB"),
        (
            "4b8e7f3a-1c2d-4e5f-8a9b-0c1d2e3f4a5b",
            "4B8E7F3A-1C2D-4E5F-8A9B-0C1D2E3F4A5B",
        ),
    ],
)
def test_device_address(address: str, expected: str) -> None:
    config = SCH_DEVICE_CONFIG({"address": address})

    assert config["address"] == expected
    assert config["scan_timeout"] == DEFAULT_SCAN_TIMEOUT
    assert config["audio_char"] == DEFAULT_AUDIO_CHAR


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"address": "AA:BB:CC:DD:EE"},
        {"address": 12345},
        {"address": "AA:BB:CC:DD:EE:FF", "scan_timeout": 0},
        {"address": "AA:BB:CC:DD:EE:FF", "button_char": "2a19"},
    ],
)
def test_device_invalid(config: dict) -> None:
    with pytest.raises(vol.Invalid):
        SCH_DEVICE_CONFIG(config)


def test_config_file_defaults() -> None:
    config = SCH_CONFIG_FILE({})

    assert config["device"] == {}
    assert config["listener"]["reset_counter_on_stop"] is True
    assert config["streamer"]["profile"] == "audio"


@pytest.mark.parametrize(
    "config",
    [
        {"gateway": {}},
        {"listener": {"profile": "audio"}},  # a streamer option
        {"streamer": {"ping_interval": 0}},
    ],
)
def test_config_file_invalid(config: dict) -> None:
    with pytest.raises(vol.Invalid):
        SCH_CONFIG_FILE(config)
