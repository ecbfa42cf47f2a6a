"""Wearable relay - a CLI for the wearable_relay library."""
