"""
Unit tests for lidguard.domain models and events.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime

import pytest

from lidguard.domain.events import EventKind, ProtectionEvent
from lidguard.domain.models import (
    DeviceInfoSnapshot,
    GeoLocation,
    KeyboardVariant,
    ProtectionState,
    RemoteCommand,
    TriggerReason,
    keyboard_for_state,
)

TS = datetime(2026, 3, 4, 5, 6, 7)


def test_trigger_descriptions() -> None:
    assert TriggerReason.LID_CLOSED.description == "Lid closed"
    assert TriggerReason.POWER_DISCONNECTED.description == "Power disconnected"


def test_keyboard_for_state() -> None:
    assert keyboard_for_state(ProtectionState.TRIGGERED) == KeyboardVariant.TRIGGERED
    assert keyboard_for_state(ProtectionState.ENABLED) == KeyboardVariant.ARMED
    assert keyboard_for_state(ProtectionState.DISABLED) == KeyboardVariant.DISARMED


def test_snapshot_full_message() -> None:
    snap = DeviceInfoSnapshot(
        timestamp=TS,
        device_name="work-laptop",
        location=GeoLocation(52.52, 13.405, accuracy_m=25.4),
        public_ip="203.0.113.7",
        wifi_name="CafeNet",
        battery_percent=64,
        is_charging=True,
    )

    lines = snap.formatted_message().split("\n")

    assert lines == [
        "🕐 <b>Time:</b> 2026-03-04 05:06:07",
        "📍 <b>Location:</b> 52.52, 13.405",
        "🗺 <b>Maps:</b> https://maps.google.com/?q=52.52,13.405",
        "🎯 <b>Accuracy:</b> 25m",
        "🌐 <b>Public IP:</b> 203.0.113.7",
        "📶 <b>WiFi:</b> CafeNet",
        "🔋 <b>Battery:</b> 64% (charging)",
        "💻 <b>Device:</b> work-laptop",
    ]


def test_snapshot_degraded_message() -> None:
    msg = DeviceInfoSnapshot(timestamp=TS, device_name="x", battery_percent=10, is_charging=False).formatted_message()

    assert "📍 <b>Location:</b> unavailable" in msg
    assert "Maps" not in msg
    assert "Public IP" not in msg
    assert "WiFi" not in msg
    assert "10% (discharging)" in msg


def test_unknown_accuracy_is_omitted() -> None:
    msg = DeviceInfoSnapshot(timestamp=TS, device_name="x", location=GeoLocation(1.0, 2.0)).formatted_message()
    assert "Accuracy" not in msg


def test_event_from_command() -> None:
    ev = ProtectionEvent.from_command(RemoteCommand.DISARM)
    assert ev.kind == EventKind.REMOTE_COMMAND
    assert ev.command == RemoteCommand.DISARM
    assert ev.remote is True
    assert isinstance(ev.timestamp, datetime)


def test_event_is_frozen() -> None:
    ev = ProtectionEvent(kind=EventKind.LID_CLOSED)
    with pytest.raises(FrozenInstanceError):
        ev.kind = EventKind.LID_OPENED  # type: ignore[misc]
