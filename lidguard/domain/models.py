"""
Domain models and enums.

This module defines the core domain-level types used across the system:
- Protection state, trigger reasons and remote commands
- Notification channels and Telegram reply-keyboard variants
- DeviceInfoSnapshot, the telemetry attached to every alert

These are designed as immutable (frozen) dataclasses where appropriate to
support safe sharing across threads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ProtectionState(str, Enum):
    """
    Lifecycle state of the theft protection.

    Members
    -------
    DISABLED : str
        Protection is off; no monitors are running.
    ENABLED : str
        Protection is armed; monitors are running, no trigger fired yet.
    TRIGGERED : str
        A trigger fired; alerting, tracking and defensive actions are active.
    """

    DISABLED = "DISABLED"
    ENABLED = "ENABLED"
    TRIGGERED = "TRIGGERED"


class TriggerReason(str, Enum):
    """
    Physical condition that moved the protection into TRIGGERED.
    """

    LID_CLOSED = "LID_CLOSED"
    POWER_DISCONNECTED = "POWER_DISCONNECTED"

    @property
    def description(self) -> str:
        return _TRIGGER_DESCRIPTIONS[self]


_TRIGGER_DESCRIPTIONS = {
    TriggerReason.LID_CLOSED: "Lid closed",
    TriggerReason.POWER_DISCONNECTED: "Power disconnected",
}


class RemoteCommand(str, Enum):
    """
    Operator instruction received through the Telegram inbound stream.

    Members
    -------
    DISARM : str
        Leave theft mode (``/stop``, ``/safe``).
    ENABLE : str
        Arm the protection.
    DISABLE : str
        Disarm the protection entirely.
    STATUS : str
        Report current state and device info.
    ARM_ALARM : str
        Start the audible alarm while in theft mode.
    SILENCE_ALARM : str
        Stop the audible alarm.
    """

    DISARM = "DISARM"
    ENABLE = "ENABLE"
    DISABLE = "DISABLE"
    STATUS = "STATUS"
    ARM_ALARM = "ARM_ALARM"
    SILENCE_ALARM = "SILENCE_ALARM"


class Channel(str, Enum):
    """Outbound notification channel."""

    TELEGRAM = "TELEGRAM"
    PUSHOVER = "PUSHOVER"


class KeyboardVariant(str, Enum):
    """
    Telegram reply-keyboard attached to an outbound message.

    Members
    -------
    NONE : str
        No keyboard.
    TRIGGERED : str
        "Safe" (+ "Alarm" when the alarm behavior is enabled).
    TRIGGERED_ALARM_ON : str
        "Safe" + "Stop Alarm".
    ARMED : str
        "Status" + "Disable".
    DISARMED : str
        "Status" + "Enable".
    """

    NONE = "NONE"
    TRIGGERED = "TRIGGERED"
    TRIGGERED_ALARM_ON = "TRIGGERED_ALARM_ON"
    ARMED = "ARMED"
    DISARMED = "DISARMED"


class ButtonLabel(str, Enum):
    """Reply-keyboard button texts (also accepted as inbound commands)."""

    SAFE = "✅ Safe"
    ALARM = "🔊 Alarm"
    STOP_ALARM = "🔇 Stop Alarm"
    STATUS = "📊 Status"
    ENABLE = "🟢 Enable"
    DISABLE = "🔴 Disable"


def keyboard_for_state(state: ProtectionState) -> KeyboardVariant:
    """
    Return the reply keyboard matching a protection state.
    """
    if state == ProtectionState.TRIGGERED:
        return KeyboardVariant.TRIGGERED
    if state == ProtectionState.ENABLED:
        return KeyboardVariant.ARMED
    return KeyboardVariant.DISARMED


@dataclass(frozen=True)
class GeoLocation:
    """
    Geographic fix reported by a location provider.

    Parameters
    ----------
    latitude
        Latitude in decimal degrees.
    longitude
        Longitude in decimal degrees.
    accuracy_m
        Horizontal accuracy radius in meters (<= 0 means unknown).
    """

    latitude: float
    longitude: float
    accuracy_m: float = 0.0


@dataclass(frozen=True)
class DeviceInfoSnapshot:
    """
    Point-in-time telemetry about the device.

    Produced fresh for every alert by a device info collector. Every field
    except ``timestamp`` and ``device_name`` is optional because sources may
    be unavailable; a degraded snapshot is still sent.

    Parameters
    ----------
    timestamp
        When the snapshot was assembled.
    device_name
        Human-readable device name.
    location
        Geographic fix, or None if unavailable.
    public_ip
        Public IP address, or None.
    wifi_name
        Connected Wi-Fi network name, or None.
    battery_percent
        Battery charge 0-100, or None if no battery was found.
    is_charging
        Whether the battery is charging, or None.
    """

    timestamp: datetime
    device_name: str
    location: Optional[GeoLocation] = None
    public_ip: Optional[str] = None
    wifi_name: Optional[str] = None
    battery_percent: Optional[int] = None
    is_charging: Optional[bool] = None

    def formatted_message(self) -> str:
        """
        Render the snapshot as Telegram HTML lines.

        Missing location is rendered as "unavailable"; other missing fields
        are omitted.
        """
        lines: List[str] = [f"🕐 <b>Time:</b> {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}"]

        loc = self.location
        if loc is not None:
            lines.append(f"📍 <b>Location:</b> {loc.latitude}, {loc.longitude}")
            lines.append(f"🗺 <b>Maps:</b> https://maps.google.com/?q={loc.latitude},{loc.longitude}")
            if loc.accuracy_m > 0:
                lines.append(f"🎯 <b>Accuracy:</b> {int(loc.accuracy_m)}m")
        else:
            lines.append("📍 <b>Location:</b> unavailable")

        if self.public_ip:
            lines.append(f"🌐 <b>Public IP:</b> {self.public_ip}")

        if self.wifi_name:
            lines.append(f"📶 <b>WiFi:</b> {self.wifi_name}")

        if self.battery_percent is not None:
            status = "charging" if self.is_charging else "discharging"
            lines.append(f"🔋 <b>Battery:</b> {self.battery_percent}% ({status})")

        lines.append(f"💻 <b>Device:</b> {self.device_name}")
        return "\n".join(lines)
