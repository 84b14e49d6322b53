"""
Protection event domain models.

A `ProtectionEvent` represents *something that happened* (a lid closing, a
remote command arriving, the user pressing "Enable") at a specific time.
Events are produced by signal monitors, the remote command poller and the
shell, published onto the event bus, and consumed one at a time by the
protection controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from lidguard.domain.models import RemoteCommand


class EventKind(str, Enum):
    """
    Kind of protection event.

    Members
    -------
    LID_CLOSED, LID_OPENED : str
        Lid monitor edges.
    POWER_DISCONNECTED, POWER_CONNECTED : str
        AC power monitor edges.
    POWER_BUTTON_PRESSED : str
        Power button press observed.
    SYSTEM_WILL_SLEEP, SYSTEM_DID_WAKE : str
        Sleep/wake boundaries.
    REMOTE_COMMAND : str
        Command parsed from the Telegram inbound stream.
    ENABLE_REQUESTED, DISABLE_REQUESTED, DISARM_REQUESTED, STATUS_REQUESTED : str
        Local (shell) requests.
    """

    LID_CLOSED = "LID_CLOSED"
    LID_OPENED = "LID_OPENED"
    POWER_DISCONNECTED = "POWER_DISCONNECTED"
    POWER_CONNECTED = "POWER_CONNECTED"
    POWER_BUTTON_PRESSED = "POWER_BUTTON_PRESSED"
    SYSTEM_WILL_SLEEP = "SYSTEM_WILL_SLEEP"
    SYSTEM_DID_WAKE = "SYSTEM_DID_WAKE"
    REMOTE_COMMAND = "REMOTE_COMMAND"
    ENABLE_REQUESTED = "ENABLE_REQUESTED"
    DISABLE_REQUESTED = "DISABLE_REQUESTED"
    DISARM_REQUESTED = "DISARM_REQUESTED"
    STATUS_REQUESTED = "STATUS_REQUESTED"


@dataclass(frozen=True)
class ProtectionEvent:
    """
    Event consumed by the protection controller.

    Parameters
    ----------
    kind
        What happened.
    command
        Parsed remote command (only for REMOTE_COMMAND).
    remote
        True when the request originated from the Telegram channel.
    timestamp
        When the event was observed.
    """

    kind: EventKind
    command: Optional[RemoteCommand] = None
    remote: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_command(cls, command: RemoteCommand) -> "ProtectionEvent":
        """Build a REMOTE_COMMAND event."""
        return cls(kind=EventKind.REMOTE_COMMAND, command=command, remote=True)
