"""
Linux state probes.

Thin readers over procfs/sysfs used by the polling monitors and the
device info collector. Every probe returns None when the information is
not available on this machine.
"""

from __future__ import annotations

import glob
from pathlib import Path
from typing import Optional, Tuple

LID_STATE_GLOB = "/proc/acpi/button/lid/*/state"
POWER_SUPPLY_DIR = "/sys/class/power_supply"


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return None


def lid_closed(pattern: str = LID_STATE_GLOB) -> Optional[bool]:
    """
    Return True if the lid is closed, False if open, None if unknown.

    ``/proc/acpi/button/lid/LID0/state`` contains e.g. ``state:      open``.
    """
    for path in sorted(glob.glob(pattern)):
        text = _read(Path(path))
        if not text:
            continue
        value = text.split(":", 1)[-1].strip().lower()
        if value == "closed":
            return True
        if value == "open":
            return False
    return None


def ac_online(root: str = POWER_SUPPLY_DIR) -> Optional[bool]:
    """
    Return True if any mains supply reports ``online=1``, None if no mains supply exists.
    """
    found = False
    for supply in sorted(Path(root).glob("*")):
        if _read(supply / "type") != "Mains":
            continue
        online = _read(supply / "online")
        if online is None:
            continue
        found = True
        if online == "1":
            return True
    return False if found else None


def battery(root: str = POWER_SUPPLY_DIR) -> Optional[Tuple[int, bool]]:
    """
    Return ``(percent, is_charging)`` for the first battery, or None.
    """
    for supply in sorted(Path(root).glob("*")):
        if _read(supply / "type") != "Battery":
            continue
        capacity = _read(supply / "capacity")
        if capacity is None or not capacity.isdigit():
            continue
        status = (_read(supply / "status") or "").lower()
        return int(capacity), status == "charging"
    return None
