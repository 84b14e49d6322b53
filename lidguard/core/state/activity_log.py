from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Deque, List, Optional, Union

logger = logging.getLogger("lidguard.activity")


class LogCategory(str, Enum):
    """
    Category of an activity log entry.
    """

    SYSTEM = "system"
    ARMED = "armed"
    DISARMED = "disarmed"
    TRIGGER = "trigger"
    THEFT = "theft"
    TELEGRAM = "telegram"
    PUSHOVER = "pushover"
    POWER = "power"
    LOCATION = "location"

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


_ICONS = {
    LogCategory.SYSTEM: "⚙️",
    LogCategory.ARMED: "🟢",
    LogCategory.DISARMED: "🔴",
    LogCategory.TRIGGER: "⚠️",
    LogCategory.THEFT: "🚨",
    LogCategory.TELEGRAM: "📱",
    LogCategory.PUSHOVER: "🔔",
    LogCategory.POWER: "🔋",
    LogCategory.LOCATION: "📍",
}


@dataclass(frozen=True)
class LogEntry:
    """
    One activity log entry.

    Parameters
    ----------
    category
        Entry category.
    message
        Human-readable message.
    timestamp
        When the entry was appended.
    id
        Unique entry id (uuid4 hex).
    """

    category: LogCategory
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "category": self.category.value,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LogEntry":
        return cls(
            category=LogCategory(d["category"]),
            message=str(d["message"]),
            timestamp=datetime.fromisoformat(d["timestamp"]),
            id=str(d["id"]),
        )


class ActivityLog:
    """
    Append-only, bounded activity log.

    Every state transition, trigger, delivery attempt and remote command is
    appended here. Entries are mirrored to the ``lidguard.activity`` logger
    and, when a path is configured, persisted as a JSON array.

    Concurrency Model
    -----------------
    All reads/writes are guarded by a single lock, so any thread (monitors,
    notification workers, the controller) may append concurrently.

    Parameters
    ----------
    path
        Optional JSON file used to persist entries across restarts.
    max_entries
        Oldest entries are discarded beyond this bound.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, max_entries: int = 500):
        self._path = Path(path).expanduser() if path else None
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._load()

    def append(self, category: LogCategory, message: str) -> LogEntry:
        """
        Append an entry and persist the log.

        Parameters
        ----------
        category
            Entry category.
        message
            Human-readable message.

        Returns
        -------
        LogEntry
            The appended entry.
        """
        entry = LogEntry(category=category, message=message)
        with self._lock:
            self._entries.append(entry)
        logger.info("[%s] %s", category.value, message)
        self._save()
        return entry

    def entries(self) -> List[LogEntry]:
        """
        Snapshot copy of entries, oldest first.
        """
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        self._save()

    def export_as_text(self) -> str:
        """
        Render all entries as plain text, one per line, oldest first.
        """
        return "\n".join(
            f"[{e.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] {e.category.icon} {e.category.display_name}: {e.message}"
            for e in self.entries()
        )

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            for item in raw:
                self._entries.append(LogEntry.from_dict(item))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Activity log at %s could not be loaded: %r", self._path, e)

    def _save(self) -> None:
        if self._path is None:
            return
        # Snapshot inside the save lock so the last writer persists the newest entries.
        with self._save_lock:
            entries = self.entries()
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp = self._path.with_suffix(self._path.suffix + ".tmp")
                tmp.write_text(json.dumps([e.to_dict() for e in entries], ensure_ascii=False), encoding="utf-8")
                os.replace(tmp, self._path)
            except OSError as e:
                logger.warning("Activity log at %s could not be saved: %r", self._path, e)
