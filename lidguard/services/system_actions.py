"""
Side-effectful OS actions driven by the protection controller.

Each action sits behind a narrow Protocol. The shipped implementations are
thin shell-command wrappers (or log-only stand-ins where rendering is out
of scope); tests substitute recording fakes.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_SLEEP_INHIBIT_COMMAND = (
    "systemd-inhibit --what=sleep:idle:handle-lid-switch --mode=block "
    "--who=LidGuard --why='LidGuard theft protection active' sleep infinity"
)
DEFAULT_LOCK_COMMAND = "loginctl lock-session"


class SleepPrevention(Protocol):
    def enable(self) -> None:
        ...

    def disable(self) -> None:
        ...


class ScreenLocker(Protocol):
    def lock(self) -> None:
        ...


class MessageOverlay(Protocol):
    def show(self, message: str, contact: str = "", on_unlock: Optional[Callable[[], None]] = None) -> None:
        ...

    def hide(self) -> None:
        ...


class AlarmPlayer(Protocol):
    def play(self) -> None:
        ...

    def stop(self) -> None:
        ...


class _ManagedProcess:
    """
    One long-running child process, started and terminated on demand.
    """

    def __init__(self, argv: List[str], name: str):
        self._argv = argv
        self._name = name
        self._lock = threading.Lock()
        self._proc: Optional[subprocess.Popen] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._proc is not None and self._proc.poll() is None

    def start(self) -> bool:
        with self._lock:
            if self._proc is not None and self._proc.poll() is None:
                return True
            try:
                self._proc = subprocess.Popen(
                    self._argv,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as e:
                logger.warning("[%s] failed to start %r: %r", self._name, self._argv[0], e)
                self._proc = None
                return False
        logger.info("[%s] started", self._name)
        return True

    def stop(self) -> None:
        with self._lock:
            proc, self._proc = self._proc, None
        if proc is None or proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            proc.kill()
        logger.info("[%s] stopped", self._name)


class InhibitSleepPrevention:
    """
    Holds a sleep inhibitor lock by keeping an inhibiting process alive.
    """

    def __init__(self, command: str = DEFAULT_SLEEP_INHIBIT_COMMAND):
        self._proc = _ManagedProcess(shlex.split(command), "sleep-prevention")

    @property
    def is_enabled(self) -> bool:
        return self._proc.running

    def enable(self) -> None:
        self._proc.start()

    def disable(self) -> None:
        self._proc.stop()


class CommandScreenLocker:
    """Locks the session by spawning a lock command (does not wait for it)."""

    def __init__(self, command: str = DEFAULT_LOCK_COMMAND):
        self._argv = shlex.split(command)

    def lock(self) -> None:
        try:
            subprocess.Popen(self._argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.warning("Screen lock failed: %r", e)


class CommandAlarmPlayer:
    """
    Plays the alarm by running a player command until stopped.

    ``{sound}`` and ``{volume}`` in the command are replaced with the
    configured values.
    """

    def __init__(self, command: str, sound: str = "Siren", volume: int = 100):
        argv = [part.format(sound=sound, volume=volume) for part in shlex.split(command)]
        self._proc = _ManagedProcess(argv, "alarm")

    @property
    def is_playing(self) -> bool:
        return self._proc.running

    def play(self) -> None:
        self._proc.start()

    def stop(self) -> None:
        self._proc.stop()


class LoggingMessageOverlay:
    """
    Stand-in overlay that records what would be displayed.

    The full-screen rendering belongs to the desktop shell; it reports a
    screen unlock through :meth:`notify_unlocked`, which runs the unlock
    callback while the overlay is shown.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._visible = False
        self._on_unlock: Optional[Callable[[], None]] = None

    @property
    def visible(self) -> bool:
        with self._lock:
            return self._visible

    def show(self, message: str, contact: str = "", on_unlock: Optional[Callable[[], None]] = None) -> None:
        with self._lock:
            self._visible = True
            self._on_unlock = on_unlock
        logger.warning("Overlay: %s %s", message, contact)

    def hide(self) -> None:
        with self._lock:
            self._visible = False
            self._on_unlock = None

    def notify_unlocked(self) -> None:
        with self._lock:
            callback = self._on_unlock if self._visible else None
        if callback is not None:
            callback()


class NullAction:
    """No-op implementation of every action protocol."""

    def enable(self) -> None:
        pass

    def disable(self) -> None:
        pass

    def lock(self) -> None:
        pass

    def show(self, message: str, contact: str = "", on_unlock: Optional[Callable[[], None]] = None) -> None:
        pass

    def hide(self) -> None:
        pass

    def play(self) -> None:
        pass

    def stop(self) -> None:
        pass


@dataclass
class SystemActions:
    """Bundle of side-effect interfaces consumed by the controller."""
    sleep_prevention: SleepPrevention = field(default_factory=NullAction)
    screen_locker: ScreenLocker = field(default_factory=NullAction)
    overlay: MessageOverlay = field(default_factory=NullAction)
    alarm: AlarmPlayer = field(default_factory=NullAction)
