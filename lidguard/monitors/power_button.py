from __future__ import annotations

import logging
import threading
from typing import Callable

from lidguard.domain.events import EventKind, ProtectionEvent

logger = logging.getLogger(__name__)


class PowerButtonMonitor:
    """
    Event-driven power button monitor.

    The OS hook (key event listener, logind handler, ...) calls
    :meth:`press`; the monitor forwards it as POWER_BUTTON_PRESSED only while
    started. Presses are discrete, so there is no edge state to debounce.
    """

    def __init__(self, on_event: Callable[[ProtectionEvent], None]):
        self._on_event = on_event
        self._running = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        logger.info("Power button monitor started")

    def stop(self) -> None:
        if not self._running.is_set():
            return
        self._running.clear()
        logger.info("Power button monitor stopped")

    def press(self) -> bool:
        """
        Report a power button press.

        Returns
        -------
        bool
            True if an event was emitted.
        """
        if not self._running.is_set():
            return False
        self._on_event(ProtectionEvent(kind=EventKind.POWER_BUTTON_PRESSED))
        return True
