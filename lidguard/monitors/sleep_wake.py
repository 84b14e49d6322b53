from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from lidguard.domain.events import EventKind, ProtectionEvent

logger = logging.getLogger(__name__)


class SleepWakeMonitor:
    """
    Sleep/wake boundary monitor.

    The platform power hook calls :meth:`notify_will_sleep` right before the
    system sleeps and :meth:`notify_did_wake` after it wakes; both are
    forwarded as events while started. :meth:`can_system_sleep` is the
    synchronous "may the system sleep now?" query, answered by the deny-sleep
    callback supplied by the controller.

    Parameters
    ----------
    on_event
        Observer callback. It is called synchronously so the lid check before
        sleep completes before the hook returns.
    deny_sleep
        Callable returning True while sleep must be refused.
    """

    def __init__(
        self,
        on_event: Callable[[ProtectionEvent], None],
        deny_sleep: Optional[Callable[[], bool]] = None,
    ):
        self._on_event = on_event
        self._deny_sleep = deny_sleep
        self._running = threading.Event()

    def set_deny_sleep(self, deny_sleep: Callable[[], bool]) -> None:
        self._deny_sleep = deny_sleep

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        logger.info("Sleep/wake monitor started")

    def stop(self) -> None:
        self._running.clear()

    def notify_will_sleep(self) -> None:
        if self._running.is_set():
            logger.info("Will sleep")
            self._on_event(ProtectionEvent(kind=EventKind.SYSTEM_WILL_SLEEP))

    def notify_did_wake(self) -> None:
        if self._running.is_set():
            logger.info("Did wake")
            self._on_event(ProtectionEvent(kind=EventKind.SYSTEM_DID_WAKE))

    def can_system_sleep(self) -> bool:
        if not self._running.is_set() or self._deny_sleep is None:
            return True
        return not self._deny_sleep()
