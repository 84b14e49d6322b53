from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from lidguard.runtime.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class TrackingLoop:
    """
    Periodic theft-mode tracking timer.

    Active only during a TRIGGERED episode. Every ``interval_s`` seconds it
    calls the tick callback supplied to :meth:`start`; the controller uses it
    to send a fresh tracking update.

    Each :meth:`start` creates a new generation token. A tick from an older
    generation (one that was already running when :meth:`stop` was called)
    sees a stale token and does nothing.

    Parameters
    ----------
    scheduler
        Timer source.
    interval_s
        Period between tracking updates.
    """

    def __init__(self, scheduler: Scheduler, interval_s: float = 20.0):
        self._scheduler = scheduler
        self._interval = interval_s
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def interval_s(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._handle is not None

    def start(self, on_tick: Callable[[], None]) -> None:
        """
        Start ticking. A loop that is already running is restarted.
        """
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation

            def tick() -> None:
                with self._lock:
                    if self._generation != generation or self._handle is None:
                        return
                on_tick()

            self._handle = self._scheduler.call_every(self._interval, tick, name="tracking-loop")
        logger.info("Tracking loop started (every %.0fs)", self._interval)

    def stop(self) -> None:
        """
        Cancel the timer; no tick of this generation runs its callback afterwards.
        """
        with self._lock:
            if self._handle is None:
                return
            self._cancel_locked()
            self._generation += 1
        logger.info("Tracking loop stopped")

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
