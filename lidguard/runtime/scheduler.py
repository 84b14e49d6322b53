from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Handle returned by a scheduler; cancelling stops further callbacks."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """
    Protocol interface for repeating timers.

    Production code uses :class:`ThreadScheduler`; tests substitute a manual
    clock so simulated time can be advanced deterministically.
    """

    def call_every(
        self,
        interval_s: float,
        fn: Callable[[], None],
        initial_delay_s: Optional[float] = None,
        name: str = "timer",
    ) -> TimerHandle:
        ...


class RepeatingTimerThread:
    """
    Daemon thread calling ``fn`` every ``interval_s`` seconds until cancelled.

    Concurrency Model
    -----------------
    - Waiting is done on a cancel event, so :meth:`cancel` takes effect
      immediately for any tick that has not started.
    - A tick already running when :meth:`cancel` is called completes;
      callbacks must re-check their own state.
    - :meth:`cancel` never joins, so it is safe to call while holding a lock
      the callback may be waiting for.
    - Exceptions from ``fn`` are logged and the timer keeps running.

    Parameters
    ----------
    interval_s
        Period between ticks.
    fn
        Callback.
    initial_delay_s
        Delay before the first tick (defaults to ``interval_s``).
    name
        Thread name.
    """

    def __init__(
        self,
        interval_s: float,
        fn: Callable[[], None],
        initial_delay_s: Optional[float] = None,
        name: str = "timer",
    ):
        self._interval = interval_s
        self._initial = interval_s if initial_delay_s is None else initial_delay_s
        self._fn = fn
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _run(self) -> None:
        delay = self._initial
        while not self._cancelled.wait(delay):
            try:
                self._fn()
            except Exception:
                logger.exception("timer %s callback failed", self._thread.name)
            delay = self._interval


class ThreadScheduler:
    """Scheduler backed by one :class:`RepeatingTimerThread` per timer."""

    def call_every(
        self,
        interval_s: float,
        fn: Callable[[], None],
        initial_delay_s: Optional[float] = None,
        name: str = "timer",
    ) -> RepeatingTimerThread:
        timer = RepeatingTimerThread(interval_s, fn, initial_delay_s=initial_delay_s, name=name)
        timer.start()
        return timer
