from __future__ import annotations

import logging
import threading
from queue import Empty, Queue
from typing import Callable

from lidguard.domain.events import ProtectionEvent

logger = logging.getLogger(__name__)


class ProtectionWorkerThread:
    """
    Worker thread feeding protection events to the controller.

    Responsibilities
    ----------------
    - Consume :class:`ProtectionEvent` items from the event bus queue.
    - Delegate each one to ``handle_event`` (usually
      ``ProtectionController.handle_event``), one at a time.

    Concurrency Model
    -----------------
    - The thread polls the queue with a timeout to remain responsive to stop signals.
    - Exceptions from the handler are logged so one bad event cannot kill the thread.

    Parameters
    ----------
    handle_event
        Event handler.
    events_q
        Queue of protection events.
    stop_event
        Thread stop signal. When set, the worker exits its loop.
    """

    def __init__(
        self,
        handle_event: Callable[[ProtectionEvent], None],
        events_q: "Queue[ProtectionEvent]",
        stop_event: threading.Event,
        poll_timeout_s: float = 0.5,
    ):
        self._handle_event = handle_event
        self._q = events_q
        self._stop = stop_event
        self._poll_timeout_s = poll_timeout_s
        self._thread = threading.Thread(target=self._run, name="protection-worker", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                ev = self._q.get(timeout=self._poll_timeout_s)
            except Empty:
                continue

            try:
                self._handle_event(ev)
            except Exception:
                logger.exception("handle_event failed for %s", ev.kind.value)
