from __future__ import annotations

import logging
from dataclasses import dataclass, field
from queue import Full, Queue

from lidguard.domain.events import ProtectionEvent

logger = logging.getLogger(__name__)


@dataclass
class EventBus:
    """
    In-process event bus for protection events using a thread-safe queue.

    The bus provides a simple producer/consumer mechanism:
    - Producers (monitors, the command poller, the shell) publish
      :class:`~lidguard.domain.events.ProtectionEvent` via :meth:`publish`.
    - The protection worker thread reads from :attr:`events_q`.

    Concurrency Model
    -----------------
    Python's :class:`queue.Queue` is thread-safe. Multiple producers may call
    :meth:`publish` concurrently without additional locking.

    Backpressure Policy
    -------------------
    If the queue is full, the event is dropped with a warning so a stalled
    consumer never blocks a timer or monitor thread.

    Attributes
    ----------
    events_q
        Bounded queue of protection events.
    """

    events_q: "Queue[ProtectionEvent]" = field(default_factory=lambda: Queue(maxsize=1000))

    def publish(self, ev: ProtectionEvent) -> bool:
        """
        Publish an event to the queue (non-blocking).

        Returns
        -------
        bool
            False if the event was dropped.
        """
        try:
            self.events_q.put_nowait(ev)
        except Full:
            logger.warning("event bus full, dropping %s", ev.kind.value)
            return False
        return True
