from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from lidguard.domain.events import EventKind, ProtectionEvent
from lidguard.monitors import probes
from lidguard.runtime.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

EventCallback = Callable[[ProtectionEvent], None]
Probe = Callable[[], Optional[bool]]


class PollingMonitor:
    """
    Edge-detecting monitor over a boolean probe.

    The probe is sampled every ``interval_s``. The first sample after
    :meth:`start` only seeds the baseline; afterwards an event is emitted
    only when the value flips, so the same directional event is never
    reported twice without the opposite one in between.

    A probe that returns None or raises marks the signal as
    unavailable: a warning is logged once and the monitor stays inert until
    the probe answers again.

    Parameters
    ----------
    name
        Monitor name (logs, timer thread name).
    probe
        Callable returning the current boolean state.
    scheduler
        Timer source.
    on_event
        Observer callback.
    when_true, when_false
        Event kinds emitted on a flip to True / to False (None = no event).
    interval_s
        Sampling period.
    """

    def __init__(
        self,
        name: str,
        probe: Probe,
        scheduler: Scheduler,
        on_event: EventCallback,
        when_true: Optional[EventKind],
        when_false: Optional[EventKind],
        interval_s: float = 0.5,
    ):
        self.name = name
        self._probe = probe
        self._scheduler = scheduler
        self._on_event = on_event
        self._when_true = when_true
        self._when_false = when_false
        self._interval = interval_s
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._last: Optional[bool] = None
        self._unavailable_reported = False

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._handle is not None

    def start(self) -> None:
        with self._lock:
            if self._handle is not None:
                return
            self._last = None
            self._handle = self._scheduler.call_every(
                self._interval, self.poll_once, initial_delay_s=0.0, name=f"{self.name}-monitor"
            )
        logger.info("%s monitor started", self.name)

    def stop(self) -> None:
        with self._lock:
            if self._handle is None:
                return
            self._handle.cancel()
            self._handle = None
            self._last = None
        logger.info("%s monitor stopped", self.name)

    def read(self) -> Optional[bool]:
        """Sample the probe directly; None when unavailable."""
        try:
            return self._probe()
        except Exception as e:
            logger.debug("%s probe failed: %r", self.name, e)
            return None

    def poll_once(self) -> Optional[ProtectionEvent]:
        """
        Sample once and emit an event on a flip.

        Returns
        -------
        ProtectionEvent or None
            The emitted event, if any.
        """
        value = self.read()

        with self._lock:
            if self._handle is None:
                return None

            if value is None:
                if not self._unavailable_reported:
                    logger.warning("%s signal unavailable; trigger is inert", self.name)
                    self._unavailable_reported = True
                return None
            self._unavailable_reported = False

            last, self._last = self._last, value
            if last is None or last == value:
                return None

            kind = self._when_true if value else self._when_false

        if kind is None:
            return None
        event = ProtectionEvent(kind=kind)
        self._on_event(event)
        return event


class LidMonitor(PollingMonitor):
    """Lid monitor: emits LID_CLOSED / LID_OPENED."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_event: EventCallback,
        probe: Probe = probes.lid_closed,
        interval_s: float = 0.5,
    ):
        super().__init__(
            name="lid",
            probe=probe,
            scheduler=scheduler,
            on_event=on_event,
            when_true=EventKind.LID_CLOSED,
            when_false=EventKind.LID_OPENED,
            interval_s=interval_s,
        )

    def is_closed(self) -> bool:
        """Synchronous lid query used around sleep boundaries."""
        return self.read() is True


class PowerMonitor(PollingMonitor):
    """AC power monitor: emits POWER_DISCONNECTED / POWER_CONNECTED."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_event: EventCallback,
        probe: Probe = probes.ac_online,
        interval_s: float = 0.5,
    ):
        super().__init__(
            name="power",
            probe=probe,
            scheduler=scheduler,
            on_event=on_event,
            when_true=EventKind.POWER_CONNECTED,
            when_false=EventKind.POWER_DISCONNECTED,
            interval_s=interval_s,
        )
