from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from lidguard.notification.notification_thread import NotificationDispatcher
from lidguard.runtime.event_bus import EventBus
from lidguard.runtime.protection_worker_thread import ProtectionWorkerThread
from lidguard.services.controller import ProtectionController
from lidguard.services.device_info import SystemDeviceInfoCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppRuntimeConfig:
    """
    Runtime configuration for thread orchestration.

    Parameters
    ----------
    join_timeout_s
        How long :meth:`AppRuntime.stop` waits for each thread.
    worker_poll_timeout_s
        Queue poll timeout of the protection worker.
    """

    join_timeout_s: float = 2.0
    worker_poll_timeout_s: float = 0.5


class AppRuntime:
    """
    Thread supervisor for the protection runtime.

    This class owns:
    - a shared stop event
    - thread lifecycles (start/stop/join)
    - the order in which the controller and its consumers come up and down

    Thread Topology
    ---------------
    1) Monitor timers and the command poller (producers)
       - sample signals / poll the chat bot
       - publish ProtectionEvent into the EventBus

    2) ProtectionWorkerThread (business logic)
       - consumes events one at a time
       - invokes ProtectionController.handle_event()

    3) Dispatch executor (inside the controller)
       - collects device info and composes messages

    4) NotificationWorkerThread per channel (delivery)
       - runs the retrying delivery pipeline

    Notes
    -----
    - All threads are daemon threads; `stop()` still joins them for a clean exit.
    - Backpressure policy: the bus and the notification queues drop when full.
    """

    def __init__(
        self,
        controller: ProtectionController,
        bus: EventBus,
        notifications: NotificationDispatcher,
        collector: Optional[SystemDeviceInfoCollector] = None,
        cfg: AppRuntimeConfig | None = None,
    ):
        self._cfg = cfg or AppRuntimeConfig()
        self._controller = controller
        self._bus = bus
        self._notifications = notifications
        self._collector = collector
        self._stop = threading.Event()
        self._started = False

        self._worker = ProtectionWorkerThread(
            handle_event=controller.handle_event,
            events_q=bus.events_q,
            stop_event=self._stop,
            poll_timeout_s=self._cfg.worker_poll_timeout_s,
        )

    @property
    def controller(self) -> ProtectionController:
        return self._controller

    def start(self) -> None:
        """
        Start all runtime threads.

        Notes
        -----
        Consumers start before producers:
        - notification workers first (so alerts can be delivered)
        - protection worker next (consumes events)
        - controller last (starts the poller and the sleep/wake hook)
        """
        if self._started:
            return
        self._started = True
        self._notifications.start()
        self._worker.start()
        self._controller.start()
        logger.info("runtime started")

    def stop(self) -> None:
        """
        Stop producers, then the worker, then delivery.

        Notification workers finish the request in flight; requests still
        queued are dropped.
        """
        if not self._started:
            return
        self._started = False
        self._controller.shutdown()
        self._worker.stop()
        self._worker.join(timeout=self._cfg.join_timeout_s)
        self._notifications.stop()
        if self._collector is not None:
            self._collector.shutdown()
        logger.info("runtime stopped")
