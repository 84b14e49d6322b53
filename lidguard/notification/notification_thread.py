from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

from lidguard.domain.models import Channel
from lidguard.notification.base import NotificationRequest
from lidguard.notification.delivery import DeliveryPipeline

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True)
class NotificationThreadConfig:
    max_queue: int = 200
    poll_timeout_s: float = 0.5
    join_timeout_s: float = 2.0


class NotificationWorkerThread:
    """
    Worker thread draining one channel's request queue through its pipeline.

    Requests are delivered in FIFO order. A retry delay inside the pipeline
    holds back only this channel's queue.
    """

    def __init__(self, pipeline: DeliveryPipeline, cfg: NotificationThreadConfig | None = None):
        self._pipeline = pipeline
        self._cfg = cfg or NotificationThreadConfig()
        self._q: "queue.Queue[Union[NotificationRequest, object]]" = queue.Queue(maxsize=self._cfg.max_queue)
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"notification-{pipeline.channel.value.lower()}",
            daemon=True,
        )

    @property
    def channel(self) -> Channel:
        return self._pipeline.channel

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        try:
            self._q.put_nowait(_STOP)
        except queue.Full:
            pass
        self._thread.join(timeout=self._cfg.join_timeout_s)

    def emit(self, request: NotificationRequest) -> None:
        try:
            self._q.put_nowait(request)
        except queue.Full:
            # Drop newest if overloaded; the next periodic update recovers.
            logger.warning("%s queue full, dropping notification", self.channel.value)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                item = self._q.get(timeout=self._cfg.poll_timeout_s)
            except queue.Empty:
                continue

            if item is _STOP:
                break

            try:
                self._pipeline.send(item)  # type: ignore[arg-type]
            except Exception:
                logger.exception("%s worker failed to process request", self.channel.value)


class NotificationDispatcher:
    """
    Routes fire-and-forget requests to the worker of their target channel.

    Parameters
    ----------
    workers
        One worker per channel.
    """

    def __init__(self, workers: Iterable[NotificationWorkerThread]):
        self._workers: Dict[Channel, NotificationWorkerThread] = {w.channel: w for w in workers}

    def start(self) -> None:
        for w in self._workers.values():
            w.start()

    def stop(self) -> None:
        for w in self._workers.values():
            w.stop()

    def worker(self, channel: Channel) -> Optional[NotificationWorkerThread]:
        return self._workers.get(channel)

    def emit(self, request: NotificationRequest) -> None:
        worker = self._workers.get(request.channel)
        if worker is None:
            logger.debug("no worker for %s, dropping notification", request.channel.value)
            return
        worker.emit(request)
