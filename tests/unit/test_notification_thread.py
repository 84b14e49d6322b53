"""
Unit tests for lidguard.notification.notification_thread.

These tests validate:
- per-channel workers deliver requests in FIFO order
- the dispatcher routes by channel
- a full queue drops the newest request without raising
- a slow channel does not hold back the other channel
- stop finishes the request in flight and drops queued ones
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List

from lidguard.core.state.activity_log import ActivityLog
from lidguard.domain.models import Channel
from lidguard.notification.base import DeliveryResult, NotificationRequest
from lidguard.notification.delivery import DeliveryPipeline
from lidguard.notification.notification_thread import (
    NotificationDispatcher,
    NotificationThreadConfig,
    NotificationWorkerThread,
)

FAST = NotificationThreadConfig(max_queue=10, poll_timeout_s=0.05, join_timeout_s=2.0)


@dataclass
class RecordingNotifier:
    channel: Channel
    sent: List[str] = field(default_factory=list)
    gate: threading.Event = field(default_factory=threading.Event)
    entered: threading.Event = field(default_factory=threading.Event)

    def __post_init__(self) -> None:
        self.gate.set()

    def is_available(self) -> bool:
        return True

    def send(self, request: NotificationRequest) -> None:
        self.entered.set()
        self.gate.wait(timeout=5.0)
        self.sent.append(request.message)


def _worker(notifier: RecordingNotifier, cfg: NotificationThreadConfig = FAST) -> NotificationWorkerThread:
    return NotificationWorkerThread(DeliveryPipeline(notifier, ActivityLog(), sleep=lambda s: None), cfg)


def test_worker_delivers_in_order() -> None:
    notifier = RecordingNotifier(Channel.TELEGRAM)
    worker = _worker(notifier)
    done = threading.Event()

    worker.start()
    worker.emit(NotificationRequest("a"))
    worker.emit(NotificationRequest("b"))
    worker.emit(NotificationRequest("c", on_complete=lambda r: done.set()))
    assert done.wait(timeout=5.0)
    worker.stop()

    assert notifier.sent == ["a", "b", "c"]
    assert worker.channel == Channel.TELEGRAM


def test_full_queue_drops_without_raising() -> None:
    notifier = RecordingNotifier(Channel.TELEGRAM)
    worker = _worker(notifier, NotificationThreadConfig(max_queue=1, poll_timeout_s=0.05))

    kept = threading.Event()
    worker.emit(NotificationRequest("kept", on_complete=lambda r: kept.set()))
    worker.emit(NotificationRequest("dropped"))

    done = threading.Event()
    worker.start()
    assert kept.wait(timeout=5.0)
    worker.emit(NotificationRequest("after", on_complete=lambda r: done.set()))
    assert done.wait(timeout=5.0)
    worker.stop()

    assert notifier.sent == ["kept", "after"]


def test_dispatcher_routes_by_channel_and_channels_are_independent() -> None:
    telegram = RecordingNotifier(Channel.TELEGRAM)
    pushover = RecordingNotifier(Channel.PUSHOVER)
    telegram.gate.clear()  # telegram is stuck

    dispatcher = NotificationDispatcher([_worker(telegram), _worker(pushover)])
    pushed = threading.Event()
    results: List[DeliveryResult] = []

    def on_push(r: DeliveryResult) -> None:
        results.append(r)
        pushed.set()

    dispatcher.start()
    dispatcher.emit(NotificationRequest("tg", channel=Channel.TELEGRAM))
    dispatcher.emit(NotificationRequest("push", channel=Channel.PUSHOVER, on_complete=on_push))

    assert pushed.wait(timeout=5.0)
    assert pushover.sent == ["push"]
    assert telegram.entered.wait(timeout=5.0)
    assert telegram.sent == []

    telegram.gate.set()
    dispatcher.stop()
    assert dispatcher.worker(Channel.TELEGRAM) is not None
    assert telegram.sent == ["tg"]


def test_dispatcher_without_worker_drops() -> None:
    dispatcher = NotificationDispatcher([])
    dispatcher.emit(NotificationRequest("x", channel=Channel.PUSHOVER))
    assert dispatcher.worker(Channel.PUSHOVER) is None


def test_stop_finishes_in_flight_request_and_drops_queued() -> None:
    notifier = RecordingNotifier(Channel.TELEGRAM)
    notifier.gate.clear()
    worker = _worker(notifier)

    worker.start()
    worker.emit(NotificationRequest("in-flight"))
    assert notifier.entered.wait(timeout=2.0)
    worker.emit(NotificationRequest("queued"))

    stopper = threading.Thread(target=worker.stop)
    stopper.start()
    assert worker._stop.wait(timeout=2.0)
    notifier.gate.set()
    stopper.join(timeout=5.0)

    assert notifier.sent == ["in-flight"]
