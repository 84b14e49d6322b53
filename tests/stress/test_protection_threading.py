"""
Stress tests for concurrent access to ProtectionController and EventBus.

These tests validate:
- concurrent triggers from many threads produce exactly one episode and one
  initial alert
- interleaved enable / disable / trigger / disarm calls never corrupt state
- EventBus.publish is safe under concurrent producers
- with the real executor and timer threads, the initial alert precedes every
  tracking update and nothing is sent after disarm

Notes
-----
Thread stress tests are probabilistic: passing increases confidence but does not
prove the absence of races. Run repeatedly for higher confidence.
"""

from __future__ import annotations

import random
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from queue import Empty, Queue
from typing import List

import pytest

from lidguard.core.config.yaml_config import AppConfig
from lidguard.core.protection.tracking import TrackingLoop
from lidguard.core.state.activity_log import ActivityLog
from lidguard.domain.events import EventKind, ProtectionEvent
from lidguard.domain.models import Channel, DeviceInfoSnapshot, ProtectionState, TriggerReason
from lidguard.notification.base import NotificationRequest
from lidguard.runtime.event_bus import EventBus
from lidguard.runtime.scheduler import ThreadScheduler
from lidguard.services.controller import ProtectionController


class InlineExecutor(Executor):
    def submit(self, fn, /, *args, **kwargs) -> Future:
        f: Future = Future()
        f.set_result(fn(*args, **kwargs))
        return f


@dataclass
class _NeverTicks:
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class IdleScheduler:
    def call_every(self, interval_s, fn, initial_delay_s=None, name="timer") -> _NeverTicks:
        return _NeverTicks()


@dataclass
class LockedSink:
    requests: List[NotificationRequest] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def emit(self, request: NotificationRequest) -> None:
        with self._lock:
            self.requests.append(request)

    def containing(self, text: str) -> List[NotificationRequest]:
        with self._lock:
            return [r for r in self.requests if text in r.message]


class StaticCollector:
    def warm_up(self) -> None:
        pass

    def collect(self) -> DeviceInfoSnapshot:
        return DeviceInfoSnapshot(timestamp=datetime(2026, 1, 1), device_name="stress")


def _controller(sink: LockedSink) -> ProtectionController:
    return ProtectionController(
        config=AppConfig(),
        notifier=sink,
        collector=StaticCollector(),
        activity_log=ActivityLog(max_entries=10_000),
        tracking=TrackingLoop(IdleScheduler()),
        executor=InlineExecutor(),
    )


def _run_threads(n: int, target) -> None:
    barrier = threading.Barrier(n)

    def run(i: int) -> None:
        barrier.wait()
        target(i)

    threads = [threading.Thread(target=run, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10.0)
        assert not t.is_alive()


@pytest.mark.stress
def test_concurrent_triggers_produce_single_alert() -> None:
    """
    Many threads report lid-closed / power-disconnected at the same instant.
    """
    sink = LockedSink()
    c = _controller(sink)
    c.enable()

    def fire(i: int) -> None:
        kind = EventKind.LID_CLOSED if i % 2 else EventKind.POWER_DISCONNECTED
        for _ in range(50):
            c.handle_event(ProtectionEvent(kind=kind))

    _run_threads(16, fire)

    assert c.state == ProtectionState.TRIGGERED
    assert c.update_count == 1
    assert len(sink.containing("<b>THEFT MODE ACTIVATED</b>")) == 1
    assert len(sink.containing("🚨 THEFT MODE ACTIVATED - ")) == 1


@pytest.mark.stress
def test_random_interleaving_keeps_state_consistent() -> None:
    sink = LockedSink()
    c = _controller(sink)
    transitions: List[ProtectionState] = []
    c.subscribe(transitions.append)

    ops = [
        c.enable,
        c.disable,
        lambda: c.trigger(TriggerReason.LID_CLOSED),
        c.disarm,
        c.request_status,
        c.should_block_shutdown,
    ]

    def churn(i: int) -> None:
        rnd = random.Random(i)
        for _ in range(300):
            rnd.choice(ops)()

    _run_threads(8, churn)

    allowed = {
        (ProtectionState.DISABLED, ProtectionState.ENABLED),
        (ProtectionState.ENABLED, ProtectionState.DISABLED),
        (ProtectionState.ENABLED, ProtectionState.TRIGGERED),
        (ProtectionState.TRIGGERED, ProtectionState.ENABLED),
    }
    prev = ProtectionState.DISABLED
    for state in transitions:
        assert (prev, state) in allowed
        prev = state
    assert prev == c.state

    episodes = len(sink.containing("<b>THEFT MODE ACTIVATED</b>"))
    assert episodes == transitions.count(ProtectionState.TRIGGERED)


@pytest.mark.stress
def test_event_bus_concurrent_publish() -> None:
    bus = EventBus(events_q=Queue(maxsize=100_000))
    n_threads, per_thread = 8, 2_000

    _run_threads(n_threads, lambda i: [bus.publish(ProtectionEvent(kind=EventKind.LID_CLOSED)) for _ in range(per_thread)])

    drained = 0
    while True:
        try:
            bus.events_q.get_nowait()
        except Empty:
            break
        drained += 1

    assert drained == n_threads * per_thread


@pytest.mark.stress
def test_event_bus_full_queue_never_blocks_producers() -> None:
    bus = EventBus(events_q=Queue(maxsize=10))
    accepted: List[bool] = []
    lock = threading.Lock()

    def produce(i: int) -> None:
        for _ in range(500):
            ok = bus.publish(ProtectionEvent(kind=EventKind.POWER_CONNECTED))
            with lock:
                accepted.append(ok)

    _run_threads(8, produce)

    assert accepted.count(True) == 10
    assert bus.events_q.full()


class SlowCollector(StaticCollector):
    def __init__(self, delay_s: float):
        self._delay_s = delay_s

    def collect(self) -> DeviceInfoSnapshot:
        time.sleep(self._delay_s)
        return super().collect()


def _wait_for(predicate, timeout_s: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.mark.stress
def test_initial_alert_precedes_tracking_and_disarm_stops_updates() -> None:
    sink = LockedSink()
    c = ProtectionController(
        config=AppConfig(),
        notifier=sink,
        collector=SlowCollector(delay_s=0.15),
        activity_log=ActivityLog(max_entries=10_000),
        tracking=TrackingLoop(ThreadScheduler(), interval_s=0.1),
        executor=ThreadPoolExecutor(max_workers=1, thread_name_prefix="dispatch"),
    )
    try:
        c.enable()
        c.trigger(TriggerReason.LID_CLOSED)

        assert _wait_for(lambda: len(sink.containing("TRACKING UPDATE")) >= 2)
        c.disarm()
        time.sleep(0.5)

        with sink._lock:
            telegram = [r.message for r in sink.requests if r.channel == Channel.TELEGRAM]

        assert "PROTECTION ENABLED" in telegram[0]
        assert "THEFT MODE ACTIVATED" in telegram[1]
        assert "TRACKING UPDATE #2" in telegram[2]
        assert "THEFT MODE DEACTIVATED" in telegram[-1]
        assert all("TRACKING UPDATE" in m for m in telegram[2:-1])

        settled = len(sink.requests)
        time.sleep(0.3)
        assert len(sink.requests) == settled
    finally:
        c.shutdown()
