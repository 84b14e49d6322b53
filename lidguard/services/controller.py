from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from lidguard.core.config.yaml_config import AppConfig
from lidguard.core.protection.state_machine import ProtectionStateMachine, StateObserver
from lidguard.core.protection.tracking import TrackingLoop
from lidguard.core.state.activity_log import ActivityLog, LogCategory
from lidguard.domain.events import EventKind, ProtectionEvent
from lidguard.domain.models import (
    Channel,
    KeyboardVariant,
    ProtectionState,
    RemoteCommand,
    TriggerReason,
    keyboard_for_state,
)
from lidguard.notification.base import NotificationRequest, NotificationSink
from lidguard.services.device_info import DeviceInfoCollector
from lidguard.services.system_actions import SystemActions

logger = logging.getLogger(__name__)

OVERLAY_MESSAGE = "STOLEN DEVICE"


class Startable(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


class LidSensor(Startable, Protocol):
    def is_closed(self) -> bool:
        ...


@dataclass
class SignalMonitors:
    """
    Signal sources owned by the controller. Missing monitors are inert.
    """
    lid: Optional[LidSensor] = None
    power: Optional[Startable] = None
    power_button: Optional[Startable] = None
    sleep_wake: Optional[Startable] = None


class ProtectionController:
    """
    Orchestrate the protection lifecycle and its side effects.

    Responsibilities
    ----------------
    - Consume protection events (monitors, remote commands, shell requests).
    - Apply transitions through `ProtectionStateMachine` (sole state writer).
    - Start/stop monitors, sleep prevention, alarm, overlay and the
      tracking loop.
    - Dispatch notification continuations (collect device info, compose,
      emit) onto the background executor.

    Concurrency Model
    -----------------
    - Every public entry point runs under one re-entrant lock, so guard
      evaluation and state mutation form a single atomic step.
    - Device-info collection and composition run on ``executor`` outside
      the lock; they re-acquire it only to re-check the episode before
      sending a tracking update.
    - With a single-worker executor, continuations run in submission order,
      so an episode's initial alert is emitted before its first tracking
      update.

    Parameters
    ----------
    config
        Read-only configuration.
    notifier
        Fire-and-forget sink for notification requests.
    collector
        Device info collector.
    activity_log
        Append-only activity log.
    tracking
        Tracking loop timer.
    executor
        Background executor for continuations.
    monitors
        Signal monitors.
    actions
        OS side-effect interfaces.
    command_poller
        Remote command poller started/stopped with the controller.
    """

    def __init__(
        self,
        config: AppConfig,
        notifier: NotificationSink,
        collector: DeviceInfoCollector,
        activity_log: ActivityLog,
        tracking: TrackingLoop,
        executor: Executor,
        monitors: Optional[SignalMonitors] = None,
        actions: Optional[SystemActions] = None,
        command_poller: Optional[Startable] = None,
    ):
        self._cfg = config
        self._notifier = notifier
        self._collector = collector
        self._log = activity_log
        self._tracking = tracking
        self._executor = executor
        self._monitors = monitors or SignalMonitors()
        self._actions = actions or SystemActions()
        self._poller = command_poller
        self._sm = ProtectionStateMachine()
        self._lock = threading.RLock()

    # -------------------------
    # Observers / queries
    # -------------------------
    @property
    def state(self) -> ProtectionState:
        with self._lock:
            return self._sm.state

    def current_state(self) -> ProtectionState:
        return self.state

    @property
    def trigger_reason(self) -> Optional[TriggerReason]:
        with self._lock:
            return self._sm.reason

    @property
    def update_count(self) -> int:
        with self._lock:
            return self._sm.update_count

    def subscribe(self, observer: StateObserver) -> None:
        """
        Register an ``on_state_changed(state)`` callback.

        Callbacks run synchronously inside the serialized section and must
        not block or call back into transition methods from another thread.
        """
        with self._lock:
            self._sm.subscribe(observer)

    def should_deny_sleep(self) -> bool:
        with self._lock:
            return self._sm.state == ProtectionState.TRIGGERED

    def should_block_shutdown(self) -> bool:
        """
        Answer a process termination request.

        Returns
        -------
        bool
            True (block) when TRIGGERED, or when ENABLED with shutdown
            blocking configured; a "SHUTDOWN BLOCKED" alert is sent then.
            False (permit) otherwise.
        """
        with self._lock:
            state = self._sm.state
            block = state == ProtectionState.TRIGGERED or (
                state == ProtectionState.ENABLED and self._cfg.behavior.shutdown_blocking
            )
            if block:
                self._log.append(LogCategory.SYSTEM, "Shutdown blocked")
                self._send_shutdown_alert(blocked=True)
            return block

    # -------------------------
    # Lifecycle
    # -------------------------
    def start(self) -> None:
        self._dispatch(self._collector.warm_up)
        if self._monitors.sleep_wake is not None:
            self._monitors.sleep_wake.start()
        if self._poller is not None:
            self._poller.start()
        logger.info("Started (protection disabled)")
        self._log.append(LogCategory.SYSTEM, "Started (protection disabled)")

    def shutdown(self) -> None:
        with self._lock:
            self._tracking.stop()
            self._stop_monitors()
            if self._monitors.sleep_wake is not None:
                self._monitors.sleep_wake.stop()
            if self._poller is not None:
                self._poller.stop()
            self._actions.alarm.stop()
            self._actions.sleep_prevention.disable()
        self._executor.shutdown(wait=False)
        self._log.append(LogCategory.SYSTEM, "Shutting down")

    # -------------------------
    # Event intake
    # -------------------------
    def handle_event(self, ev: ProtectionEvent) -> None:
        """
        Handle one protection event. Unknown or inapplicable events are no-ops.
        """
        kind = ev.kind
        if kind == EventKind.LID_CLOSED:
            self.on_lid_closed()
        elif kind == EventKind.LID_OPENED:
            self.on_lid_opened()
        elif kind == EventKind.POWER_DISCONNECTED:
            self.on_power_disconnected()
        elif kind == EventKind.POWER_CONNECTED:
            logger.info("Power connected")
        elif kind == EventKind.POWER_BUTTON_PRESSED:
            self.on_power_button()
        elif kind == EventKind.SYSTEM_WILL_SLEEP:
            self.system_will_sleep()
        elif kind == EventKind.SYSTEM_DID_WAKE:
            self.system_did_wake()
        elif kind == EventKind.REMOTE_COMMAND and ev.command is not None:
            self.handle_command(ev.command)
        elif kind == EventKind.ENABLE_REQUESTED:
            self.enable()
        elif kind == EventKind.DISABLE_REQUESTED:
            self.disable(remote=ev.remote)
        elif kind == EventKind.DISARM_REQUESTED:
            self.disarm(remote=ev.remote)
        elif kind == EventKind.STATUS_REQUESTED:
            self.request_status()

    def handle_command(self, command: RemoteCommand) -> None:
        if command == RemoteCommand.DISARM:
            self.disarm(remote=True)
        elif command == RemoteCommand.STATUS:
            self.request_status()
        elif command == RemoteCommand.ENABLE:
            self.enable()
        elif command == RemoteCommand.DISABLE:
            self.disable(remote=True)
        elif command == RemoteCommand.ARM_ALARM:
            self._arm_alarm()
        elif command == RemoteCommand.SILENCE_ALARM:
            self._silence_alarm()

    # -------------------------
    # Transitions
    # -------------------------
    def enable(self) -> bool:
        with self._lock:
            if not self._sm.enable():
                return False

            if self._cfg.behavior.sleep_prevention:
                self._actions.sleep_prevention.enable()
            self._start_monitors()

            logger.info("Protection enabled")
            self._log.append(LogCategory.ARMED, "Protection enabled")
            self._telegram("🟢 <b>PROTECTION ENABLED</b>\n\nMonitoring for lid close.", KeyboardVariant.ARMED)
            return True

    def disable(self, remote: bool = False) -> bool:
        with self._lock:
            if not self._sm.disable():
                return False

            self._stop_monitors()
            self._actions.sleep_prevention.disable()

            method = _method(remote)
            logger.info("Protection disabled")
            self._log.append(LogCategory.DISARMED, f"Protection disabled via {method}")
            self._telegram(f"🔴 <b>PROTECTION DISABLED</b>\n\nDisabled via {method}.", KeyboardVariant.DISARMED)
            return True

    def trigger(self, reason: TriggerReason) -> bool:
        """
        Enter theft mode.

        Returns
        -------
        bool
            True if a new episode started; False when not armed or already
            triggered (no duplicate alert, counter untouched).
        """
        with self._lock:
            if not self._sm.trigger(reason):
                return False

            episode = self._sm.episode
            logger.warning("THEFT MODE ACTIVATED - %s", reason.description)
            self._log.append(LogCategory.THEFT, f"THEFT MODE ACTIVATED - {reason.description}")

            behavior = self._cfg.behavior
            if behavior.lock_screen:
                self._actions.screen_locker.lock()
                self._actions.overlay.show(
                    OVERLAY_MESSAGE,
                    contact=self._cfg.contact.display,
                    on_unlock=self._on_overlay_unlock,
                )

            self._notifier.emit(
                NotificationRequest(
                    message=f"🚨 THEFT MODE ACTIVATED - {reason.description}",
                    channel=Channel.PUSHOVER,
                    priority=1,
                )
            )

            if behavior.alarm and behavior.auto_alarm:
                self._actions.alarm.play()

            self._sm.next_update()
            self._dispatch(self._send_initial_alert, reason)
            self._tracking.start(lambda: self._on_tracking_tick(episode))
            return True

    def disarm(self, remote: bool = False) -> bool:
        with self._lock:
            if not self._sm.disarm():
                return False

            self._tracking.stop()
            self._actions.alarm.stop()
            self._actions.overlay.hide()

            method = _method(remote)
            logger.info("Theft mode deactivated")
            self._log.append(LogCategory.THEFT, f"Theft mode deactivated via {method}")
            self._telegram(
                f"✅ <b>THEFT MODE DEACTIVATED</b>\n\nOwner authenticated via {method}.",
                KeyboardVariant.ARMED,
            )
            return True

    # -------------------------
    # Signals
    # -------------------------
    def on_lid_closed(self) -> None:
        with self._lock:
            if not self._cfg.triggers.lid_close or self._sm.state == ProtectionState.DISABLED:
                return
            if self._sm.state == ProtectionState.TRIGGERED:
                logger.debug("lid closed again, theft mode already active")
                return
            self._log.append(LogCategory.TRIGGER, "Lid closed detected")
            self.trigger(TriggerReason.LID_CLOSED)

    def on_lid_opened(self) -> None:
        with self._lock:
            if self._sm.state != ProtectionState.TRIGGERED:
                return
            logger.info("Lid opened - theft mode still active")
            self._log.append(LogCategory.TRIGGER, "Lid opened - theft mode still active")

    def on_power_disconnected(self) -> None:
        with self._lock:
            if self._sm.state != ProtectionState.ENABLED or not self._cfg.triggers.power_disconnect:
                return
            self._log.append(LogCategory.TRIGGER, "Power disconnected detected")
            self.trigger(TriggerReason.POWER_DISCONNECTED)

    def on_power_button(self) -> None:
        with self._lock:
            if self._sm.state == ProtectionState.DISABLED or not self._cfg.triggers.power_button:
                return
            self._log.append(LogCategory.TRIGGER, "Power button pressed detected")
            self._send_shutdown_alert(blocked=False)

    def system_will_sleep(self) -> None:
        with self._lock:
            self._log.append(LogCategory.POWER, "System will sleep")
            self._check_lid_before_sleep_boundary()

    def system_did_wake(self) -> None:
        with self._lock:
            self._log.append(LogCategory.POWER, "System did wake")
            if self._sm.state != ProtectionState.ENABLED:
                return
            if self._cfg.behavior.sleep_prevention:
                self._actions.sleep_prevention.enable()
            self._check_lid_before_sleep_boundary()

    def _check_lid_before_sleep_boundary(self) -> None:
        lid = self._monitors.lid
        if self._sm.state != ProtectionState.ENABLED or not self._cfg.triggers.lid_close or lid is None:
            return
        if lid.is_closed():
            self._log.append(LogCategory.TRIGGER, "Lid closed at sleep boundary")
            self.trigger(TriggerReason.LID_CLOSED)

    # -------------------------
    # Reports
    # -------------------------
    def request_status(self) -> None:
        self._dispatch(self._send_status)

    def send_test_alert(self) -> None:
        self._dispatch(self._send_test_alert)
        self._log.append(LogCategory.SYSTEM, "Test alert sent")

    def refresh_location(self) -> None:
        self._dispatch(self._collector.warm_up)

    def _arm_alarm(self) -> None:
        with self._lock:
            if self._sm.state != ProtectionState.TRIGGERED or not self._cfg.behavior.alarm:
                return
            self._actions.alarm.play()
            self._log.append(LogCategory.THEFT, "Alarm activated remotely")
            self._telegram("🔊 <b>ALARM ACTIVATED</b>", KeyboardVariant.TRIGGERED_ALARM_ON)

    def _silence_alarm(self) -> None:
        with self._lock:
            self._actions.alarm.stop()
            self._log.append(LogCategory.THEFT, "Alarm stopped remotely")
            self._telegram("🔇 <b>ALARM STOPPED</b>", keyboard_for_state(self._sm.state))

    # -------------------------
    # Tracking
    # -------------------------
    def _on_tracking_tick(self, episode: int) -> None:
        with self._lock:
            if self._sm.state != ProtectionState.TRIGGERED or self._sm.episode != episode:
                return
            count = self._sm.next_update()
        self._dispatch(self._send_tracking_update, episode, count)

    def _episode_active(self, episode: int) -> bool:
        with self._lock:
            return self._sm.state == ProtectionState.TRIGGERED and self._sm.episode == episode

    def _on_overlay_unlock(self) -> None:
        self.disarm(remote=False)

    # -------------------------
    # Continuations (run on the executor; collection happens outside the lock)
    # -------------------------
    def _send_initial_alert(self, reason: TriggerReason) -> None:
        info = self._collector.collect()
        self._telegram(
            f"🚨 <b>THEFT MODE ACTIVATED</b>\n⚠️ <b>Trigger:</b> {reason.description}\n\n{info.formatted_message()}",
            KeyboardVariant.TRIGGERED,
        )

    def _send_tracking_update(self, episode: int, count: int) -> None:
        info = self._collector.collect()
        with self._lock:
            if not self._episode_active(episode):
                logger.debug("tracking update #%d dropped: episode ended", count)
                return
            self._telegram(f"📡 <b>TRACKING UPDATE #{count}</b>\n\n{info.formatted_message()}", KeyboardVariant.TRIGGERED)
        self._log.append(LogCategory.THEFT, f"Tracking update #{count} sent")

    def _send_status(self) -> None:
        info = self._collector.collect()
        state = self.state
        if state == ProtectionState.DISABLED:
            status = "🔴 PROTECTION DISABLED"
        elif state == ProtectionState.ENABLED:
            status = "✅ Monitoring"
        else:
            status = "🚨 THEFT MODE ACTIVE"
        self._telegram(f"<b>STATUS: {status}</b>\n\n{info.formatted_message()}", keyboard_for_state(state))

    def _send_test_alert(self) -> None:
        info = self._collector.collect()
        keyboard = keyboard_for_state(self.state)
        self._telegram(f"🧪 <b>TEST ALERT</b>\n\n{info.formatted_message()}", keyboard)

    def _send_shutdown_alert(self, blocked: bool) -> None:
        title = "SHUTDOWN BLOCKED" if blocked else "POWER BUTTON PRESSED"
        subtitle = "Someone tried to shut down!" if blocked else "Device may be force-powered off!"

        def compose() -> None:
            info = self._collector.collect()
            keyboard = KeyboardVariant.TRIGGERED if self.state == ProtectionState.TRIGGERED else KeyboardVariant.ARMED
            self._telegram(f"🚨 <b>{title}</b>\n\n⚠️ {subtitle}\n\n{info.formatted_message()}", keyboard)

        self._dispatch(compose)
        self._notifier.emit(NotificationRequest(message=f"🚨 {title} - {subtitle}", channel=Channel.PUSHOVER))

    # -------------------------
    # Helpers
    # -------------------------
    def _telegram(self, message: str, keyboard: KeyboardVariant) -> None:
        self._notifier.emit(NotificationRequest(message=message, channel=Channel.TELEGRAM, keyboard=keyboard))

    def _start_monitors(self) -> None:
        triggers = self._cfg.triggers
        m = self._monitors
        if triggers.lid_close and m.lid is not None:
            m.lid.start()
        if triggers.power_disconnect and m.power is not None:
            m.power.start()
        if triggers.power_button and m.power_button is not None:
            m.power_button.start()

    def _stop_monitors(self) -> None:
        m = self._monitors
        for monitor in (m.lid, m.power, m.power_button):
            if monitor is not None:
                monitor.stop()

    def _dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        name = getattr(fn, "__name__", "task")

        def run() -> None:
            try:
                fn(*args)
            except Exception:
                logger.exception("dispatched task %s failed", name)

        try:
            self._executor.submit(run)
        except RuntimeError:
            logger.warning("executor shut down, dropping %s", name)


def _method(remote: bool) -> str:
    return "Telegram" if remote else "local request"
