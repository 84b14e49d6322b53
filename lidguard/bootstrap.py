from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from lidguard.core.config.yaml_config import AppConfig, load_app_config
from lidguard.core.protection.tracking import TrackingLoop
from lidguard.core.state.activity_log import ActivityLog

from lidguard.monitors.polling import LidMonitor, PowerMonitor
from lidguard.monitors.power_button import PowerButtonMonitor
from lidguard.monitors.sleep_wake import SleepWakeMonitor

from lidguard.notification.delivery import DeliveryPipeline
from lidguard.notification.notification_thread import NotificationDispatcher, NotificationWorkerThread
from lidguard.notification.pushover_notifier import PushoverNotifier
from lidguard.notification.telegram_notifier import TelegramNotifier

from lidguard.remote.command_poller import RemoteCommandPoller

from lidguard.runtime.app_runtime import AppRuntime
from lidguard.runtime.event_bus import EventBus
from lidguard.runtime.scheduler import Scheduler, ThreadScheduler
from lidguard.services.controller import ProtectionController, SignalMonitors
from lidguard.services.device_info import IpGeoLocationProvider, SystemDeviceInfoCollector
from lidguard.services.system_actions import (
    DEFAULT_LOCK_COMMAND,
    DEFAULT_SLEEP_INHIBIT_COMMAND,
    CommandAlarmPlayer,
    CommandScreenLocker,
    InhibitSleepPrevention,
    LoggingMessageOverlay,
    NullAction,
    SystemActions,
)

DEFAULT_ACTIVITY_LOG_PATH = "~/.lidguard/activity_log.json"


@dataclass(frozen=True)
class AppWiring:
    """Everything the shell (CLI, tray, OS hooks) needs to run the system."""
    config: AppConfig
    activity_log: ActivityLog
    bus: EventBus
    controller: ProtectionController
    runtime: AppRuntime
    overlay: LoggingMessageOverlay
    power_button: PowerButtonMonitor
    sleep_wake: SleepWakeMonitor


def build_notifications(cfg: AppConfig, activity_log: ActivityLog) -> NotificationDispatcher:
    timing = cfg.timing
    channels = [
        TelegramNotifier(cfg.telegram, alarm_enabled=cfg.behavior.alarm),
        PushoverNotifier(cfg.pushover),
    ]
    return NotificationDispatcher(
        NotificationWorkerThread(
            DeliveryPipeline(
                notifier,
                activity_log,
                retry_count=timing.retry_count,
                retry_delay_s=timing.retry_delay_s,
            )
        )
        for notifier in channels
    )


def build_actions(cfg: AppConfig, overlay: LoggingMessageOverlay) -> SystemActions:
    alarm = (
        CommandAlarmPlayer(cfg.alarm.command, sound=cfg.alarm.sound, volume=cfg.alarm.volume)
        if cfg.alarm.command
        else NullAction()
    )
    return SystemActions(
        sleep_prevention=InhibitSleepPrevention(cfg.actions.sleep_inhibit_command or DEFAULT_SLEEP_INHIBIT_COMMAND),
        screen_locker=CommandScreenLocker(cfg.actions.lock_command or DEFAULT_LOCK_COMMAND),
        overlay=overlay,
        alarm=alarm,
    )


def build_app_system(config_path: Optional[str] = None, scheduler: Optional[Scheduler] = None) -> AppWiring:
    cfg = load_app_config(config_path)
    scheduler = scheduler or ThreadScheduler()
    timing = cfg.timing

    # --- STATE ---
    activity_log = ActivityLog(
        path=cfg.activity_log.path or DEFAULT_ACTIVITY_LOG_PATH,
        max_entries=cfg.activity_log.max_entries,
    )

    # --- EVENT BUS ---
    bus = EventBus()

    # --- NOTIFICATIONS ---
    notifications = build_notifications(cfg, activity_log)

    # --- SIGNALS ---
    interval = timing.monitor_poll_interval_s
    lid = LidMonitor(scheduler, bus.publish, interval_s=interval)
    power = PowerMonitor(scheduler, bus.publish, interval_s=interval)
    power_button = PowerButtonMonitor(bus.publish)
    # Sleep/wake is handled synchronously so the lid check completes before the system sleeps.
    sleep_wake = SleepWakeMonitor(on_event=lambda ev: controller.handle_event(ev))

    telegram = TelegramNotifier(cfg.telegram, alarm_enabled=cfg.behavior.alarm)
    poller = RemoteCommandPoller(
        telegram,
        scheduler,
        bus.publish,
        activity_log,
        interval_s=timing.command_poll_interval_s,
    )

    # --- DEVICE INFO ---
    collector = SystemDeviceInfoCollector(
        location_provider=IpGeoLocationProvider(),
        activity_log=activity_log,
        timeout_s=timing.device_info_timeout_s,
    )

    # --- CONTROLLER ---
    overlay = LoggingMessageOverlay()
    controller = ProtectionController(
        config=cfg,
        notifier=notifications,
        collector=collector,
        activity_log=activity_log,
        tracking=TrackingLoop(scheduler, interval_s=timing.tracking_interval_s),
        executor=ThreadPoolExecutor(max_workers=1, thread_name_prefix="dispatch"),
        monitors=SignalMonitors(lid=lid, power=power, power_button=power_button, sleep_wake=sleep_wake),
        actions=build_actions(cfg, overlay),
        command_poller=poller,
    )
    sleep_wake.set_deny_sleep(controller.should_deny_sleep)

    # --- RUNTIME ---
    runtime = AppRuntime(
        controller=controller,
        bus=bus,
        notifications=notifications,
        collector=collector,
    )

    return AppWiring(
        config=cfg,
        activity_log=activity_log,
        bus=bus,
        controller=controller,
        runtime=runtime,
        overlay=overlay,
        power_button=power_button,
        sleep_wake=sleep_wake,
    )
