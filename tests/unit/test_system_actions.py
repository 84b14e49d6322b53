"""
Unit tests for lidguard.services.system_actions.

Process-spawning actions are exercised with ``subprocess.Popen`` patched out.
"""

from __future__ import annotations

from typing import List

from lidguard.services import system_actions
from lidguard.services.system_actions import (
    CommandAlarmPlayer,
    CommandScreenLocker,
    InhibitSleepPrevention,
    LoggingMessageOverlay,
    NullAction,
    SystemActions,
)


class FakeProcess:
    instances: List["FakeProcess"] = []

    def __init__(self, argv, stdout=None, stderr=None) -> None:
        self.argv = argv
        self.returncode = None
        self.terminated = False
        FakeProcess.instances.append(self)

    def poll(self):
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15

    def wait(self, timeout=None) -> int:
        return self.returncode

    def kill(self) -> None:
        self.returncode = -9


def _patch_popen(monkeypatch) -> None:
    FakeProcess.instances = []
    monkeypatch.setattr(system_actions.subprocess, "Popen", FakeProcess)


def test_sleep_prevention_holds_one_process(monkeypatch) -> None:
    _patch_popen(monkeypatch)
    prevention = InhibitSleepPrevention("inhibit --why='x y' sleep infinity")

    prevention.enable()
    prevention.enable()

    assert len(FakeProcess.instances) == 1
    assert FakeProcess.instances[0].argv == ["inhibit", "--why=x y", "sleep", "infinity"]
    assert prevention.is_enabled

    prevention.disable()
    assert FakeProcess.instances[0].terminated
    assert not prevention.is_enabled


def test_alarm_command_substitutes_sound_and_volume(monkeypatch) -> None:
    _patch_popen(monkeypatch)
    alarm = CommandAlarmPlayer("play-sound --volume {volume} {sound}.wav", sound="Siren", volume=80)

    alarm.play()
    assert FakeProcess.instances[0].argv == ["play-sound", "--volume", "80", "Siren.wav"]
    assert alarm.is_playing

    alarm.stop()
    alarm.stop()
    assert not alarm.is_playing


def test_missing_binary_is_logged_not_raised(monkeypatch) -> None:
    def missing(*a, **k):
        raise FileNotFoundError("no such binary")

    monkeypatch.setattr(system_actions.subprocess, "Popen", missing)

    InhibitSleepPrevention("nope").enable()
    CommandScreenLocker("nope").lock()


def test_screen_locker_spawns_command(monkeypatch) -> None:
    _patch_popen(monkeypatch)
    CommandScreenLocker().lock()
    assert FakeProcess.instances[0].argv == ["loginctl", "lock-session"]


def test_overlay_unlock_runs_callback_while_visible() -> None:
    overlay = LoggingMessageOverlay()
    unlocked: List[int] = []

    overlay.notify_unlocked()
    overlay.show("STOLEN DEVICE", contact="Alex", on_unlock=lambda: unlocked.append(1))
    assert overlay.visible

    overlay.notify_unlocked()
    overlay.hide()
    overlay.notify_unlocked()

    assert unlocked == [1]
    assert not overlay.visible


def test_default_bundle_is_inert() -> None:
    actions = SystemActions()
    for part in (actions.sleep_prevention, actions.screen_locker, actions.overlay, actions.alarm):
        assert isinstance(part, NullAction)
    actions.alarm.play()
    actions.overlay.show("x")
