"""
Unit tests for lidguard.core.protection.state_machine.ProtectionStateMachine.

These tests validate:
- guarded transitions (each returns False and changes nothing when invalid)
- reason / counter / episode bookkeeping
- observer notification (including a failing observer)
"""

from __future__ import annotations

from typing import List

import pytest

from lidguard.core.protection.state_machine import ProtectionStateMachine
from lidguard.domain.models import ProtectionState, TriggerReason


def test_initial_state() -> None:
    sm = ProtectionStateMachine()
    assert sm.state == ProtectionState.DISABLED
    assert sm.reason is None
    assert sm.update_count == 0
    assert sm.episode == 0


def test_full_cycle() -> None:
    sm = ProtectionStateMachine()

    assert sm.enable() is True
    assert sm.trigger(TriggerReason.POWER_DISCONNECTED) is True
    assert sm.state == ProtectionState.TRIGGERED
    assert sm.reason == TriggerReason.POWER_DISCONNECTED
    assert sm.episode == 1

    assert sm.next_update() == 1
    assert sm.next_update() == 2

    assert sm.disarm() is True
    assert sm.state == ProtectionState.ENABLED
    assert sm.reason is None
    assert sm.update_count == 0

    assert sm.disable() is True
    assert sm.state == ProtectionState.DISABLED


@pytest.mark.parametrize(
    "state, op",
    [
        (ProtectionState.ENABLED, "enable"),
        (ProtectionState.TRIGGERED, "enable"),
        (ProtectionState.DISABLED, "disable"),
        (ProtectionState.TRIGGERED, "disable"),
        (ProtectionState.DISABLED, "disarm"),
        (ProtectionState.ENABLED, "disarm"),
    ],
)
def test_invalid_transitions_are_noops(state: ProtectionState, op: str) -> None:
    sm = ProtectionStateMachine(state=state)
    assert getattr(sm, op)() is False
    assert sm.state == state


def test_trigger_only_from_enabled() -> None:
    sm = ProtectionStateMachine()
    assert sm.trigger(TriggerReason.LID_CLOSED) is False
    assert sm.state == ProtectionState.DISABLED
    assert sm.reason is None


def test_retrigger_does_not_reset_episode() -> None:
    sm = ProtectionStateMachine()
    sm.enable()
    sm.trigger(TriggerReason.LID_CLOSED)
    sm.next_update()
    sm.next_update()

    assert sm.trigger(TriggerReason.POWER_DISCONNECTED) is False

    assert sm.update_count == 2
    assert sm.reason == TriggerReason.LID_CLOSED
    assert sm.episode == 1


def test_episode_increments_per_trigger() -> None:
    sm = ProtectionStateMachine()
    sm.enable()
    sm.trigger(TriggerReason.LID_CLOSED)
    sm.disarm()
    sm.trigger(TriggerReason.LID_CLOSED)
    assert sm.episode == 2
    assert sm.update_count == 0


def test_next_update_outside_trigger_raises() -> None:
    sm = ProtectionStateMachine()
    with pytest.raises(RuntimeError):
        sm.next_update()


def test_observers_called_per_applied_transition() -> None:
    sm = ProtectionStateMachine()
    seen: List[ProtectionState] = []

    def broken(_: ProtectionState) -> None:
        raise ValueError("observer bug")

    sm.subscribe(broken)
    sm.subscribe(seen.append)

    sm.enable()
    sm.enable()
    sm.trigger(TriggerReason.LID_CLOSED)

    assert seen == [ProtectionState.ENABLED, ProtectionState.TRIGGERED]
