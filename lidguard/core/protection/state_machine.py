"""
Protection lifecycle state machine.

This module holds the protection state and applies guarded transitions:

- enable:  DISABLED  -> ENABLED
- disable: ENABLED   -> DISABLED
- trigger: ENABLED   -> TRIGGERED   (records reason, starts a new episode)
- disarm:  TRIGGERED -> ENABLED     (clears reason and counter)

Every transition returns False (and changes nothing) when its guard does
not hold, which makes repeated or out-of-order requests no-ops. The
machine does not perform side effects; the protection controller
orchestrates those around the transitions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from lidguard.domain.models import ProtectionState, TriggerReason

logger = logging.getLogger(__name__)

StateObserver = Callable[[ProtectionState], None]


@dataclass
class ProtectionStateMachine:
    """
    Holder of ProtectionState, TriggerReason and the tracking episode.

    Notes
    -----
    - This class is intentionally not thread-safe.
      Synchronization is handled by the enclosing `ProtectionController`.
    - Observers are called synchronously after each applied transition and
      must not block.

    Attributes
    ----------
    state
        Current protection state.
    reason
        Trigger reason of the current episode (None outside TRIGGERED).
    update_count
        Number of theft-mode updates issued in the current episode.
    episode
        Monotonic episode number, incremented on every entry into TRIGGERED.
    """

    state: ProtectionState = ProtectionState.DISABLED
    reason: Optional[TriggerReason] = None
    update_count: int = 0
    episode: int = 0
    _observers: List[StateObserver] = field(default_factory=list, repr=False)

    def subscribe(self, observer: StateObserver) -> None:
        """
        Register a callback invoked with the new state after each transition.
        """
        self._observers.append(observer)

    def enable(self) -> bool:
        if self.state != ProtectionState.DISABLED:
            return False
        self._set(ProtectionState.ENABLED)
        return True

    def disable(self) -> bool:
        if self.state != ProtectionState.ENABLED:
            return False
        self._set(ProtectionState.DISABLED)
        return True

    def trigger(self, reason: TriggerReason) -> bool:
        """
        Enter TRIGGERED from ENABLED.

        Parameters
        ----------
        reason
            Physical condition that fired.

        Returns
        -------
        bool
            True if a new episode started; False if not armed or already
            triggered (the running episode is left untouched).
        """
        if self.state != ProtectionState.ENABLED:
            return False
        self.reason = reason
        self.update_count = 0
        self.episode += 1
        self._set(ProtectionState.TRIGGERED)
        return True

    def disarm(self) -> bool:
        if self.state != ProtectionState.TRIGGERED:
            return False
        self.reason = None
        self.update_count = 0
        self._set(ProtectionState.ENABLED)
        return True

    def next_update(self) -> int:
        """
        Increment and return the update counter of the current episode.

        Raises
        ------
        RuntimeError
            If called outside TRIGGERED.
        """
        if self.state != ProtectionState.TRIGGERED:
            raise RuntimeError("update counter is only valid while TRIGGERED")
        self.update_count += 1
        return self.update_count

    def _set(self, new_state: ProtectionState) -> None:
        old = self.state
        self.state = new_state
        logger.debug("protection state %s -> %s", old.value, new_state.value)
        for observer in list(self._observers):
            try:
                observer(new_state)
            except Exception:
                logger.exception("state observer failed")
