from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Protocol

from lidguard.core.state.activity_log import ActivityLog, LogCategory
from lidguard.domain.events import ProtectionEvent
from lidguard.domain.models import RemoteCommand
from lidguard.notification.telegram_notifier import InboundMessage
from lidguard.remote.commands import parse_command
from lidguard.runtime.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class InboundSource(Protocol):
    """The polling half of the chat-bot channel."""

    @property
    def chat_id(self) -> Optional[str]:
        ...

    def is_available(self) -> bool:
        ...

    def poll(self, offset: Optional[int] = None) -> List[InboundMessage]:
        ...


class RemoteCommandPoller:
    """
    Polls the chat-bot channel for operator commands.

    Responsibilities
    ----------------
    - Poll on a fixed interval (first poll immediately after :meth:`start`).
    - Track the highest seen update id and always request strictly newer
      updates (``offset = last + 1``).
    - Skip a tick while the previous poll is still in flight.
    - Parse each message from the configured chat and emit one
      REMOTE_COMMAND event per recognized message, in increasing update-id
      order.

    Errors during a poll (network, HTTP, bad JSON) are logged and the next
    tick simply tries again.

    Parameters
    ----------
    source
        Chat-bot channel used for polling.
    scheduler
        Timer source.
    on_event
        Callback receiving REMOTE_COMMAND events (usually ``EventBus.publish``).
    activity_log
        Append-only activity log.
    interval_s
        Poll interval.
    """

    def __init__(
        self,
        source: InboundSource,
        scheduler: Scheduler,
        on_event: Callable[[ProtectionEvent], None],
        activity_log: ActivityLog,
        interval_s: float = 3.0,
    ):
        self._source = source
        self._scheduler = scheduler
        self._on_event = on_event
        self._log = activity_log
        self._interval = interval_s
        self._poll_lock = threading.Lock()
        self._last_update_id: Optional[int] = None
        self._handle: Optional[TimerHandle] = None

    @property
    def last_update_id(self) -> Optional[int]:
        return self._last_update_id

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None:
            return
        if not self._source.is_available():
            logger.debug("Telegram not configured, command polling disabled")
            return
        self._handle = self._scheduler.call_every(
            self._interval, self._tick, initial_delay_s=0.0, name="telegram-commands"
        )
        logger.info("Command polling started")
        self._log.append(LogCategory.TELEGRAM, "Command polling started")

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.info("Command polling stopped")

    def _tick(self) -> None:
        self.poll_once()

    def poll_once(self) -> Optional[List[RemoteCommand]]:
        """
        Run one poll.

        Returns
        -------
        list of RemoteCommand or None
            Commands emitted by this poll, or None if the poll was skipped
            because another poll was in flight.
        """
        if not self._poll_lock.acquire(blocking=False):
            logger.debug("previous poll still in flight, skipping tick")
            return None
        try:
            offset = self._last_update_id + 1 if self._last_update_id is not None else None
            try:
                updates = self._source.poll(offset)
            except Exception as e:
                logger.warning("Command poll failed: %s", type(e).__name__)
                return []
            return self._process(updates)
        finally:
            self._poll_lock.release()

    def _process(self, updates: List[InboundMessage]) -> List[RemoteCommand]:
        emitted: List[RemoteCommand] = []
        chat_id = self._source.chat_id

        for update in sorted(updates, key=lambda u: u.update_id):
            if self._last_update_id is not None and update.update_id <= self._last_update_id:
                continue
            self._last_update_id = update.update_id

            if update.chat_id is None or update.chat_id != chat_id:
                continue

            command = parse_command(update.text)
            if command is None:
                continue

            logger.info("Received command: %s", update.text)
            self._log.append(LogCategory.TELEGRAM, f"Received command: {update.text}")
            emitted.append(command)
            self._on_event(ProtectionEvent.from_command(command))

        return emitted
