from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol

from lidguard.domain.models import Channel, KeyboardVariant


class DeliveryStatus(str, Enum):
    """
    Final outcome of a delivery.

    Members
    -------
    DELIVERED : str
        The channel accepted the message.
    SKIPPED : str
        The channel is disabled or not configured; nothing was sent.
        Treated as success ("not applicable").
    FAILED : str
        Every attempt failed; the message was dropped.
    """

    DELIVERED = "DELIVERED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DeliveryResult:
    """
    Outcome of :meth:`DeliveryPipeline.send`.

    Parameters
    ----------
    status
        Final status.
    attempts
        Number of network attempts made (0 when skipped).
    """

    status: DeliveryStatus
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status != DeliveryStatus.FAILED


@dataclass(frozen=True)
class NotificationRequest:
    """
    Notification request contract used by the notification layer.

    A request represents *what should be communicated* and to which channel,
    not *how* it is delivered. It is consumed and discarded after delivery or
    after retries are exhausted.

    Parameters
    ----------
    message
        Message body (Telegram HTML or plain text for push).
    channel
        Target channel.
    keyboard
        Telegram reply keyboard (ignored by the push channel).
    priority
        Push priority (ignored by Telegram).
    on_complete
        Optional callback invoked with the :class:`DeliveryResult`.
    """

    message: str
    channel: Channel = Channel.TELEGRAM
    keyboard: KeyboardVariant = KeyboardVariant.NONE
    priority: int = 1
    on_complete: Optional[Callable[[DeliveryResult], None]] = field(default=None, compare=False, repr=False)


class Notifier(Protocol):
    """
    Protocol interface for a notification channel.

    Any implementation can be used if it provides ``channel``,
    ``is_available()`` and ``send(request)``. This enables dependency
    inversion and makes delivery easy to test with fakes.

    Methods
    -------
    is_available()
        True when the channel is enabled and configured.
    send(request)
        Perform one delivery attempt. Raises on transport failure or a
        non-success response.
    """

    channel: Channel

    def is_available(self) -> bool:
        ...

    def send(self, request: NotificationRequest) -> None:
        ...


class NotificationSink(Protocol):
    """Anything that accepts fire-and-forget notification requests."""

    def emit(self, request: NotificationRequest) -> None:
        ...
