from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from lidguard.core.state.activity_log import ActivityLog, LogCategory
from lidguard.domain.models import Channel
from lidguard.notification.base import DeliveryResult, DeliveryStatus, NotificationRequest, Notifier

logger = logging.getLogger(__name__)

_CATEGORIES = {
    Channel.TELEGRAM: LogCategory.TELEGRAM,
    Channel.PUSHOVER: LogCategory.PUSHOVER,
}


def _describe(e: Exception) -> str:
    # Exception text may embed the request URL (and so the bot token).
    response = getattr(e, "response", None)
    status = getattr(response, "status_code", None)
    if status is not None:
        return f"HTTP error: {status}"
    return type(e).__name__


class DeliveryPipeline:
    """
    Bounded retry-with-delay around one notification channel.

    A request is attempted at most ``retry_count + 1`` times with a fixed
    ``retry_delay_s`` between attempts. Any exception raised by the channel
    (transport error, non-2xx response) counts as a failed attempt.
    After the last failure the request is dropped: :meth:`send` never raises.

    Every failure, success and the final give-up is appended to the activity
    log under the channel's category.

    Parameters
    ----------
    notifier
        Channel to deliver through.
    activity_log
        Append-only activity log.
    retry_count
        Number of retries after the first attempt.
    retry_delay_s
        Delay between attempts.
    sleep
        Sleep function (injectable for tests).
    """

    def __init__(
        self,
        notifier: Notifier,
        activity_log: ActivityLog,
        retry_count: int = 3,
        retry_delay_s: float = 2.0,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        if retry_count < 0 or retry_delay_s < 0:
            raise ValueError("retry_count and retry_delay_s must be >= 0")
        self._notifier = notifier
        self._log = activity_log
        self._retry_count = retry_count
        self._retry_delay_s = retry_delay_s
        self._sleep = sleep or time.sleep
        self._category = _CATEGORIES.get(notifier.channel, LogCategory.SYSTEM)

    @property
    def channel(self) -> Channel:
        return self._notifier.channel

    def send(self, request: NotificationRequest) -> DeliveryResult:
        """
        Deliver a request with retries and report the outcome.

        Parameters
        ----------
        request
            Request to deliver.

        Returns
        -------
        DeliveryResult
            SKIPPED if the channel is unavailable, DELIVERED on success,
            FAILED after all attempts failed.
        """
        result = self._deliver(request)

        if request.on_complete is not None:
            try:
                request.on_complete(result)
            except Exception:
                logger.exception("on_complete callback failed")

        return result

    def _deliver(self, request: NotificationRequest) -> DeliveryResult:
        if not self._notifier.is_available():
            logger.debug("%s not configured or disabled, skipping", self.channel.value)
            return DeliveryResult(DeliveryStatus.SKIPPED, attempts=0)

        max_attempts = self._retry_count + 1
        for attempt in range(1, max_attempts + 1):
            try:
                self._notifier.send(request)
            except Exception as e:
                reason = _describe(e)
                logger.warning("%s send failed (attempt %d/%d): %s", self.channel.value, attempt, max_attempts, reason)
                self._log.append(self._category, f"Send failed (attempt {attempt}/{max_attempts}): {reason}")

                if attempt >= max_attempts:
                    break

                left = max_attempts - attempt
                logger.info("Retrying... (%d attempts left)", left)
                self._sleep(self._retry_delay_s)
                continue

            self._log.append(self._category, "Sent" if attempt == 1 else f"Sent after {attempt} attempts")
            return DeliveryResult(DeliveryStatus.DELIVERED, attempts=attempt)

        logger.error("%s delivery gave up after %d attempts", self.channel.value, max_attempts)
        self._log.append(self._category, f"Giving up after {max_attempts} attempts")
        return DeliveryResult(DeliveryStatus.FAILED, attempts=max_attempts)
