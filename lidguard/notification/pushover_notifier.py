from __future__ import annotations

import requests

from lidguard.core.config.yaml_config import PushoverConfigData
from lidguard.domain.models import Channel
from lidguard.notification.base import NotificationRequest

PUSHOVER_MESSAGES_URL = "https://api.pushover.net/1/messages.json"


class PushoverNotifier:
    """
    Push channel backed by the Pushover messages API.

    Push is fire-and-forget: no keyboard, no polling. The request priority
    is passed through (1 = high priority, bypasses quiet hours).
    """

    channel = Channel.PUSHOVER

    def __init__(self, cfg: PushoverConfigData, url: str = PUSHOVER_MESSAGES_URL):
        self._cfg = cfg
        self._url = url

    def is_available(self) -> bool:
        return self._cfg.enabled and self._cfg.is_configured

    def send(self, request: NotificationRequest) -> None:
        """
        POST one push message.

        Raises
        ------
        requests.HTTPError
            If the HTTP response status indicates an error.
        requests.RequestException
            For network-related errors.
        """
        body = {
            "token": self._cfg.api_token,
            "user": self._cfg.user_key,
            "message": request.message,
            "priority": request.priority,
            "sound": self._cfg.sound,
        }
        r = requests.post(self._url, json=body, timeout=self._cfg.timeout_s)
        r.raise_for_status()
