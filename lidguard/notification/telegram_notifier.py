from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from lidguard.core.config.yaml_config import TelegramConfigData
from lidguard.domain.models import ButtonLabel, Channel, KeyboardVariant
from lidguard.notification.base import NotificationRequest

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


@dataclass(frozen=True)
class InboundMessage:
    """
    One update returned by ``getUpdates``.

    ``chat_id`` and ``text`` are None for updates that are not text
    messages; they are still returned so the poller can advance its offset.
    """

    update_id: int
    chat_id: Optional[str] = None
    text: Optional[str] = None


def build_reply_markup(keyboard: KeyboardVariant, alarm_enabled: bool) -> Optional[Dict[str, Any]]:
    """
    Build the Telegram ``reply_markup`` for a keyboard variant.

    Parameters
    ----------
    keyboard
        Keyboard variant.
    alarm_enabled
        Whether the "Alarm" button is offered on the theft-mode keyboard.

    Returns
    -------
    dict or None
        Reply keyboard markup, or None for ``KeyboardVariant.NONE``.
    """
    if keyboard == KeyboardVariant.NONE:
        return None

    if keyboard == KeyboardVariant.TRIGGERED:
        labels = [ButtonLabel.SAFE]
        if alarm_enabled:
            labels.append(ButtonLabel.ALARM)
    elif keyboard == KeyboardVariant.TRIGGERED_ALARM_ON:
        labels = [ButtonLabel.SAFE, ButtonLabel.STOP_ALARM]
    elif keyboard == KeyboardVariant.ARMED:
        labels = [ButtonLabel.STATUS, ButtonLabel.DISABLE]
    else:
        labels = [ButtonLabel.STATUS, ButtonLabel.ENABLE]

    return {
        "keyboard": [[{"text": label.value} for label in labels]],
        "resize_keyboard": True,
    }


class TelegramNotifier:
    """
    Chat-bot channel backed by the Telegram Bot API.

    Sends HTML messages with an optional reply keyboard and polls
    ``getUpdates`` for inbound operator commands.

    Notes
    -----
    - This class performs side effects (network I/O).
    - HTTP errors are surfaced via ``raise_for_status()``; retrying is the
      delivery pipeline's job.
    """

    channel = Channel.TELEGRAM

    def __init__(self, cfg: TelegramConfigData, alarm_enabled: bool = False, api_url: str = TELEGRAM_API_URL):
        """
        Parameters
        ----------
        cfg
            Telegram configuration (token, chat id, enabled flag).
        alarm_enabled
            Whether the theft-mode keyboard offers the "Alarm" button.
        api_url
            Bot API base URL.
        """
        self._cfg = cfg
        self._alarm_enabled = alarm_enabled
        self._api_url = api_url.rstrip("/")

    @property
    def chat_id(self) -> Optional[str]:
        return self._cfg.chat_id

    def is_available(self) -> bool:
        return self._cfg.enabled and self._cfg.is_configured

    def _method_url(self, method: str) -> str:
        return f"{self._api_url}/bot{self._cfg.bot_token}/{method}"

    def send(self, request: NotificationRequest) -> None:
        """
        Send one message.

        Raises
        ------
        requests.HTTPError
            If the HTTP response status indicates an error.
        requests.RequestException
            For network-related errors.
        """
        body: Dict[str, Any] = {
            "chat_id": self._cfg.chat_id,
            "text": request.message,
            "parse_mode": "HTML",
        }
        markup = build_reply_markup(request.keyboard, self._alarm_enabled)
        if markup is not None:
            body["reply_markup"] = markup

        r = requests.post(self._method_url("sendMessage"), json=body, timeout=self._cfg.timeout_s)
        r.raise_for_status()

    def poll(self, offset: Optional[int] = None) -> List[InboundMessage]:
        """
        Fetch updates strictly newer than the previous batch.

        Parameters
        ----------
        offset
            ``last_seen_update_id + 1``, or None for the first poll.

        Returns
        -------
        list of InboundMessage
            Updates in the order returned by the API. Malformed updates
            without an integer ``update_id`` are dropped.

        Raises
        ------
        requests.RequestException
            On transport or HTTP errors.
        ValueError
            If the body is not JSON.
        """
        params: Dict[str, Any] = {"timeout": 1}
        if offset is not None:
            params["offset"] = offset

        r = requests.get(self._method_url("getUpdates"), params=params, timeout=self._cfg.timeout_s)
        r.raise_for_status()
        data = r.json()

        if not isinstance(data, dict) or not data.get("ok"):
            return []

        out: List[InboundMessage] = []
        for update in data.get("result") or []:
            if not isinstance(update, dict):
                continue
            update_id = update.get("update_id")
            if not isinstance(update_id, int):
                continue

            message = update.get("message")
            if not isinstance(message, dict):
                out.append(InboundMessage(update_id=update_id))
                continue

            chat = message.get("chat") or {}
            chat_id = chat.get("id") if isinstance(chat, dict) else None
            text = message.get("text")
            out.append(
                InboundMessage(
                    update_id=update_id,
                    chat_id=str(chat_id) if chat_id is not None else None,
                    text=text if isinstance(text, str) else None,
                )
            )
        return out
