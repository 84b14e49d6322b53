"""
Inbound remote command parsing.

Commands arrive as free text from the Telegram chat: either a canonical
slash command (``/status``) or the label of a reply-keyboard button
(``📊 Status``). Matching is exact after trimming and lower-casing.
"""

from __future__ import annotations

from typing import Dict, Optional

from lidguard.domain.models import ButtonLabel, RemoteCommand

SLASH_COMMANDS: Dict[str, RemoteCommand] = {
    "/stop": RemoteCommand.DISARM,
    "/safe": RemoteCommand.DISARM,
    "/status": RemoteCommand.STATUS,
    "/enable": RemoteCommand.ENABLE,
    "/disable": RemoteCommand.DISABLE,
    "/alarm": RemoteCommand.ARM_ALARM,
    "/stopalarm": RemoteCommand.SILENCE_ALARM,
}

BUTTON_COMMANDS: Dict[str, RemoteCommand] = {
    ButtonLabel.SAFE.value.lower(): RemoteCommand.DISARM,
    ButtonLabel.STATUS.value.lower(): RemoteCommand.STATUS,
    ButtonLabel.ENABLE.value.lower(): RemoteCommand.ENABLE,
    ButtonLabel.DISABLE.value.lower(): RemoteCommand.DISABLE,
    ButtonLabel.ALARM.value.lower(): RemoteCommand.ARM_ALARM,
    ButtonLabel.STOP_ALARM.value.lower(): RemoteCommand.SILENCE_ALARM,
}


def parse_command(text: Optional[str]) -> Optional[RemoteCommand]:
    """
    Parse message text into a RemoteCommand.

    Parameters
    ----------
    text
        Raw message text (may be None for non-text updates).

    Returns
    -------
    RemoteCommand or None
        The matched command, or None when the text is not recognized.
    """
    if not text:
        return None
    key = text.strip().lower()
    return SLASH_COMMANDS.get(key) or BUTTON_COMMANDS.get(key)
