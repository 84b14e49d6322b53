from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class TelegramConfigData:
    """Telegram bot channel (outbound alerts + inbound commands)."""
    enabled: bool = True
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    timeout_s: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token) and bool(self.chat_id)


@dataclass(frozen=True)
class PushoverConfigData:
    """Pushover push channel."""
    enabled: bool = True
    user_key: Optional[str] = None
    api_token: Optional[str] = None
    sound: str = "siren"
    timeout_s: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.user_key) and bool(self.api_token)


@dataclass(frozen=True)
class TriggerConfig:
    """Which physical signals may move ENABLED -> TRIGGERED."""
    lid_close: bool = True
    power_disconnect: bool = True
    power_button: bool = False


@dataclass(frozen=True)
class BehaviorConfig:
    """Defensive behaviors applied while armed or triggered."""
    sleep_prevention: bool = True
    shutdown_blocking: bool = False
    lock_screen: bool = True
    alarm: bool = False
    auto_alarm: bool = False


@dataclass(frozen=True)
class AlarmSoundConfig:
    """Alarm playback settings (consumed by the alarm player command)."""
    sound: str = "Siren"
    volume: int = 100
    command: Optional[str] = None


@dataclass(frozen=True)
class ActionsConfig:
    """Shell commands backing the OS side effects."""
    lock_command: Optional[str] = None
    sleep_inhibit_command: Optional[str] = None


@dataclass(frozen=True)
class ContactConfig:
    """Owner contact shown on the lock-screen overlay."""
    name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def display(self) -> str:
        return " - ".join(p for p in (self.name, self.phone) if p)


@dataclass(frozen=True)
class TimingConfig:
    """Intervals and retry policy, in seconds."""
    tracking_interval_s: float = 20.0
    command_poll_interval_s: float = 3.0
    monitor_poll_interval_s: float = 0.5
    retry_count: int = 3
    retry_delay_s: float = 2.0
    device_info_timeout_s: float = 5.0


@dataclass(frozen=True)
class ActivityLogConfig:
    """Activity log persistence."""
    path: Optional[str] = None
    max_entries: int = 500


@dataclass(frozen=True)
class LoggingConfig:
    """Process logging."""
    level: str = "INFO"
    dir: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    """
    Root application configuration loaded from YAML.

    This is the single read-only configuration source consumed by the
    controller, channels and runtime. Every section has defaults so a
    minimal (or empty) file yields a working, notification-less setup.
    """
    telegram: TelegramConfigData = field(default_factory=TelegramConfigData)
    pushover: PushoverConfigData = field(default_factory=PushoverConfigData)
    triggers: TriggerConfig = field(default_factory=TriggerConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)
    alarm: AlarmSoundConfig = field(default_factory=AlarmSoundConfig)
    actions: ActionsConfig = field(default_factory=ActionsConfig)
    contact: ContactConfig = field(default_factory=ContactConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    activity_log: ActivityLogConfig = field(default_factory=ActivityLogConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must contain a YAML mapping at the root")
    return data


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return value


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _resolve_default_config_path() -> Path:
    """
    Resolve config.yaml location.

    Priority:
    1) LIDGUARD_CONFIG env var if provided
    2) config.yaml next to the executable
    3) ./config.yaml in current working directory
    """
    import os
    import sys

    env = os.getenv("LIDGUARD_CONFIG")
    if env:
        return Path(env).expanduser().resolve()

    exe_dir = Path(sys.executable).resolve().parent
    candidate = exe_dir / "config.yaml"
    if candidate.exists():
        return candidate

    return Path("config.yaml").resolve()


def parse_app_config(raw: Dict[str, Any]) -> AppConfig:
    """
    Convert a raw YAML mapping into typed config objects.

    Parameters
    ----------
    raw
        Mapping as loaded from YAML.

    Returns
    -------
    AppConfig
        Parsed configuration with defaults for missing keys.
    """
    # ---- channels ----
    t = _section(raw, "telegram")
    telegram = TelegramConfigData(
        enabled=bool(t.get("enabled", True)),
        bot_token=_opt_str(t.get("bot_token")),
        chat_id=_opt_str(t.get("chat_id")),
        timeout_s=float(t.get("timeout_s", 10.0)),
    )

    p = _section(raw, "pushover")
    pushover = PushoverConfigData(
        enabled=bool(p.get("enabled", True)),
        user_key=_opt_str(p.get("user_key")),
        api_token=_opt_str(p.get("api_token")),
        sound=str(p.get("sound", "siren")),
        timeout_s=float(p.get("timeout_s", 10.0)),
    )

    # ---- triggers / behavior ----
    tr = _section(raw, "triggers")
    triggers = TriggerConfig(
        lid_close=bool(tr.get("lid_close", True)),
        power_disconnect=bool(tr.get("power_disconnect", True)),
        power_button=bool(tr.get("power_button", False)),
    )

    b = _section(raw, "behavior")
    behavior = BehaviorConfig(
        sleep_prevention=bool(b.get("sleep_prevention", True)),
        shutdown_blocking=bool(b.get("shutdown_blocking", False)),
        lock_screen=bool(b.get("lock_screen", True)),
        alarm=bool(b.get("alarm", False)),
        auto_alarm=bool(b.get("auto_alarm", False)),
    )

    # ---- side effects ----
    a = _section(raw, "alarm")
    volume = int(a.get("volume", 100))
    if not 0 <= volume <= 100:
        raise ValueError("alarm.volume must be between 0 and 100")
    alarm = AlarmSoundConfig(
        sound=str(a.get("sound", "Siren")),
        volume=volume,
        command=_opt_str(a.get("command")),
    )

    ac = _section(raw, "actions")
    actions = ActionsConfig(
        lock_command=_opt_str(ac.get("lock_command")),
        sleep_inhibit_command=_opt_str(ac.get("sleep_inhibit_command")),
    )

    c = _section(raw, "contact")
    contact = ContactConfig(name=_opt_str(c.get("name")), phone=_opt_str(c.get("phone")))

    # ---- timing ----
    tm = _section(raw, "timing")
    timing = TimingConfig(
        tracking_interval_s=float(tm.get("tracking_interval_s", 20.0)),
        command_poll_interval_s=float(tm.get("command_poll_interval_s", 3.0)),
        monitor_poll_interval_s=float(tm.get("monitor_poll_interval_s", 0.5)),
        retry_count=int(tm.get("retry_count", 3)),
        retry_delay_s=float(tm.get("retry_delay_s", 2.0)),
        device_info_timeout_s=float(tm.get("device_info_timeout_s", 5.0)),
    )
    if timing.retry_count < 0:
        raise ValueError("timing.retry_count must be >= 0")
    if min(timing.tracking_interval_s, timing.command_poll_interval_s, timing.monitor_poll_interval_s) <= 0:
        raise ValueError("timing intervals must be > 0")
    if timing.retry_delay_s < 0 or timing.device_info_timeout_s < 0:
        raise ValueError("timing.retry_delay_s and timing.device_info_timeout_s must be >= 0")

    # ---- logs ----
    al = _section(raw, "activity_log")
    activity_log = ActivityLogConfig(
        path=_opt_str(al.get("path")),
        max_entries=int(al.get("max_entries", 500)),
    )
    if activity_log.max_entries <= 0:
        raise ValueError("activity_log.max_entries must be > 0")

    lg = _section(raw, "logging")
    logging_cfg = LoggingConfig(
        level=str(lg.get("level", "INFO")).upper(),
        dir=_opt_str(lg.get("dir")),
    )

    return AppConfig(
        telegram=telegram,
        pushover=pushover,
        triggers=triggers,
        behavior=behavior,
        alarm=alarm,
        actions=actions,
        contact=contact,
        timing=timing,
        activity_log=activity_log,
        logging=logging_cfg,
    )


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from YAML and convert into typed config objects.

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution.

    Returns
    -------
    AppConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If the file is not a mapping or a value is out of range.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    return parse_app_config(_read_yaml(cfg_path))
