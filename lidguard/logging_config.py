"""
Centralized logging setup with daily rotation.

A console handler plus a ``TimedRotatingFileHandler`` writing
``{prefix}.log`` and rotating at midnight into ``{prefix}_YYYY_MM_DD.log``.
Without a log directory only the console handler is installed.
"""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    log_file_prefix: str = "lidguard",
    backup_count: int = 14,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        log_level: Level name ("INFO") or number.
        log_dir: Directory for rotated log files (None: console only).
        log_file_prefix: Prefix for log files (e.g. "lidguard" -> "lidguard.log").
        backup_count: Number of rotated files to keep (days).

    Returns:
        Logger instance for this module.
    """
    if isinstance(log_level, str):
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {log_level!r}")
        log_level = level

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root_logger.addHandler(console)

    if log_dir is not None:
        log_dir_path = Path(log_dir).expanduser()
        log_dir_path.mkdir(parents=True, exist_ok=True)

        handler = TimedRotatingFileHandler(
            filename=str(log_dir_path / f"{log_file_prefix}.log"),
            when="midnight",
            interval=1,
            backupCount=backup_count,
            encoding="utf-8",
        )
        handler.suffix = "%Y_%m_%d"

        def namer(default_name: str) -> str:
            # lidguard.log.2025_12_28 -> lidguard_2025_12_28.log
            p = Path(default_name)
            date_part = p.name.split(".")[-1]
            return str(p.with_name(f"{log_file_prefix}_{date_part}.log"))

        handler.namer = namer
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    return logging.getLogger(__name__)
