"""Logging configuration for the tutor."""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from hanbot.config import LoggingSettings, settings


def setup_logging(
    first_message: str = "",
    level: Optional[Union[int, str]] = None,
    config: Optional[LoggingSettings] = None,
) -> None:
    """Configure logging for the entire application.

    Args:
        first_message: Banner line written once logging is ready.
        level: Optional logging level. If None, the configured level is used.
        config: Logging settings. If None, the global settings are used.
    """
    config = config or settings.logging

    # Set default level if not provided
    if level is None:
        level = config.level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter = logging.Formatter(config.format)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if first_message:
        root_logger.info("================================================")
        root_logger.info(first_message)
    root_logger.info(f"Logging configured with level: {logging.getLevelName(level)}")

    # File handler with rotation if a log directory is specified
    if config.dir:
        try:
            log_dir = Path(config.dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / "hanbot.log"
            file_handler = TimedRotatingFileHandler(
                log_file,
                when=config.rotation,
                interval=config.interval,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            root_logger.info(
                f"Log file: {log_file} (rotation: {config.rotation}, "
                f"interval: {config.interval}, backup_count: {config.backup_count})"
            )
        except OSError as e:
            root_logger.warning(f"Could not set up file logging: {e}")

    # Set logging levels for third-party libraries
    for name in ("httpx", "httpcore", "telegram", "sqlalchemy.engine", "jieba"):
        logging.getLogger(name).setLevel(logging.WARNING)
