"""Tests for logging configuration."""
import logging

import pytest

from hanbot.config import LoggingSettings
from hanbot.logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_console_only(restore_root_logger):
    setup_logging(config=LoggingSettings(level="WARNING", dir=None))

    assert restore_root_logger.level == logging.WARNING
    assert len(restore_root_logger.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING


def test_file_handler(restore_root_logger, tmp_path):
    setup_logging("Starting", level=logging.DEBUG, config=LoggingSettings(dir=str(tmp_path / "logs")))

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 2
    assert (tmp_path / "logs" / "hanbot.log").exists()
