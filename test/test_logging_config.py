"""Logging setup: component column, per-logger levels, rotating file output."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from rtc_signaling.config import SignalingSettings
from rtc_signaling.logging_config import ComponentTagFilter, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_levels = {
        name: logging.getLogger(name).level
        for name in ("", "rtc_signaling", "urllib3", "websockets")
    }
    yield
    for handler in list(root.handlers):
        if any(isinstance(f, ComponentTagFilter) for f in handler.filters):
            root.removeHandler(handler)
            handler.close()
    for name, level in saved_levels.items():
        logging.getLogger(name).setLevel(level)


def _record(name: str, msg: str) -> logging.LogRecord:
    return logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)


# --- ComponentTagFilter -------------------------------------------------------

def test_filter_moves_leading_tag_into_component():
    record = _record("rtc_signaling.room.client", "[Room] Room connected: initiator=True")

    assert ComponentTagFilter().filter(record)

    assert record.component == "Room"
    assert record.getMessage() == "Room connected: initiator=True"


def test_filter_falls_back_to_logger_name():
    record = _record("websockets.client", "> TEXT '{\"cmd\": \"register\"}'")

    ComponentTagFilter().filter(record)

    assert record.component == "client"
    assert record.getMessage().startswith("> TEXT")


def test_filter_runs_once_per_record():
    record = _record("rtc_signaling.channel.signal_channel", "[Channel] [Room] nested")
    tag_filter = ComponentTagFilter()

    tag_filter.filter(record)
    tag_filter.filter(record)

    assert record.component == "Channel"
    assert record.getMessage() == "[Room] nested"


# --- setup_logging --------------------------------------------------------------

def test_setup_logging_sets_package_and_library_levels(restore_logging):
    settings = SignalingSettings(_env_file=None, LOG_LEVEL="DEBUG", LIBRARY_LOG_LEVEL="ERROR")

    package_logger = setup_logging(settings=settings)

    assert package_logger.name == "rtc_signaling"
    assert package_logger.level == logging.DEBUG
    assert logging.getLogger("websockets").level == logging.ERROR
    assert logging.getLogger("urllib3").level == logging.ERROR
    assert len(logging.getLogger().handlers) == 1


def test_level_argument_overrides_settings(restore_logging):
    settings = SignalingSettings(_env_file=None, LOG_LEVEL="DEBUG")

    package_logger = setup_logging(level="warning", settings=settings)

    assert package_logger.level == logging.WARNING


def test_log_file_gets_component_column(restore_logging, tmp_path):
    log_file = tmp_path / "logs" / "signaling.log"
    settings = SignalingSettings(_env_file=None, LOG_LEVEL="INFO")

    setup_logging(log_file=str(log_file), settings=settings)
    logging.getLogger("rtc_signaling.channel.signal_channel").info("[Channel] registered")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert any(isinstance(h, RotatingFileHandler) for h in logging.getLogger().handlers)
    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert lines[-1].endswith("| INFO     | Channel     | registered")
