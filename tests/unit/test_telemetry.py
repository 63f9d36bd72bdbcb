"""
Unit tests for structured logging setup.
"""

import logging

import pytest
import structlog

import tutor_memory.memory.extract  # noqa: F401  (modules create loggers on import)
from tutor_memory.config.settings import LoggingCfg, load_settings
from tutor_memory.telemetry import configure_logging, get_logger


@pytest.fixture
def restore_logging():
    """Put the default configuration back after a test reconfigures logging."""
    root = logging.getLogger()
    saved_level = root.level
    yield
    configure_logging()
    root.setLevel(saved_level)


def test_level_applies_after_import(restore_logging):
    """Reconfiguring after module import changes the root level."""
    configure_logging(LoggingCfg(log_level="DEBUG"))
    assert logging.getLogger().level == logging.DEBUG

    configure_logging(LoggingCfg(log_level="WARNING"))
    assert logging.getLogger().level == logging.WARNING


def test_env_log_level_takes_effect(monkeypatch, restore_logging):
    """TUTOR_MEMORY_LOG_LEVEL reaches the root logger."""
    monkeypatch.setenv("TUTOR_MEMORY_LOG_LEVEL", "debug")

    configure_logging(load_settings().logging)

    assert logging.getLogger().level == logging.DEBUG


def test_renderer_follows_json_flag(restore_logging):
    """json_logs picks the final renderer, also on reconfiguration."""
    configure_logging(LoggingCfg(json_logs=False))
    assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)

    configure_logging(LoggingCfg(json_logs=True))
    assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)


def test_module_logger_honours_new_level(caplog, restore_logging):
    """A logger created before reconfiguration filters at the new level."""
    logger = get_logger("tutor_memory.test")

    configure_logging(LoggingCfg(log_level="WARNING"))
    with caplog.at_level(logging.WARNING):
        logger.info("memory_info_event")
        logger.warning("memory_warning_event")

    messages = " ".join(r.getMessage() for r in caplog.records)
    assert "memory_warning_event" in messages
    assert "memory_info_event" not in messages
