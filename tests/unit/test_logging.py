"""
Unit Tests for Logging Configuration

Run with:
    pytest tests/unit/test_logging.py -v
"""

import logging

import pytest

from core.logging import ROOT_LOGGER_NAME, get_logger, log_api_request, logger, set_log_level, setup_logging


@pytest.fixture
def restore_engine_logger():
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestLoggers:
    def test_module_loggers_live_under_root(self):
        assert get_logger("providers.coingecko").name == "marketinfo.providers.coingecko"
        assert logger.name == ROOT_LOGGER_NAME

    def test_set_log_level(self, restore_engine_logger):
        set_log_level("debug")
        assert logger.level == logging.DEBUG
        set_log_level("nonsense")
        assert logger.level == logging.INFO

    def test_api_request_logged_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger=ROOT_LOGGER_NAME):
            log_api_request("coingecko", "/coins/markets", {"vs_currency": "usd"})
        assert "API Request: coingecko /coins/markets" in caplog.text


class TestSetupLogging:
    def test_host_root_logger_untouched(self, restore_engine_logger):
        host_root = logging.getLogger()
        handlers, level = list(host_root.handlers), host_root.level

        setup_logging(log_level="DEBUG")

        assert host_root.handlers == handlers
        assert host_root.level == level
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_repeated_setup_installs_one_handler(self, restore_engine_logger):
        setup_logging()
        setup_logging(log_level="WARNING")

        stream_handlers = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
        assert len(stream_handlers) == 1
        assert logger.level == logging.WARNING
