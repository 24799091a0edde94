"""Tests for structlog setup and network context binding."""

import json
import logging

import pytest
import structlog

from gas_tracker.config import AppSettings
from gas_tracker.logging import bind_network_context, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestSetupLogging:

    def test_json_lines_carry_bound_network(self, capsys) -> None:
        setup_logging("INFO", "json")
        bind_network_context("arbitrum")
        get_logger("gas_tracker.test").info("fee_sample_recorded", total_fee=5)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "fee_sample_recorded"
        assert record["network"] == "arbitrum"
        assert record["total_fee"] == 5

    def test_level_applied_and_socket_libraries_quieted(self) -> None:
        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("websockets").level == logging.WARNING
        assert logging.getLogger("web3.providers").level == logging.WARNING

    def test_log_format_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_FORMAT", "json")
        assert AppSettings().log_format == "json"
