"""Tests for structlog setup driven by AppSettings."""

import json
import logging

import pytest
import structlog
from pydantic import ValidationError

from klinedata.config import AppSettings
from klinedata.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def _root_handler() -> logging.Handler:
    return logging.getLogger().handlers[0]


# ---------------------------------------------------------------------------
# setup_logging
# ---------------------------------------------------------------------------


class TestSetupLogging:
    def test_json_format_renders_json(self) -> None:
        setup_logging("DEBUG", "json")

        record = logging.LogRecord("klinedata.test", logging.INFO, "", 0, "", None, None)
        record.msg = {"event": "batch_loaded", "fetched": 10}
        line = _root_handler().format(record)

        assert json.loads(line) == {"event": "batch_loaded", "fetched": 10}

    def test_level_applied_to_root(self) -> None:
        setup_logging("warning", "console")

        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging("chatty", "console")

        assert logging.getLogger().level == logging.INFO

    def test_third_party_loggers_quietened(self) -> None:
        setup_logging("DEBUG", "console")

        assert logging.getLogger("ccxt").level == logging.WARNING
        assert logging.getLogger("aiosqlite").level == logging.WARNING

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ValueError, match="log format"):
            setup_logging("INFO", "xml")

    def test_get_logger_returns_bound_logger(self) -> None:
        setup_logging("INFO", "console")

        assert hasattr(get_logger("klinedata.test"), "info")


# ---------------------------------------------------------------------------
# AppSettings.log_format
# ---------------------------------------------------------------------------


class TestLogFormatSetting:
    def test_default_is_console(self) -> None:
        assert AppSettings().log_format == "console"

    def test_read_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_FORMAT", "json")

        assert AppSettings().log_format == "json"

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AppSettings(log_format="xml")
