"""Tests for settings, logging and the exception hierarchy."""

import io
import json
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from tradelens.core.config import Settings, get_settings
from tradelens.core.exceptions import (
    AppException,
    DataUnavailableError,
    InsufficientHistoryError,
    ValidationError,
)
from tradelens.core.logging import (
    LoggerAdapter,
    StructuredFormatter,
    TextFormatter,
    bind_run_id,
    get_logger,
    run_id_var,
    setup_logging,
)


def make_record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="tradelens.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def run_id():
    token = run_id_var.set("abc123def456")
    yield "abc123def456"
    run_id_var.reset(token)


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)

        assert s.history_days == 400
        assert s.max_concurrent_fetches >= 1
        assert s.history_cache_ttl >= 0

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_log_format(self):
        assert Settings(_env_file=None, log_format="TEXT").log_format == "text"
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, log_format="xml")

    def test_comma_separated_tickers(self):
        s = Settings(_env_file=None, default_stock_tickers="aapl, msft,,nvda")
        assert s.default_stock_tickers == ["AAPL", "MSFT", "NVDA"]

    def test_default_tickers_by_asset_class(self):
        s = Settings(
            _env_file=None,
            default_stock_tickers=["AAPL"],
            default_crypto_tickers=["BTC-USD"],
            default_forex_tickers=["EURUSD=X"],
        )

        assert s.default_tickers("crypto") == ["BTC-USD"]
        assert s.default_tickers() == ["AAPL", "BTC-USD", "EURUSD=X"]
        assert s.default_tickers("bonds") == []

    def test_unknown_keys_ignored(self):
        s = Settings(_env_file=None, environment="development", app_version="9.9")

        assert not hasattr(s, "environment")
        assert not hasattr(s, "app_version")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestLogging:
    def test_structured_formatter(self, run_id):
        record = make_record()
        record.extra_fields = {"ticker": "AAPL"}

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "tradelens.test"
        assert data["run_id"] == run_id
        assert data["ticker"] == "AAPL"

    def test_structured_formatter_without_run_id(self):
        data = json.loads(StructuredFormatter().format(make_record()))
        assert "run_id" not in data

    def test_text_formatter(self, run_id):
        line = TextFormatter().format(make_record("rebalanced"))

        assert "[abc123de]" in line
        assert "tradelens.test: rebalanced" in line

    def test_get_logger_prefix(self):
        assert get_logger("quant_engine").name == "tradelens.quant_engine"

    def test_adapter_moves_extra_into_fields(self, run_id):
        adapter = LoggerAdapter(get_logger("test"), {"component": "backtest"})

        msg, kwargs = adapter.process("started", {"extra": {"tickers": ["AAPL"]}})

        assert msg == "started"
        assert kwargs["extra"]["extra_fields"] == {
            "tickers": ["AAPL"],
            "run_id": run_id,
            "component": "backtest",
        }

    def test_setup_logging_quiets_third_party(self, restore_root_logger):
        setup_logging()

        assert logging.getLogger("yfinance").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_setup_logging_replaces_only_its_own_handler(self, restore_root_logger):
        foreign = logging.NullHandler()
        restore_root_logger.addHandler(foreign)

        first = setup_logging()
        second = setup_logging()

        assert foreign in restore_root_logger.handlers
        assert second in restore_root_logger.handlers
        assert first not in restore_root_logger.handlers

    def test_setup_logging_overrides(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(level="debug", log_format="json", stream=stream)

        with bind_run_id("feedbeef0001"):
            get_logger("test").debug("scored")

        data = json.loads(stream.getvalue().splitlines()[-1])
        assert restore_root_logger.level == logging.DEBUG
        assert data["message"] == "scored"
        assert data["run_id"] == "feedbeef0001"

    def test_bind_run_id_scopes_and_restores(self):
        assert run_id_var.get() is None
        with bind_run_id() as outer:
            assert len(outer) == 12
            assert run_id_var.get() == outer
            with bind_run_id("inner") as inner:
                assert run_id_var.get() == inner == "inner"
            assert run_id_var.get() == outer
        assert run_id_var.get() is None

    def test_text_formatter_appends_context_fields(self, run_id):
        record = make_record("allocated")
        record.extra_fields = {"component": "backtest", "run_id": run_id}

        line = TextFormatter().format(record)

        assert line.endswith("allocated | component=backtest")


class TestExceptions:
    def test_to_dict_with_details(self):
        exc = AppException("bad", error_code="X", details={"a": 1})
        assert exc.to_dict() == {"error": "X", "message": "bad", "details": {"a": 1}}

    def test_defaults(self):
        assert ValidationError().error_code == "VALIDATION_ERROR"
        assert InsufficientHistoryError().message == "Insufficient data"

    def test_data_unavailable_carries_ticker(self):
        exc = DataUnavailableError("gone", ticker="AAPL")

        assert exc.ticker == "AAPL"
        assert exc.to_dict()["details"] == {"ticker": "AAPL"}
        assert str(exc) == "gone"
