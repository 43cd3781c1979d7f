"""
Tests for environment configuration and structured logging
"""

import json
import logging

import pytest
from pydantic import ValidationError

from dealer_finance.config import DealerFinanceConfig, get_config, reload_config
from dealer_finance.currency import Currency
from dealer_finance.logging_config import JSONFormatter, log_action, setup_logging, setup_logging_from_config
from dealer_finance.storage import InMemoryStorage, SQLiteStorage


class TestConfig:
    """Test pydantic-settings configuration"""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "DEFAULT_CURRENCY", "GRACE_PERIOD_DAYS", "LOG_FORMAT"):
            monkeypatch.delenv(f"DEALER_FINANCE_{name}", raising=False)
        settings = DealerFinanceConfig(_env_file=None)

        assert settings.database_url == "memory://"
        assert settings.grace_period_days == 3
        assert settings.currency == Currency.USD
        assert settings.enable_events is True
        assert isinstance(settings.create_storage(), InMemoryStorage)

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEALER_FINANCE_GRACE_PERIOD_DAYS", "5")
        monkeypatch.setenv("DEALER_FINANCE_DEFAULT_CURRENCY", "mxn")
        monkeypatch.setenv("DEALER_FINANCE_DATABASE_URL", f"sqlite:///{tmp_path / 'dealer.db'}")
        settings = DealerFinanceConfig(_env_file=None)

        assert settings.grace_period_days == 5
        assert settings.currency == Currency.MXN
        storage = settings.create_storage()
        assert isinstance(storage, SQLiteStorage)
        storage.close()

    @pytest.mark.parametrize("name,value", [
        ("GRACE_PERIOD_DAYS", "-1"),
        ("DEFAULT_CURRENCY", "BTC"),
        ("LOG_FORMAT", "xml"),
    ])
    def test_invalid_values_rejected(self, monkeypatch, name, value):
        monkeypatch.setenv(f"DEALER_FINANCE_{name}", value)
        with pytest.raises(ValidationError):
            DealerFinanceConfig(_env_file=None)

    def test_reload_config(self, monkeypatch):
        monkeypatch.setenv("DEALER_FINANCE_GRACE_PERIOD_DAYS", "7")
        try:
            assert reload_config().grace_period_days == 7
            assert get_config().grace_period_days == 7
        finally:
            monkeypatch.delenv("DEALER_FINANCE_GRACE_PERIOD_DAYS")
            reload_config()


class TestLogging:
    """Test JSON structured logging"""

    def test_json_formatter(self):
        record = logging.LogRecord("dealer_finance.ledger", logging.INFO, __file__, 1, "Payment recorded", (), None)
        record.action = "record_payment"
        record.resource = "payment:p1"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "dealer_finance.ledger"
        assert entry["message"] == "Payment recorded"
        assert entry["action"] == "record_payment"
        assert "correlation_id" not in entry

    def test_log_action_writes_json_lines(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging(level="INFO", logger_name="dealer_finance.test", log_file=str(log_file))

        log_action(logger, "info", "Sale originated", action="originate_sale",
                   resource="sale:s1", correlation_id="req-1", extra={"installments": 36})
        log_action(logger, "debug", "Filtered out", action="noise")

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["resource"] == "sale:s1"
        assert entry["correlation_id"] == "req-1"
        assert entry["extra"] == {"installments": 36}

        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()

    def test_text_format_from_config(self, tmp_path):
        log_file = tmp_path / "text.log"
        settings = DealerFinanceConfig(_env_file=None, log_format="text", log_file=str(log_file))

        logger = setup_logging_from_config(settings)
        logger.warning("Ledger version conflict")

        assert "WARNING dealer_finance Ledger version conflict" in log_file.read_text()

        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
