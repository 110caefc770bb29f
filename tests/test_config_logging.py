"""
Tests for configuration, structured logging and the error taxonomy
"""

import json
import logging
from decimal import Decimal

from deposit_core.config import DepositCoreConfig, reload_config, get_config
from deposit_core.errors import (
    ErrorSeverity, InsufficientBalance, InvariantViolation, TransientError,
    BlockchainSubmissionError, DepositCoreError
)
from deposit_core.logging_config import JSONFormatter, setup_logging, log_action


class TestConfig:

    def test_defaults(self):
        config = DepositCoreConfig()
        assert config.api_port == 8091
        assert config.overdue_warning_days == 30
        assert config.blockchain_gateway_url == ""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DEPOSIT_CORE_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("DEPOSIT_CORE_ADMIN_AUTH_ENABLED", "false")
        try:
            config = reload_config()
            assert config.storage_backend == "memory"
            assert config.admin_auth_enabled is False
            assert get_config() is config
        finally:
            monkeypatch.undo()
            reload_config()


class TestStructuredLogging:

    def test_json_formatter_includes_structured_fields(self):
        logger = logging.getLogger("deposit_core.test_formatter")
        record = logger.makeRecord(logger.name, logging.INFO, __name__, 0, "Issued", (), None)
        record.customer_id = "C1"
        record.action = "ISSUE"
        record.extra = {"amount": Decimal('10')}

        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "Issued"
        assert data["customer_id"] == "C1"
        assert data["action"] == "ISSUE"
        assert data["extra"] == {"amount": "10"}
        assert "resource" not in data

    def test_log_action_attaches_fields(self, caplog):
        logger = logging.getLogger("deposit_core.test_log_action")
        with caplog.at_level(logging.INFO, logger="deposit_core.test_log_action"):
            log_action(logger, "info", "Redeemed", customer_id="C1",
                       action="REDEEM", reference="R1")
        record = caplog.records[0]
        assert record.customer_id == "C1"
        assert record.reference == "R1"

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", "text", logger_name="deposit_core.test_setup")
        setup_logging("DEBUG", "json", logger_name="deposit_core.test_setup")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.DEBUG


class TestErrorTaxonomy:

    def test_to_dict(self):
        error = InsufficientBalance("Insufficient wallet balance", {"balance": Decimal('30')})
        assert error.to_dict() == {
            "error": "INSUFFICIENT_BALANCE",
            "detail": "Insufficient wallet balance",
            "severity": "user_error",
            "details": {"balance": "30"}
        }

    def test_severities(self):
        assert InvariantViolation("x").severity == ErrorSeverity.FATAL
        assert TransientError("x").severity == ErrorSeverity.TRANSIENT
        assert BlockchainSubmissionError("x").severity == ErrorSeverity.TRANSIENT

    def test_all_errors_share_base(self):
        assert isinstance(BlockchainSubmissionError("x"), DepositCoreError)
