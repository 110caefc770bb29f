"""
Tests for ledger vs on-chain reconciliation
"""

import logging
import pytest
from decimal import Decimal
from unittest.mock import Mock

from deposit_core.audit import AuditTrail, AuditEventType
from deposit_core.errors import TransientError
from deposit_core.ledger import LedgerEngine
from deposit_core.reconciliation import ReconciliationReporter
from deposit_core.storage import InMemoryStorage


class TestReconciliationReporter:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.ledger = LedgerEngine(self.storage, self.audit_trail)
        self.ledger.issue("A", "100")
        self.ledger.issue("B", "50")
        self.ledger.transfer("A", "B", "30")
        self.ledger.redeem("B", "20")

    def test_balanced_supply(self):
        supply = Mock()
        supply.total_supply.return_value = Decimal('130')
        reporter = ReconciliationReporter(self.ledger, supply, self.audit_trail,
                                          contract_address="0xC0", treasury_address="0xT1")

        summary = reporter.summary()
        assert summary.ledger_total == Decimal('130')
        assert summary.on_chain_supply == Decimal('130')
        assert summary.variance == Decimal('0')
        assert summary.is_balanced
        assert summary.customer_count == 2
        assert summary.contract_address == "0xC0"
        assert self.audit_trail.get_events_by_type(AuditEventType.RECONCILIATION_VARIANCE) == []

    def test_variance_is_logged_and_audited(self, caplog):
        supply = Mock()
        supply.total_supply.return_value = Decimal('125')
        reporter = ReconciliationReporter(self.ledger, supply, self.audit_trail)

        with caplog.at_level(logging.WARNING, logger="deposit_core.reconciliation"):
            summary = reporter.summary()

        assert summary.variance == Decimal('-5')
        assert not summary.is_balanced
        assert "disagree" in caplog.text
        events = self.audit_trail.get_events_by_type(AuditEventType.RECONCILIATION_VARIANCE)
        assert events[0].metadata["variance"] == "-5"

    def test_without_supply_source(self):
        summary = ReconciliationReporter(self.ledger).summary()
        assert summary.on_chain_supply == Decimal('0')
        assert summary.variance == Decimal('-130')

    def test_supply_failure_propagates(self):
        supply = Mock()
        supply.total_supply.side_effect = TransientError("gateway down")
        with pytest.raises(TransientError):
            ReconciliationReporter(self.ledger, supply).summary()

    def test_empty_ledger(self):
        summary = ReconciliationReporter(LedgerEngine(InMemoryStorage())).summary()
        assert summary.ledger_total == Decimal('0')
        assert summary.customer_count == 0
        assert summary.is_balanced
