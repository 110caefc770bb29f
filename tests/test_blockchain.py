"""
Tests for the blockchain gateway client
"""

import json
import pytest
from decimal import Decimal
from datetime import datetime, timezone
from unittest.mock import Mock
import httpx

from deposit_core.blockchain import BlockchainClient
from deposit_core.errors import BlockchainSubmissionError, TransientError
from deposit_core.ledger import LedgerEngine, LedgerEntry, LedgerOperation
from deposit_core.storage import InMemoryStorage


def make_entry(operation=LedgerOperation.ISSUE, change=Decimal('25'), counterparty=None):
    return LedgerEntry(
        id=7,
        customer_id="CUST1",
        change_amount=change,
        balance_after=Decimal('100'),
        operation=operation,
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        reference="R1",
        counterparty_id=counterparty
    )


def client_with(handler, **kwargs):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return BlockchainClient("http://gateway.test/", client=http, **kwargs)


class TestBlockchainSubmit:
    """Test mint, burn and transfer submission"""

    def test_submit_issue_posts_to_mint(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"transaction_hash": "0xmint"})

        client = client_with(handler, api_key="secret", contract_address="0xC0")
        assert client.submit(make_entry()) == "0xmint"

        request = requests[0]
        assert request.url.path == "/mint"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["amount"] == "25"
        assert body["entry_id"] == 7
        assert body["contract_address"] == "0xC0"

    def test_submit_redeem_posts_positive_amount_to_burn(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"transaction_hash": "0xburn"})

        client = client_with(handler)
        client.submit(make_entry(LedgerOperation.REDEEM, Decimal('-25')))
        assert requests[0].url.path == "/burn"
        assert json.loads(requests[0].content)["amount"] == "25"

    def test_submit_transfer_includes_receiver(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"transaction_hash": "0xtx"})

        client = client_with(handler)
        client.submit(make_entry(LedgerOperation.TRANSFER_OUT, Decimal('-25'), counterparty="CUST2"))
        assert requests[0].url.path == "/transfer"
        assert json.loads(requests[0].content)["to_customer_id"] == "CUST2"

    def test_transfer_in_is_not_submitted(self):
        client = client_with(lambda request: httpx.Response(200, json={"transaction_hash": "0x"}))
        with pytest.raises(BlockchainSubmissionError):
            client.submit(make_entry(LedgerOperation.TRANSFER_IN))

    def test_non_200_raises(self):
        client = client_with(lambda request: httpx.Response(502, text="bad gateway"))
        with pytest.raises(BlockchainSubmissionError, match="502"):
            client.submit(make_entry())

    def test_missing_hash_raises(self):
        client = client_with(lambda request: httpx.Response(200, json={}))
        with pytest.raises(BlockchainSubmissionError, match="no transaction hash"):
            client.submit(make_entry())

    def test_non_json_body_raises(self):
        client = client_with(lambda request: httpx.Response(200, text="ok"))
        with pytest.raises(BlockchainSubmissionError):
            client.submit(make_entry())

    def test_list_body_raises(self):
        client = client_with(lambda request: httpx.Response(200, json=["0xabc"]))
        with pytest.raises(BlockchainSubmissionError, match="no transaction hash"):
            client.submit(make_entry())

    def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = client_with(handler)
        with pytest.raises(BlockchainSubmissionError, match="unavailable"):
            client.submit(make_entry())

    def test_submission_error_is_transient(self):
        error = BlockchainSubmissionError("down")
        assert isinstance(error, TransientError)


class TestBlockchainSupply:

    def test_total_supply(self):
        client = client_with(lambda request: httpx.Response(200, json={"total_supply": "1250"}))
        assert client.total_supply() == Decimal('1250')

    def test_total_supply_http_error(self):
        client = client_with(lambda request: httpx.Response(500))
        with pytest.raises(TransientError):
            client.total_supply()

    def test_total_supply_malformed(self):
        client = client_with(lambda request: httpx.Response(200, json={"supply": 1}))
        with pytest.raises(TransientError, match="Malformed"):
            client.total_supply()

    def test_total_supply_list_body(self):
        client = client_with(lambda request: httpx.Response(200, json=["1250"]))
        with pytest.raises(TransientError, match="Malformed"):
            client.total_supply()

    def test_health_check(self):
        assert client_with(lambda request: httpx.Response(200)).health_check() is True
        assert client_with(lambda request: httpx.Response(503)).health_check() is False

    def test_health_check_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert client_with(handler).health_check() is False


class TestLedgerIntegration:
    """The gateway client plugs into the ledger as its chain submitter"""

    def test_ledger_attaches_gateway_hash(self):
        client = client_with(lambda request: httpx.Response(200, json={"transaction_hash": "0xfeed"}))
        ledger = LedgerEngine(InMemoryStorage(), chain_submitter=client)
        entry = ledger.issue("CUST1", "10")
        assert entry.transaction_hash == "0xfeed"

    def test_gateway_outage_does_not_block_ledger(self):
        client = client_with(lambda request: httpx.Response(503))
        ledger = LedgerEngine(InMemoryStorage(), chain_submitter=client)
        entry = ledger.issue("CUST1", "10")
        assert entry.transaction_hash is None
        assert ledger.balance("CUST1") == Decimal('10')

    def test_list_body_leaves_issue_committed(self):
        client = client_with(lambda request: httpx.Response(200, json=["0xabc"]))
        ledger = LedgerEngine(InMemoryStorage(), chain_submitter=client)
        entry = ledger.issue("CUST1", "10")
        assert entry.transaction_hash is None
        assert ledger.balance("CUST1") == Decimal('10')
        assert [e.id for e in ledger.unsubmitted_entries()] == [entry.id]

    def test_close_closes_http_client(self):
        http = Mock()
        BlockchainClient("http://gateway.test", client=http).close()
        http.close.assert_called_once()
