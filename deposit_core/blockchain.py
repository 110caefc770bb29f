"""
Blockchain Gateway Client Module

REST client for the token gateway that mints, burns and transfers tokens on
chain and reports the contract's total supply. Submission is best-effort:
the ledger stays the source of truth and failures surface as
BlockchainSubmissionError for later retry.
"""

import httpx
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Optional

from .errors import BlockchainSubmissionError, TransientError
from .ledger import LedgerEntry, LedgerOperation

logger = logging.getLogger("deposit_core.blockchain")


_OPERATION_PATHS = {
    LedgerOperation.ISSUE: "/mint",
    LedgerOperation.REDEEM: "/burn",
    LedgerOperation.TRANSFER_OUT: "/transfer",
}


class BlockchainClient:
    """REST client for the token gateway"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        api_key: Optional[str] = None,
        contract_address: Optional[str] = None,
        treasury_address: Optional[str] = None,
        client: Optional[httpx.Client] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.contract_address = contract_address
        self.treasury_address = treasury_address
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def submit(self, entry: LedgerEntry) -> str:
        """Submit a committed ledger entry on chain

        Args:
            entry: ISSUE, REDEEM or TRANSFER_OUT entry

        Returns:
            Transaction hash reported by the gateway

        Raises:
            BlockchainSubmissionError: If the gateway fails or rejects the call
        """
        path = _OPERATION_PATHS.get(entry.operation)
        if path is None:
            raise BlockchainSubmissionError(
                f"{entry.operation.value} entries are submitted through their outgoing leg"
            )

        payload = {
            "entry_id": entry.id,
            "customer_id": entry.customer_id,
            "amount": str(abs(entry.change_amount)),
            "reference": entry.reference,
            "contract_address": self.contract_address,
        }
        if entry.operation == LedgerOperation.TRANSFER_OUT:
            payload["to_customer_id"] = entry.counterparty_id

        start = time.time()
        try:
            response = self._client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.error(f"Blockchain gateway connection failed: {e}")
            raise BlockchainSubmissionError(f"Blockchain gateway unavailable: {e}")

        latency_ms = (time.time() - start) * 1000
        if response.status_code != 200:
            logger.warning(f"Blockchain gateway returned {response.status_code}: {response.text}")
            raise BlockchainSubmissionError(
                f"Blockchain gateway returned {response.status_code}",
                {"entry_id": entry.id}
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        tx_hash = body.get("transaction_hash") if isinstance(body, dict) else None
        if not tx_hash:
            raise BlockchainSubmissionError("Blockchain gateway returned no transaction hash",
                                            {"entry_id": entry.id})
        logger.info(f"Submitted ledger entry {entry.id} on chain as {tx_hash} ({latency_ms:.1f} ms)")
        return tx_hash

    def total_supply(self) -> Decimal:
        """Current token supply reported by the contract

        Raises:
            TransientError: If the gateway cannot be read
        """
        try:
            response = self._client.get(f"{self.base_url}/supply", headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Blockchain gateway connection failed: {e}")
            raise TransientError(f"On-chain supply unavailable: {e}")

        if response.status_code != 200:
            logger.warning(f"Blockchain gateway returned {response.status_code}: {response.text}")
            raise TransientError(f"On-chain supply unavailable: HTTP {response.status_code}")

        try:
            return Decimal(str(response.json()["total_supply"]))
        except (KeyError, TypeError, InvalidOperation, ValueError) as e:
            raise TransientError(f"Malformed supply response: {e}")

    def health_check(self) -> bool:
        """Check if the gateway is healthy"""
        try:
            r = self._client.get(f"{self.base_url}/health")
            return r.status_code == 200
        except httpx.HTTPError:
            return False

    def close(self):
        """Close the HTTP client"""
        self._client.close()
