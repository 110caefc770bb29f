"""
Token Ledger Module

Append-only customer token ledger. Every ISSUE, REDEEM and TRANSFER appends
entries carrying the customer's running balance, so a customer's entries
ordered by id always form a non-negative balance chain.

Mutations are serialized per customer. Transfers lock both customers in
sorted order and persist both legs in one atomic storage batch. Blockchain
submission happens after commit, outside every lock, and never rolls the
ledger back.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Set, Tuple, Protocol
from enum import Enum
from contextlib import contextmanager
import threading

from .currency import is_whole, decimal_from_string
from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .clock import SystemClock, get_clock
from .errors import (
    InsufficientBalance, SameAccount, InvalidAmount, InvalidRequest,
    InvariantViolation, NotFound, BlockchainSubmissionError
)
from .logging_config import get_logger, log_action


logger = get_logger("deposit_core.ledger")

ZERO = Decimal('0')


class LedgerOperation(Enum):
    """Kinds of ledger entries"""
    ISSUE = "ISSUE"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    REDEEM = "REDEEM"


@dataclass(frozen=True)
class LedgerEntry:
    """
    One immutable balance change for a customer. The only after-the-fact
    write is attaching a transaction hash to an entry that has none.
    """
    id: int
    customer_id: str
    change_amount: Decimal
    balance_after: Decimal
    operation: LedgerOperation
    created_at: datetime
    transaction_hash: Optional[str] = None
    reference: Optional[str] = None
    counterparty_id: Optional[str] = None
    related_entry_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'change_amount': str(self.change_amount),
            'balance_after': str(self.balance_after),
            'operation': self.operation.value,
            'created_at': self.created_at.isoformat(),
            'transaction_hash': self.transaction_hash,
            'reference': self.reference,
            'counterparty_id': self.counterparty_id,
            'related_entry_id': self.related_entry_id
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'LedgerEntry':
        return cls(
            id=int(data['id']),
            customer_id=data['customer_id'],
            change_amount=Decimal(data['change_amount']),
            balance_after=Decimal(data['balance_after']),
            operation=LedgerOperation(data['operation']),
            created_at=datetime.fromisoformat(data['created_at']),
            transaction_hash=data.get('transaction_hash'),
            reference=data.get('reference'),
            counterparty_id=data.get('counterparty_id'),
            related_entry_id=data.get('related_entry_id')
        )


@dataclass(frozen=True)
class LedgerPage:
    """A page of entries ordered by id descending"""
    entries: List[LedgerEntry]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total + self.size - 1) // self.size


class ChainSubmitter(Protocol):
    """Submits committed ledger entries on chain and returns a transaction hash"""

    def submit(self, entry: LedgerEntry) -> str:
        ...


@dataclass
class _Head:
    last_id: int
    balance: Decimal


class LedgerEngine:
    """
    The authoritative token balance store.

    Args:
        storage: Durable entry storage
        audit_trail: Audit trail for appended entries
        clock: Source of entry timestamps
        chain_submitter: Optional blockchain client for best-effort submission
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        clock: Optional[SystemClock] = None,
        chain_submitter: Optional[ChainSubmitter] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.clock = clock or get_clock()
        self.chain_submitter = chain_submitter
        self.entries_table = "ledger_entries"

        self._state_lock = threading.Lock()
        self._customer_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        self._heads: Dict[str, _Head] = {}
        self._references: Dict[Tuple[str, str], int] = {}
        self._last_id = 0
        # Entry ids with a chain submission in progress
        self._in_flight: Set[int] = set()
        self._rebuild_index()

    # ------------------------------------------------------------------
    # Index and locking
    # ------------------------------------------------------------------

    def _rebuild_index(self) -> None:
        entries = sorted(
            (LedgerEntry.from_dict(data) for data in self.storage.load_all(self.entries_table)),
            key=lambda e: e.id
        )
        with self._state_lock:
            self._heads = {}
            self._references = {}
            for entry in entries:
                self._index(entry)
            self._last_id = entries[-1].id if entries else 0

    def _index(self, entry: LedgerEntry) -> None:
        self._heads[entry.customer_id] = _Head(entry.id, entry.balance_after)
        if entry.reference:
            self._references.setdefault((entry.customer_id, entry.reference), entry.id)

    def _lock_for(self, customer_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._customer_locks.get(customer_id)
            if lock is None:
                lock = threading.Lock()
                self._customer_locks[customer_id] = lock
            return lock

    @contextmanager
    def _customers_locked(self, *customer_ids: str):
        """Acquire customer locks in sorted order"""
        locks = [self._lock_for(cid) for cid in sorted(set(customer_ids))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    def _current_balance(self, customer_id: str) -> Decimal:
        with self._state_lock:
            head = self._heads.get(customer_id)
            return head.balance if head else ZERO

    def _existing_entry(self, customer_id: str, reference: Optional[str]) -> Optional[LedgerEntry]:
        if not reference:
            return None
        with self._state_lock:
            entry_id = self._references.get((customer_id, reference))
        if entry_id is None:
            return None
        return self.get_entry(entry_id)

    # ------------------------------------------------------------------
    # Commit path
    # ------------------------------------------------------------------

    def _check_invariant(self, entry: LedgerEntry, prior_balance: Decimal) -> None:
        if entry.balance_after != prior_balance + entry.change_amount or entry.balance_after < ZERO:
            log_action(logger, "critical", "Ledger invariant violation, append aborted",
                       customer_id=entry.customer_id, action=entry.operation.value,
                       resource="ledger", reference=entry.reference,
                       extra={
                           "prior_balance": str(prior_balance),
                           "change_amount": str(entry.change_amount),
                           "balance_after": str(entry.balance_after)
                       })
            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.LEDGER_INVARIANT_VIOLATION,
                    entity_type="ledger_entry",
                    entity_id=entry.customer_id,
                    metadata={
                        "operation": entry.operation,
                        "prior_balance": prior_balance,
                        "change_amount": entry.change_amount,
                        "balance_after": entry.balance_after
                    }
                )
            raise InvariantViolation(
                f"Ledger entry for {entry.customer_id} would break the balance chain",
                {"customer_id": entry.customer_id, "prior_balance": prior_balance,
                 "balance_after": entry.balance_after}
            )

    def _commit(self, drafts: List[LedgerEntry]) -> List[LedgerEntry]:
        """
        Assign ids, verify the chain and persist drafts as one batch.
        Nothing is written and the index is unchanged on failure.
        """
        with self._state_lock:
            next_id = self._last_id
            running: Dict[str, Decimal] = {}
            committed = []
            for draft in drafts:
                next_id += 1
                entry = replace(draft, id=next_id)
                prior = running.get(entry.customer_id)
                if prior is None:
                    head = self._heads.get(entry.customer_id)
                    prior = head.balance if head else ZERO
                self._check_invariant(entry, prior)
                running[entry.customer_id] = entry.balance_after
                committed.append(entry)

            # Transfer legs point at each other
            if len(committed) == 2:
                out_entry, in_entry = committed
                committed = [
                    replace(out_entry, related_entry_id=in_entry.id),
                    replace(in_entry, related_entry_id=out_entry.id)
                ]

            self.storage.save_batch(
                self.entries_table,
                [(str(entry.id), entry.to_dict()) for entry in committed]
            )
            for entry in committed:
                self._index(entry)
            self._last_id = next_id
            if self.chain_submitter is not None:
                self._in_flight.update(entry.id for entry in committed)

        try:
            for entry in committed:
                log_action(logger, "info", f"Ledger {entry.operation.value} appended",
                           customer_id=entry.customer_id, action=entry.operation.value,
                           resource=f"ledger_entry:{entry.id}", reference=entry.reference,
                           extra={"change_amount": str(entry.change_amount),
                                  "balance_after": str(entry.balance_after)})
                if self.audit_trail:
                    self.audit_trail.log_event(
                        event_type=AuditEventType.LEDGER_ENTRY_APPENDED,
                        entity_type="ledger_entry",
                        entity_id=str(entry.id),
                        metadata={
                            "customer_id": entry.customer_id,
                            "operation": entry.operation,
                            "change_amount": entry.change_amount,
                            "balance_after": entry.balance_after,
                            "reference": entry.reference
                        }
                    )
        except Exception:
            with self._state_lock:
                self._in_flight.difference_update(entry.id for entry in committed)
            raise
        return committed

    def _draft(self, customer_id: str, change: Decimal, balance_after: Decimal,
               operation: LedgerOperation, reference: Optional[str],
               counterparty_id: Optional[str] = None) -> LedgerEntry:
        return LedgerEntry(
            id=0,
            customer_id=customer_id,
            change_amount=change,
            balance_after=balance_after,
            operation=operation,
            created_at=self.clock.now(),
            reference=reference,
            counterparty_id=counterparty_id
        )

    def _validate_amount(self, amount) -> Decimal:
        try:
            value = decimal_from_string(amount)
        except ValueError as e:
            raise InvalidAmount(str(e))
        if value <= ZERO:
            raise InvalidAmount("Amount must be positive", {"amount": value})
        if not is_whole(value):
            raise InvalidAmount("Tokens must be whole numbers", {"amount": value})
        return value.quantize(Decimal('1'))

    @staticmethod
    def _validate_customer(customer_id: str) -> str:
        if not customer_id or not str(customer_id).strip():
            raise InvalidRequest("Customer id is required")
        return str(customer_id).strip()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def issue(self, customer_id: str, amount, reference: Optional[str] = None) -> LedgerEntry:
        """
        Credit whole tokens to a customer

        Raises:
            InvalidAmount: If amount is not a positive whole number
        """
        customer_id = self._validate_customer(customer_id)
        amount = self._validate_amount(amount)

        with self._customers_locked(customer_id):
            existing = self._existing_entry(customer_id, reference)
            if existing:
                log_action(logger, "info", "Replayed ISSUE returned existing entry",
                           customer_id=customer_id, action="ISSUE", reference=reference)
                return existing

            prior = self._current_balance(customer_id)
            draft = self._draft(customer_id, amount, prior + amount,
                                LedgerOperation.ISSUE, reference)
            entry, = self._commit([draft])

        return self._submit([entry])[0]

    def redeem(self, customer_id: str, amount, reference: Optional[str] = None) -> LedgerEntry:
        """
        Debit whole tokens from a customer

        Raises:
            InvalidAmount: If amount is not a positive whole number
            InsufficientBalance: If amount exceeds the customer's balance
        """
        customer_id = self._validate_customer(customer_id)
        amount = self._validate_amount(amount)

        with self._customers_locked(customer_id):
            existing = self._existing_entry(customer_id, reference)
            if existing:
                log_action(logger, "info", "Replayed REDEEM returned existing entry",
                           customer_id=customer_id, action="REDEEM", reference=reference)
                return existing

            prior = self._current_balance(customer_id)
            if amount > prior:
                raise InsufficientBalance(
                    "Insufficient wallet balance",
                    {"customer_id": customer_id, "balance": prior, "requested": amount}
                )
            draft = self._draft(customer_id, -amount, prior - amount,
                                LedgerOperation.REDEEM, reference)
            entry, = self._commit([draft])

        return self._submit([entry])[0]

    def transfer(self, from_customer_id: str, to_customer_id: str, amount,
                 reference: Optional[str] = None) -> Tuple[LedgerEntry, LedgerEntry]:
        """
        Move whole tokens between two customers

        Returns:
            (TRANSFER_OUT entry, TRANSFER_IN entry)

        Raises:
            SameAccount: If both customers are the same
            InvalidAmount: If amount is not a positive whole number
            InsufficientBalance: If the sender's balance is below amount
        """
        from_customer_id = self._validate_customer(from_customer_id)
        to_customer_id = self._validate_customer(to_customer_id)
        if from_customer_id == to_customer_id:
            raise SameAccount("Transfers require distinct customers",
                              {"customer_id": from_customer_id})
        amount = self._validate_amount(amount)

        with self._customers_locked(from_customer_id, to_customer_id):
            existing = self._existing_entry(from_customer_id, reference)
            if existing:
                if existing.operation != LedgerOperation.TRANSFER_OUT or existing.related_entry_id is None:
                    raise InvalidRequest(
                        f"Reference {reference} already used by a {existing.operation.value} entry",
                        {"customer_id": from_customer_id, "reference": reference}
                    )
                log_action(logger, "info", "Replayed TRANSFER returned existing entries",
                           customer_id=from_customer_id, action="TRANSFER", reference=reference)
                return existing, self.get_entry(existing.related_entry_id)

            sender_balance = self._current_balance(from_customer_id)
            if sender_balance < amount:
                raise InsufficientBalance(
                    "Insufficient balance for transfer",
                    {"customer_id": from_customer_id, "balance": sender_balance, "requested": amount}
                )
            receiver_balance = self._current_balance(to_customer_id)

            out_draft = self._draft(from_customer_id, -amount, sender_balance - amount,
                                    LedgerOperation.TRANSFER_OUT, reference,
                                    counterparty_id=to_customer_id)
            in_draft = self._draft(to_customer_id, amount, receiver_balance + amount,
                                   LedgerOperation.TRANSFER_IN, reference,
                                   counterparty_id=from_customer_id)
            out_entry, in_entry = self._commit([out_draft, in_draft])

        out_entry, in_entry = self._submit([out_entry, in_entry])
        return out_entry, in_entry

    # ------------------------------------------------------------------
    # Blockchain submission
    # ------------------------------------------------------------------

    def _claim(self, entries: List[LedgerEntry]) -> bool:
        """
        Mark entries as being submitted. Fails when any of them is already
        in flight or the outgoing entry already carries a hash.
        """
        ids = {entry.id for entry in entries}
        with self._state_lock:
            if ids & self._in_flight:
                return False
            data = self.storage.load(self.entries_table, str(entries[0].id))
            if data is None or data.get('transaction_hash'):
                return False
            self._in_flight.update(ids)
            return True

    def _submit(self, entries: List[LedgerEntry], claimed: bool = True) -> List[LedgerEntry]:
        """
        Best-effort on-chain submission. A transfer is submitted once via
        its outgoing leg and the hash is attached to both legs. Freshly
        committed entries are claimed by `_commit`; retries claim here.
        """
        if self.chain_submitter is None:
            return entries
        if not claimed and not self._claim(entries):
            return entries

        primary = entries[0]
        try:
            tx_hash = self.chain_submitter.submit(primary)
            return [self.attach_transaction_hash(entry.id, tx_hash) for entry in entries]
        except BlockchainSubmissionError as e:
            log_action(logger, "warning", f"Blockchain submission failed: {e.message}",
                       customer_id=primary.customer_id, action="submit",
                       resource=f"ledger_entry:{primary.id}", reference=primary.reference)
            return entries
        except Exception as e:
            # The entry is committed; leave it for retry_unsubmitted
            log_action(logger, "warning", f"Unexpected blockchain submission error: {e!r}",
                       customer_id=primary.customer_id, action="submit",
                       resource=f"ledger_entry:{primary.id}", reference=primary.reference)
            return entries
        finally:
            with self._state_lock:
                self._in_flight.difference_update(entry.id for entry in entries)

    def attach_transaction_hash(self, entry_id: int, transaction_hash: str) -> LedgerEntry:
        """
        Record the on-chain hash for an entry. An entry that already carries
        a hash is returned unchanged.
        """
        with self._state_lock:
            data = self.storage.load(self.entries_table, str(entry_id))
            if data is None:
                raise NotFound(f"Ledger entry {entry_id} not found", {"entry_id": entry_id})
            entry = LedgerEntry.from_dict(data)
            if entry.transaction_hash:
                return entry
            entry = replace(entry, transaction_hash=transaction_hash)
            self.storage.save(self.entries_table, str(entry.id), entry.to_dict())

        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.LEDGER_HASH_ATTACHED,
                entity_type="ledger_entry",
                entity_id=str(entry.id),
                metadata={"transaction_hash": transaction_hash}
            )
        return entry

    def unsubmitted_entries(self) -> List[LedgerEntry]:
        entries = [LedgerEntry.from_dict(data) for data in self.storage.load_all(self.entries_table)]
        return sorted((e for e in entries if not e.transaction_hash), key=lambda e: e.id)

    def retry_unsubmitted(self) -> int:
        """
        Resubmit entries that have no transaction hash

        Returns:
            Number of entries that received a hash
        """
        if self.chain_submitter is None:
            return 0
        pending = self.unsubmitted_entries()
        handled = set()
        attached = 0
        for entry in pending:
            if entry.id in handled:
                continue
            group = [entry]
            if entry.operation == LedgerOperation.TRANSFER_OUT and entry.related_entry_id:
                group.append(self.get_entry(entry.related_entry_id))
            elif entry.operation == LedgerOperation.TRANSFER_IN:
                # Submitted through its outgoing leg
                continue
            handled.update(e.id for e in group)
            result = self._submit(group, claimed=False)
            attached += sum(1 for e in result if e.transaction_hash)
        return attached

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: int) -> LedgerEntry:
        data = self.storage.load(self.entries_table, str(entry_id))
        if data is None:
            raise NotFound(f"Ledger entry {entry_id} not found", {"entry_id": entry_id})
        return LedgerEntry.from_dict(data)

    def balance(self, customer_id: str) -> Decimal:
        """Balance after the customer's latest entry, or 0"""
        return self._current_balance(customer_id)

    def _page(self, entries: List[LedgerEntry], page: int, size: int) -> LedgerPage:
        if page < 0 or size <= 0:
            raise InvalidRequest("page must be >= 0 and size must be positive")
        ordered = sorted(entries, key=lambda e: e.id, reverse=True)
        start = page * size
        return LedgerPage(entries=ordered[start:start + size], page=page, size=size, total=len(ordered))

    def history(self, customer_id: str, page: int = 0, size: int = 20) -> LedgerPage:
        """A customer's entries, newest first. Pages are zero-based."""
        with self._state_lock:
            data = self.storage.find(self.entries_table, {'customer_id': customer_id})
        return self._page([LedgerEntry.from_dict(d) for d in data], page, size)

    def all_history(self, page: int = 0, size: int = 20) -> LedgerPage:
        with self._state_lock:
            data = self.storage.load_all(self.entries_table)
        return self._page([LedgerEntry.from_dict(d) for d in data], page, size)

    def customer_balances(self) -> Dict[str, Decimal]:
        with self._state_lock:
            return {cid: head.balance for cid, head in self._heads.items()}

    def ledger_total(self) -> Decimal:
        """Sum of every customer's current balance"""
        return sum(self.customer_balances().values(), ZERO)

    def verify_chain(self, customer_id: str) -> bool:
        """Check that the customer's stored entries form a valid balance chain"""
        with self._state_lock:
            data = self.storage.find(self.entries_table, {'customer_id': customer_id})
        entries = sorted((LedgerEntry.from_dict(d) for d in data), key=lambda e: e.id)
        balance = ZERO
        for entry in entries:
            if entry.balance_after != balance + entry.change_amount or entry.balance_after < ZERO:
                return False
            balance = entry.balance_after
        return True
