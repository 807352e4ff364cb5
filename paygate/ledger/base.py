"""
Abstract transaction ledger.

The ledger is the single writer of transactions and acknowledgement
records. Gateways read through it and hand it new values; they never keep
their own copies.

Concurrency contract:
  - ``lock(transaction_id)`` serialises work on one transaction and never
    blocks work on another.
  - ``commit_acknowledgement`` is an atomic check-and-insert: if a record
    with the same id already exists, nothing is written and the stored
    record is returned.
  - Writes that carry an ``expected`` status are compare-and-set: if the
    stored transaction has moved on since it was read, nothing is written
    and ``StaleTransaction`` is raised. The lock above is per process; this
    check holds across processes sharing one store.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Optional

from paygate.audit.logger import AuditEntry, log_event
from paygate.ledger.locks import KeyedLock
from paygate.models.enums import TransactionStatus
from paygate.models.transaction import AcknowledgementRecord, Transaction


class LedgerError(Exception):
    """The ledger was asked to do something that breaks its invariants."""


class StaleTransaction(LedgerError):
    """The stored transaction is no longer in the status the caller read."""

    def __init__(self, transaction_id: str, expected: TransactionStatus):
        self.transaction_id = transaction_id
        self.expected = expected
        super().__init__(f"Transaction {transaction_id} is no longer {expected.value}")


class TransactionLedger(ABC):
    """Storage-agnostic ledger interface."""

    def __init__(self) -> None:
        self._locks = KeyedLock()

    def lock(self, transaction_id: str) -> AbstractAsyncContextManager[None]:
        """Exclusive section for one transaction id."""
        return self._locks.hold(transaction_id)

    @abstractmethod
    async def insert(self, transaction: Transaction) -> Transaction:
        """
        Store a new transaction.

        Raises:
            LedgerError: If the id, or the gateway's idempotency key, is taken.
        """
        ...

    @abstractmethod
    async def get(self, transaction_id: str) -> Optional[Transaction]:
        ...

    @abstractmethod
    async def find_by_reference(self, gateway: str, reference: str) -> Optional[Transaction]:
        """
        Find a gateway's transaction by provider reference.

        Matches the external reference first, then our own transaction id,
        so a transaction still in CREATED (no provider reference yet) can be
        found by a notification that quotes our id.
        """
        ...

    @abstractmethod
    async def find_by_idempotency_key(self, gateway: str, key: str) -> Optional[Transaction]:
        ...

    @abstractmethod
    async def update(
        self,
        transaction: Transaction,
        expected: Optional[TransactionStatus] = None,
    ) -> Transaction:
        """
        Replace a stored transaction.

        With ``expected``, only replace it while its stored status still
        equals ``expected``.

        Raises:
            LedgerError: If the transaction was never inserted.
            StaleTransaction: If the stored status is no longer ``expected``.
        """
        ...

    @abstractmethod
    async def get_acknowledgement(self, ack_id: str) -> Optional[AcknowledgementRecord]:
        ...

    @abstractmethod
    async def commit_acknowledgement(
        self,
        record: AcknowledgementRecord,
        transaction: Optional[Transaction] = None,
        expected: Optional[TransactionStatus] = None,
    ) -> AcknowledgementRecord:
        """
        Atomically store ``record`` and, if given, the updated ``transaction``.

        Returns the stored record: ``record`` itself, or the one that was
        already there, in which case ``transaction`` is not written either.
        ``expected`` is the status ``record`` was decided against.

        Raises:
            StaleTransaction: The record's transaction is no longer in
                ``expected``; nothing was written.
        """
        ...

    @abstractmethod
    async def _store_audit(self, entry: AuditEntry) -> None:
        ...

    @abstractmethod
    async def audit_trail(self, transaction_id: str) -> list[AuditEntry]:
        """Audit entries for a transaction, oldest first."""
        ...

    async def audit(
        self,
        action: str,
        transaction_id: Optional[str] = None,
        gateway: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        entry = log_event(action, transaction_id=transaction_id, gateway=gateway, details=details)
        await self._store_audit(entry)
        return entry
