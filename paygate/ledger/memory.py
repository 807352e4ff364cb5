"""
In-process ledger.

Keeps transactions and acknowledgement records in dictionaries. Suitable
for tests and single-process deployments; state is lost on restart.
"""

import logging
from typing import Optional

from paygate.audit.logger import AuditEntry
from paygate.ledger.base import LedgerError, StaleTransaction, TransactionLedger
from paygate.models.enums import TransactionStatus
from paygate.models.transaction import AcknowledgementRecord, Transaction

logger = logging.getLogger("paygate.ledger")


class InMemoryLedger(TransactionLedger):
    """Dictionary-backed ledger."""

    def __init__(self) -> None:
        super().__init__()
        self._transactions: dict[str, Transaction] = {}
        self._by_reference: dict[tuple[str, str], str] = {}
        self._by_idempotency_key: dict[tuple[str, str], str] = {}
        self._acknowledgements: dict[str, AcknowledgementRecord] = {}
        self._audit: list[AuditEntry] = []

    def _index(self, transaction: Transaction) -> None:
        if transaction.external_reference:
            self._by_reference[(transaction.gateway, transaction.external_reference)] = transaction.id

    async def insert(self, transaction: Transaction) -> Transaction:
        if transaction.id in self._transactions:
            raise LedgerError(f"Duplicate transaction id: {transaction.id}")
        key = transaction.idempotency_key
        if key and (transaction.gateway, key) in self._by_idempotency_key:
            raise LedgerError(f"Idempotency key already used on {transaction.gateway}: {key}")

        self._transactions[transaction.id] = transaction
        if key:
            self._by_idempotency_key[(transaction.gateway, key)] = transaction.id
        self._index(transaction)
        return transaction

    async def get(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def find_by_reference(self, gateway: str, reference: str) -> Optional[Transaction]:
        transaction_id = self._by_reference.get((gateway, reference))
        if transaction_id is None:
            candidate = self._transactions.get(reference)
            return candidate if candidate and candidate.gateway == gateway else None
        return self._transactions[transaction_id]

    async def find_by_idempotency_key(self, gateway: str, key: str) -> Optional[Transaction]:
        transaction_id = self._by_idempotency_key.get((gateway, key))
        return self._transactions.get(transaction_id) if transaction_id else None

    def _check(self, transaction_id: str, expected: Optional[TransactionStatus]) -> None:
        stored = self._transactions.get(transaction_id)
        if stored is None:
            raise LedgerError(f"Unknown transaction: {transaction_id}")
        if expected is not None and stored.status != expected:
            raise StaleTransaction(transaction_id, expected)

    async def update(
        self,
        transaction: Transaction,
        expected: Optional[TransactionStatus] = None,
    ) -> Transaction:
        self._check(transaction.id, expected)
        self._transactions[transaction.id] = transaction
        self._index(transaction)
        return transaction

    async def get_acknowledgement(self, ack_id: str) -> Optional[AcknowledgementRecord]:
        return self._acknowledgements.get(ack_id)

    async def commit_acknowledgement(
        self,
        record: AcknowledgementRecord,
        transaction: Optional[Transaction] = None,
        expected: Optional[TransactionStatus] = None,
    ) -> AcknowledgementRecord:
        # No await between the checks and the inserts: atomic on the event loop.
        existing = self._acknowledgements.get(record.id)
        if existing is not None:
            logger.info("Acknowledgement %s already recorded", record.id[:12])
            return existing
        if transaction is not None or expected is not None:
            self._check(record.transaction_id, expected)
        self._acknowledgements[record.id] = record
        if transaction is not None:
            self._transactions[transaction.id] = transaction
            self._index(transaction)
        return record

    async def _store_audit(self, entry: AuditEntry) -> None:
        self._audit.append(entry)

    async def audit_trail(self, transaction_id: str) -> list[AuditEntry]:
        return [e for e in self._audit if e.transaction_id == transaction_id]
