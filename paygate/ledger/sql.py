"""
SQL-backed ledger (SQLAlchemy async ORM).

Each operation runs in its own short session. The acknowledgement table's
primary key is the notification's dedup id, so the database itself refuses
a second insert of the same notification even across processes.

Status changes are compare-and-set: a write first claims the transaction
row with an UPDATE that only matches the status the caller decided
against. A second process holding the same transaction waits on that
claim and then finds the status moved, so two different notifications
cannot both apply from the same starting state.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paygate.audit.logger import AuditEntry
from paygate.ledger.base import LedgerError, StaleTransaction, TransactionLedger
from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.options import PurchaseOptions
from paygate.models.response import GatewayResponse
from paygate.models.tables import AcknowledgementRow, AuditLog, TransactionRow
from paygate.models.transaction import AcknowledgementRecord, Transaction

logger = logging.getLogger("paygate.ledger")


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; everything we store is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _response_json(response: GatewayResponse) -> str:
    return json.dumps({
        "status": response.status.value,
        "reference": response.reference,
        "message": response.message,
        "transaction_id": response.transaction_id,
        "raw": response.raw,
    }, default=str)


def _response_from_json(text: str) -> GatewayResponse:
    data = json.loads(text)
    return GatewayResponse(
        status=ResponseStatus(data["status"]),
        reference=data.get("reference"),
        message=data.get("message", ""),
        transaction_id=data.get("transaction_id"),
        raw=data.get("raw") or {},
    )


def _to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        gateway=row.gateway,
        amount=Decimal(row.amount),
        currency=row.currency,
        options=PurchaseOptions.model_validate_json(row.options),
        status=TransactionStatus(row.status),
        tenant_id=row.tenant_id,
        external_reference=row.external_reference,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _apply(row: TransactionRow, transaction: Transaction) -> None:
    row.status = transaction.status.value
    row.external_reference = transaction.external_reference
    row.updated_at = transaction.updated_at


def _to_record(row: AcknowledgementRow) -> AcknowledgementRecord:
    return AcknowledgementRecord(
        id=row.id,
        transaction_id=row.transaction_id,
        gateway=row.gateway,
        event=row.event,
        response=_response_from_json(row.response),
        error=ErrorKind(row.error) if row.error else None,
        error_detail=row.error_detail or "",
        first_seen_at=_aware(row.first_seen_at),
    )


class SqlLedger(TransactionLedger):
    """Ledger persisted through an ``async_sessionmaker``."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        super().__init__()
        self._sessions = sessions

    async def insert(self, transaction: Transaction) -> Transaction:
        row = TransactionRow(
            id=transaction.id,
            gateway=transaction.gateway,
            tenant_id=transaction.tenant_id,
            amount=transaction.amount,
            currency=transaction.currency,
            status=transaction.status.value,
            options=transaction.options.model_dump_json(exclude_none=True),
            idempotency_key=transaction.idempotency_key,
            external_reference=transaction.external_reference,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )
        try:
            async with self._sessions() as session, session.begin():
                session.add(row)
        except IntegrityError as exc:
            raise LedgerError(
                f"Transaction {transaction.id} conflicts with an existing id or idempotency key"
            ) from exc
        return transaction

    async def get(self, transaction_id: str) -> Optional[Transaction]:
        async with self._sessions() as session:
            row = await session.get(TransactionRow, transaction_id)
            return _to_transaction(row) if row else None

    async def find_by_reference(self, gateway: str, reference: str) -> Optional[Transaction]:
        async with self._sessions() as session:
            result = await session.execute(
                select(TransactionRow).where(
                    TransactionRow.gateway == gateway,
                    TransactionRow.external_reference == reference,
                )
            )
            row = result.scalars().first()
            if row is None:
                row = await session.get(TransactionRow, reference)
                if row is not None and row.gateway != gateway:
                    row = None
            return _to_transaction(row) if row else None

    async def find_by_idempotency_key(self, gateway: str, key: str) -> Optional[Transaction]:
        async with self._sessions() as session:
            result = await session.execute(
                select(TransactionRow).where(
                    TransactionRow.gateway == gateway,
                    TransactionRow.idempotency_key == key,
                )
            )
            row = result.scalars().first()
            return _to_transaction(row) if row else None

    async def update(
        self,
        transaction: Transaction,
        expected: Optional[TransactionStatus] = None,
    ) -> Transaction:
        async with self._sessions() as session, session.begin():
            await self._claim(session, transaction.id, expected)
            row = await session.get(TransactionRow, transaction.id)
            _apply(row, transaction)
        return transaction

    async def _claim(
        self,
        session: AsyncSession,
        transaction_id: str,
        expected: Optional[TransactionStatus],
    ) -> None:
        """
        Take the write lock on a transaction row, checking its status.

        The statement changes nothing; it only matches while the stored
        status is still ``expected``, and holds the row until commit.
        """
        stmt = update(TransactionRow).where(TransactionRow.id == transaction_id)
        if expected is not None:
            stmt = stmt.where(TransactionRow.status == expected.value)
        result = await session.execute(
            stmt.values(status=TransactionRow.status).execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return
        if expected is not None and await session.get(TransactionRow, transaction_id) is not None:
            raise StaleTransaction(transaction_id, expected)
        raise LedgerError(f"Unknown transaction: {transaction_id}")

    async def get_acknowledgement(self, ack_id: str) -> Optional[AcknowledgementRecord]:
        async with self._sessions() as session:
            row = await session.get(AcknowledgementRow, ack_id)
            return _to_record(row) if row else None

    async def commit_acknowledgement(
        self,
        record: AcknowledgementRecord,
        transaction: Optional[Transaction] = None,
        expected: Optional[TransactionStatus] = None,
    ) -> AcknowledgementRecord:
        try:
            async with self._sessions() as session, session.begin():
                # Claim first so a concurrent writer waits here, not between our reads.
                claimed = True
                try:
                    await self._claim(session, record.transaction_id, expected)
                except StaleTransaction:
                    claimed = False

                existing = await session.get(AcknowledgementRow, record.id)
                if existing is not None:
                    logger.info("Acknowledgement %s already recorded", record.id[:12])
                    return _to_record(existing)
                if not claimed:
                    raise StaleTransaction(record.transaction_id, expected)

                if transaction is not None:
                    row = await session.get(TransactionRow, transaction.id)
                    _apply(row, transaction)

                session.add(AcknowledgementRow(
                    id=record.id,
                    transaction_id=record.transaction_id,
                    gateway=record.gateway,
                    event=record.event,
                    response=_response_json(record.response),
                    error=record.error.value if record.error else None,
                    error_detail=record.error_detail or None,
                    first_seen_at=record.first_seen_at,
                ))
        except IntegrityError:
            # Another process inserted the same notification first.
            stored = await self.get_acknowledgement(record.id)
            if stored is None:
                raise
            return stored
        return record


    async def _store_audit(self, entry: AuditEntry) -> None:
        async with self._sessions() as session, session.begin():
            session.add(AuditLog(
                transaction_id=entry.transaction_id,
                gateway=entry.gateway,
                action=entry.action,
                details=json.dumps(entry.details, default=str) if entry.details else None,
                timestamp=entry.timestamp,
            ))

    async def audit_trail(self, transaction_id: str) -> list[AuditEntry]:
        async with self._sessions() as session:
            result = await session.execute(
                select(AuditLog)
                .where(AuditLog.transaction_id == transaction_id)
                .order_by(AuditLog.id.asc())
            )
            return [
                AuditEntry(
                    action=log.action,
                    transaction_id=log.transaction_id,
                    gateway=log.gateway,
                    details=json.loads(log.details) if log.details else {},
                    timestamp=_aware(log.timestamp),
                )
                for log in result.scalars().all()
            ]
