"""
Ledger-owned records: transactions and acknowledgement records.

Both are frozen dataclasses. The ledger is their single writer; every change
produces a new value through ``Transaction.transition``.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.options import PurchaseOptions
from paygate.models.response import GatewayResponse

RESPONSE_STATUS: dict[TransactionStatus, ResponseStatus] = {
    TransactionStatus.CREATED: ResponseStatus.PENDING,
    TransactionStatus.AUTHORIZED: ResponseStatus.AUTHORIZED,
    TransactionStatus.CAPTURED: ResponseStatus.CAPTURED,
    TransactionStatus.FAILED: ResponseStatus.REJECTED,
    TransactionStatus.CANCELLED: ResponseStatus.CANCELLED,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_transaction_id() -> str:
    return f"txn_{uuid.uuid4().hex[:20]}"


@dataclass(frozen=True)
class Transaction:
    """A unit of work against one gateway."""

    id: str
    gateway: str
    amount: Decimal
    currency: str
    options: PurchaseOptions
    status: TransactionStatus = TransactionStatus.CREATED
    tenant_id: Optional[str] = None
    external_reference: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def idempotency_key(self) -> Optional[str]:
        return self.options.idempotency_key

    def transition(
        self,
        status: TransactionStatus,
        external_reference: Optional[str] = None,
    ) -> "Transaction":
        """Return a copy in ``status``. Legality is checked by the lifecycle module."""
        return replace(
            self,
            status=status,
            external_reference=self.external_reference or external_reference,
            updated_at=utcnow(),
        )

    def to_response(self, message: str = "", raw: Optional[dict] = None) -> GatewayResponse:
        return GatewayResponse(
            status=RESPONSE_STATUS[self.status],
            reference=self.external_reference,
            message=message,
            transaction_id=self.id,
            raw=raw or {},
        )


@dataclass(frozen=True)
class AcknowledgementRecord:
    """
    Deduplication entry for one inbound notification.

    ``error`` is set when the notification was accepted for deduplication but
    refused (an illegal transition); replays raise the same error again.
    """

    id: str
    transaction_id: str
    gateway: str
    event: str
    response: GatewayResponse
    error: Optional[ErrorKind] = None
    error_detail: str = ""
    first_seen_at: datetime = field(default_factory=utcnow)
