"""SQLAlchemy models backing the SQL transaction ledger."""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionRow(Base):
    """
    A transaction against one gateway.

    ``external_reference`` is the provider's own id, set on the first
    successful response. ``idempotency_key`` is unique per gateway so a
    retried purchase finds its earlier attempt.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("gateway", "idempotency_key", name="uq_gateway_idempotency_key"),
    )

    id = Column(String(64), primary_key=True)
    gateway = Column(String(50), nullable=False, index=True)
    tenant_id = Column(String(100), nullable=True, index=True)
    amount = Column(Numeric(18, 6), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default="created")
    options = Column(Text, nullable=False)  # JSON
    idempotency_key = Column(String(255), nullable=True)
    external_reference = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    acknowledgements = relationship("AcknowledgementRow", back_populates="transaction", lazy="raise")


class AcknowledgementRow(Base):
    """
    Deduplication entry for an inbound notification.

    The primary key is the notification's derived identifier, so a second
    insert of the same notification violates the key instead of applying twice.
    """

    __tablename__ = "acknowledgements"

    id = Column(String(64), primary_key=True)
    transaction_id = Column(String(64), ForeignKey("transactions.id"), nullable=False, index=True)
    gateway = Column(String(50), nullable=False)
    event = Column(String(100), nullable=False)
    response = Column(Text, nullable=False)  # JSON
    error = Column(String(50), nullable=True)
    error_detail = Column(Text, nullable=True)
    first_seen_at = Column(DateTime(timezone=True), default=_utcnow)

    transaction = relationship("TransactionRow", back_populates="acknowledgements")


class AuditLog(Base):
    """
    Immutable audit trail entry.

    Purchases, acknowledgements and refused notifications all get an entry.
    Append-only; never modified.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(64), nullable=True, index=True)
    gateway = Column(String(50), nullable=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
