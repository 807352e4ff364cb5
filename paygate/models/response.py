"""Value objects exchanged between gateways, the ledger and callers."""

import hashlib
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from paygate.models.enums import ResponseStatus, TransactionStatus
from paygate.models.options import PurchaseOptions


@dataclass(frozen=True)
class GatewayResponse:
    """
    Canonical result of any gateway operation.

    ``raw`` is kept for audit and debugging only. Nothing in the core makes
    a decision based on it; ``status`` already encodes the outcome.
    """

    status: ResponseStatus
    reference: Optional[str] = None
    message: str = ""
    transaction_id: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class PurchaseRequest:
    """What a provider adapter receives for a single purchase call."""

    transaction_id: str
    amount: Decimal
    currency: str
    options: PurchaseOptions

    @property
    def idempotency_key(self) -> Optional[str]:
        return self.options.idempotency_key


@dataclass(frozen=True)
class ProviderResult:
    """A provider's answer to a purchase, before it touches the ledger."""

    status: ResponseStatus  # AUTHORIZED, CAPTURED or REJECTED
    reference: Optional[str]
    message: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Notification:
    """Structured form of an inbound provider notification."""

    reference: str
    event: str  # provider's own event name, as reported
    status: Optional[TransactionStatus]  # None when the event is not recognised

    def dedup_id(self, gateway: str) -> str:
        """Stable identifier of this notification for deduplication."""
        key = "\x1f".join((gateway, self.reference, self.event.strip().lower()))
        return hashlib.sha256(key.encode()).hexdigest()
