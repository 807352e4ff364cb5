"""
Mock payment gateway for demonstration and tests.

Simulates real provider behavior:
  - Configurable latency (default from settings)
  - Configurable failure rate, split between network errors, timeouts
    and declines
  - Deterministic declines above a threshold amount
  - Realistic provider references
  - HMAC-signed, form-encoded status notifications

Every submitted request is recorded in ``submissions`` so callers can
assert exactly how many provider calls were made.
"""

import asyncio
import random
import uuid
from collections.abc import Collection
from decimal import Decimal
from typing import Optional

from paygate.config import settings
from paygate.engine.errors import GatewayError
from paygate.gateways import signing
from paygate.gateways.base import NotificationData, PaymentGateway
from paygate.ledger.base import TransactionLedger
from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.response import Notification, ProviderResult, PurchaseRequest

EVENT_STATUS = {
    "authorized": TransactionStatus.AUTHORIZED,
    "captured": TransactionStatus.CAPTURED,
    "declined": TransactionStatus.CANCELLED,
    "expired": TransactionStatus.CANCELLED,
    "cancelled": TransactionStatus.CANCELLED,
    "failed": TransactionStatus.FAILED,
}


class MockGateway(PaymentGateway):
    """
    In-process provider that authorizes purchases and signs its callbacks.

    Notification payloads carry ``reference``, ``event``, optional repeated
    ``item`` values and a ``signature`` over all of them.
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        *,
        name: str = "mock",
        secret: Optional[str] = None,
        failure_rate: Optional[float] = None,
        latency_ms: Optional[int] = None,
        ack_latency_ms: int = 0,
        decline_above: Optional[Decimal] = None,
        capture: bool = False,
        currencies: Optional[Collection[str]] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(ledger, timeout=timeout)
        self._name = name
        self._secret = secret if secret is not None else settings.notification_secret
        self._failure_rate = failure_rate if failure_rate is not None else settings.mock_failure_rate
        self._latency_ms = latency_ms if latency_ms is not None else settings.mock_latency_ms
        self._ack_latency_ms = ack_latency_ms
        self._decline_above = decline_above
        self._capture = capture
        if currencies is not None:
            self.supported_currencies = frozenset(c.upper() for c in currencies)
        self.submissions: list[PurchaseRequest] = []

    @property
    def name(self) -> str:
        return self._name

    async def _submit(self, request: PurchaseRequest) -> ProviderResult:
        self.submissions.append(request)

        # Simulate network latency
        if self._latency_ms > 0:
            jitter = random.uniform(0.5, 1.5)
            await asyncio.sleep(self._latency_ms * jitter / 1000)

        # Simulate random failures
        roll = random.random()

        if roll < self._failure_rate * 0.3:
            raise GatewayError(ErrorKind.NETWORK_ERROR, "Mock connection reset by peer")

        if roll < self._failure_rate * 0.6:
            raise GatewayError(ErrorKind.TIMEOUT, "Mock upstream timeout")

        if roll < self._failure_rate or (
            self._decline_above is not None and request.amount > self._decline_above
        ):
            return ProviderResult(
                status=ResponseStatus.REJECTED,
                reference=None,
                message="Mock decline: insufficient funds",
                raw={"code": "card_declined"},
            )

        reference = f"mock_{uuid.uuid4().hex[:16]}"
        status = ResponseStatus.CAPTURED if self._capture else ResponseStatus.AUTHORIZED
        return ProviderResult(
            status=status,
            reference=reference,
            message=f"{request.currency} {request.amount} {status.value}",
            raw={"id": reference, "merchant_reference": request.transaction_id},
        )

    def parse_notification(self, data: NotificationData) -> Notification:
        reference = signing.first_value(data, "reference")
        if not reference:
            raise GatewayError(ErrorKind.UNKNOWN_TRANSACTION, "Notification has no reference")
        event = (signing.first_value(data, "event") or "").lower()
        return Notification(reference=reference, event=event, status=EVENT_STATUS.get(event))

    async def verify_notification(self, data: NotificationData) -> bool:
        if self._ack_latency_ms > 0:
            await asyncio.sleep(self._ack_latency_ms / 1000)
        return signing.verify_signature(data, self._secret)

    def sign_notification(self, reference: str, event: str, **extra: list[str]) -> dict[str, list[str]]:
        """Build a notification body exactly as this provider would send it."""
        return signing.sign({"reference": [reference], "event": [event], **extra}, self._secret)
