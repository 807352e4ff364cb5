"""
JSON-over-HTTPS payment gateway adapter.

Talks to a provider exposing ``POST /payments`` with bearer credentials and
an ``Idempotency-Key`` header, and posting form-encoded, HMAC-signed status
notifications back to us.
"""

import logging
from collections.abc import Collection
from typing import Any, Optional

import httpx

from paygate.engine.errors import GatewayError
from paygate.gateways import signing
from paygate.gateways.base import NotificationData, PaymentGateway
from paygate.ledger.base import TransactionLedger
from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.options import Option
from paygate.models.response import Notification, ProviderResult, PurchaseRequest

logger = logging.getLogger("paygate.gateway.http")

# Provider is busy or timed out: the request may be replayed with the same key.
RETRIABLE_STATUS_CODES = {408, 429}

RESULT_STATUS = {
    "authorized": ResponseStatus.AUTHORIZED,
    "captured": ResponseStatus.CAPTURED,
    "succeeded": ResponseStatus.CAPTURED,
    "declined": ResponseStatus.REJECTED,
}

EVENT_STATUS = {
    "payment.authorized": TransactionStatus.AUTHORIZED,
    "payment.captured": TransactionStatus.CAPTURED,
    "payment.declined": TransactionStatus.CANCELLED,
    "payment.expired": TransactionStatus.CANCELLED,
    "payment.failed": TransactionStatus.FAILED,
}


class HttpGateway(PaymentGateway):
    """Hosted-payment provider reached over HTTPS."""

    required_options = (Option.CURRENCY, Option.RETURN_URL)

    def __init__(
        self,
        ledger: TransactionLedger,
        *,
        name: str,
        base_url: str,
        api_key: str,
        webhook_secret: str,
        currencies: Optional[Collection[str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(ledger, timeout=timeout)
        self._name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self._transport = transport
        if currencies is not None:
            self.supported_currencies = frozenset(c.upper() for c in currencies)

    @property
    def name(self) -> str:
        return self._name

    def _payload(self, request: PurchaseRequest) -> dict[str, Any]:
        options = request.options.as_dict()
        return {
            "amount": str(request.amount),
            "currency": request.currency,
            "merchant_reference": request.transaction_id,
            "order_id": options.get(Option.ORDER_ID),
            "return_url": options.get(Option.RETURN_URL),
            "description": options.get(Option.DESCRIPTION),
            "customer_email": options.get(Option.CUSTOMER_EMAIL),
        }

    async def _submit(self, request: PurchaseRequest) -> ProviderResult:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if request.idempotency_key:
            headers["Idempotency-Key"] = request.idempotency_key

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/payments", json=self._payload(request), headers=headers)
        except httpx.TimeoutException as exc:
            raise GatewayError(ErrorKind.TIMEOUT, f"{self.name} did not answer in time", cause=exc) from exc
        except httpx.TransportError as exc:
            raise GatewayError(ErrorKind.NETWORK_ERROR, f"{self.name} unreachable: {exc}", cause=exc) from exc

        return self._map_response(response)

    def _map_response(self, response: httpx.Response) -> ProviderResult:
        code = response.status_code

        if code in (401, 403):
            raise GatewayError(ErrorKind.AUTHENTICATION_FAILED, f"{self.name} refused credentials ({code})")

        if code in RETRIABLE_STATUS_CODES or code >= 500:
            raise GatewayError(ErrorKind.NETWORK_ERROR, f"{self.name} returned {code}")

        if 400 <= code < 500:
            # Any other client error is a definite answer: the payment was not made.
            body = self._error_body(response)
            return ProviderResult(
                status=ResponseStatus.REJECTED,
                reference=body.get("id"),
                message=body.get("message") or f"Declined ({code})",
                raw=body,
            )

        if code not in (200, 201):
            raise GatewayError(ErrorKind.NETWORK_ERROR, f"{self.name} returned unexpected {code}")

        body = self._json(response)
        status = RESULT_STATUS.get(str(body.get("status", "")).lower())
        if status is None:
            raise GatewayError(ErrorKind.NETWORK_ERROR, f"{self.name} returned unknown status {body.get('status')!r}")

        return ProviderResult(
            status=status,
            reference=body.get("id"),
            message=body.get("message", ""),
            raw=body,
        )

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError(ErrorKind.NETWORK_ERROR, f"{self.name} sent a malformed body", cause=exc) from exc
        if not isinstance(body, dict):
            raise GatewayError(ErrorKind.NETWORK_ERROR, f"{self.name} sent a malformed body")
        return body

    def _error_body(self, response: httpx.Response) -> dict[str, Any]:
        """Decline details when present; error pages are often not JSON."""
        try:
            body = response.json()
        except ValueError:
            logger.info("%s sent a %d without a JSON body", self.name, response.status_code)
            return {}
        return body if isinstance(body, dict) else {}

    def parse_notification(self, data: NotificationData) -> Notification:
        reference = signing.first_value(data, "payment_id") or signing.first_value(data, "merchant_reference")
        if not reference:
            raise GatewayError(ErrorKind.UNKNOWN_TRANSACTION, "Notification has no payment reference")
        event = (signing.first_value(data, "type") or "").lower()
        return Notification(reference=reference, event=event, status=EVENT_STATUS.get(event))

    async def verify_notification(self, data: NotificationData) -> bool:
        return signing.verify_signature(data, self.webhook_secret)
