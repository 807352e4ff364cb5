"""
Payment gateway contract.

Every provider adapter subclasses ``PaymentGateway`` and implements three
hooks:

  - ``_submit``: one outbound purchase call, mapped to a ``ProviderResult``
  - ``parse_notification``: raw callback body → ``Notification``
  - ``verify_notification``: the provider's authenticity check

The public operations, ``purchase`` and ``acknowledge``, are implemented
here once: validation before I/O, the bounded outbound call, ledger
updates, deduplication of notifications and the state machine. Adapters
only talk to their provider.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping, Sequence
from typing import Any, Optional

from paygate.config import settings
from paygate.engine.errors import GatewayError, transport_error
from paygate.engine.lifecycle import assert_transition, can_transition
from paygate.engine.validation import CheckedPurchase, check_purchase
from paygate.ledger.base import StaleTransaction, TransactionLedger
from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.options import OPTION_TYPES, InvalidOption, Option, PurchaseOptions, RawOptions, build_options
from paygate.models.response import GatewayResponse, Notification, ProviderResult, PurchaseRequest
from paygate.models.transaction import AcknowledgementRecord, Transaction, new_transaction_id
from paygate.routing.currencies import SUPPORTED_CURRENCIES

logger = logging.getLogger("paygate.gateway")

NotificationData = Mapping[str, Sequence[str]]

PURCHASE_OUTCOMES = {
    ResponseStatus.AUTHORIZED: TransactionStatus.AUTHORIZED,
    ResponseStatus.CAPTURED: TransactionStatus.CAPTURED,
    ResponseStatus.REJECTED: TransactionStatus.FAILED,
}


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    supported_currencies: Collection[str] = SUPPORTED_CURRENCIES
    required_options: tuple[Option, ...] = (Option.CURRENCY,)

    def __init__(self, ledger: TransactionLedger, timeout: Optional[float] = None):
        self.ledger = ledger
        self.timeout = timeout if timeout is not None else settings.purchase_timeout_seconds

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g. 'mock')."""
        ...

    @abstractmethod
    async def _submit(self, request: PurchaseRequest) -> ProviderResult:
        """
        Send one purchase to the provider.

        Implementations must not retry. They report outcomes as:

        Returns:
            ProviderResult with status AUTHORIZED, CAPTURED or REJECTED.

        Raises:
            GatewayError: NETWORK_ERROR/TIMEOUT on transport failure,
                AUTHENTICATION_FAILED on credential errors.
        """
        ...

    @abstractmethod
    def parse_notification(self, data: NotificationData) -> Notification:
        """
        Extract the correlating reference and reported event from a callback.

        Raises:
            GatewayError: UNKNOWN_TRANSACTION if no reference can be found.
        """
        ...

    @abstractmethod
    async def verify_notification(self, data: NotificationData) -> bool:
        """True if the callback is authentic per the provider's scheme."""
        ...

    # ─── purchase ──────────────────────────────────────────────────────

    async def purchase(
        self,
        amount: Any,
        options: RawOptions = None,
        *,
        tenant_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> GatewayResponse:
        """
        Authorize and capture ``amount`` against this gateway.

        Validation failures are raised before any network call. Retried
        purchases carrying the same idempotency key are serialised and
        either replay the stored outcome or reuse the pending transaction.

        Raises:
            InvalidOption: Malformed or missing options.
            GatewayError: INVALID_AMOUNT, UNSUPPORTED_CURRENCY, NETWORK_ERROR,
                TIMEOUT, PROVIDER_REJECTED or AUTHENTICATION_FAILED.
        """
        opts = build_options(options)
        checked = check_purchase(amount, opts, self.supported_currencies, self.required_options)

        if opts.idempotency_key is None:
            return await self._purchase(checked, opts, tenant_id, timeout)

        async with self.ledger.lock(f"idempotency:{self.name}:{opts.idempotency_key}"):
            return await self._purchase(checked, opts, tenant_id, timeout)

    async def _purchase(
        self,
        checked: CheckedPurchase,
        options: PurchaseOptions,
        tenant_id: Optional[str],
        timeout: Optional[float],
    ) -> GatewayResponse:
        transaction = await self._open_transaction(checked, options, tenant_id)
        if transaction.status != TransactionStatus.CREATED:
            return await self._replay_purchase(transaction)

        request = PurchaseRequest(
            transaction_id=transaction.id,
            amount=checked.amount,
            currency=checked.currency,
            options=options,
        )
        deadline = timeout if timeout is not None else self.timeout
        idempotent = options.idempotency_key is not None

        await self.ledger.audit("purchase_started", transaction.id, self.name, {
            "amount": str(checked.amount),
            "currency": checked.currency,
            "order_id": options.order_id,
            "idempotent": idempotent,
        })

        try:
            result = await asyncio.wait_for(self._submit(request), deadline)
        except asyncio.TimeoutError as exc:
            error = transport_error(ErrorKind.TIMEOUT, f"No response within {deadline}s", exc, idempotent)
            await self._purchase_failed(transaction, error)
            raise error from exc
        except GatewayError as exc:
            error = exc
            if exc.is_transport_error:
                error = transport_error(exc.kind, exc.detail, exc.cause or exc, idempotent)
            await self._purchase_failed(transaction, error)
            if error is exc:
                raise
            raise error from exc

        return await self._apply_purchase_result(transaction, result)

    async def _open_transaction(
        self,
        checked: CheckedPurchase,
        options: PurchaseOptions,
        tenant_id: Optional[str],
    ) -> Transaction:
        key = options.idempotency_key
        if key:
            existing = await self.ledger.find_by_idempotency_key(self.name, key)
            if existing is not None:
                if existing.amount != checked.amount or existing.currency != checked.currency:
                    raise InvalidOption(
                        Option.IDEMPOTENCY_KEY,
                        OPTION_TYPES[Option.IDEMPOTENCY_KEY],
                        f"already used for {existing.amount} {existing.currency}",
                    )
                logger.info("Idempotency key %s matches transaction %s (%s)", key, existing.id, existing.status.value)
                return existing

        return await self.ledger.insert(Transaction(
            id=new_transaction_id(),
            gateway=self.name,
            amount=checked.amount,
            currency=checked.currency,
            options=options,
            tenant_id=tenant_id,
        ))

    async def _replay_purchase(self, transaction: Transaction) -> GatewayResponse:
        response = transaction.to_response("Replayed stored outcome")
        await self.ledger.audit("purchase_replayed", transaction.id, self.name, {
            "status": transaction.status.value,
        })
        if transaction.status == TransactionStatus.FAILED:
            raise GatewayError(ErrorKind.PROVIDER_REJECTED, "Purchase was declined", response=response)
        return response

    async def _purchase_failed(self, transaction: Transaction, error: GatewayError) -> None:
        # Transaction stays CREATED: the provider never confirmed anything.
        logger.warning("Purchase %s on %s failed: %s", transaction.id, self.name, error)
        await self.ledger.audit("purchase_failed", transaction.id, self.name, {
            "kind": error.kind.value,
            "detail": error.detail,
            "retry_safe": error.retry_safe,
        })

    async def _apply_purchase_result(self, transaction: Transaction, result: ProviderResult) -> GatewayResponse:
        target = PURCHASE_OUTCOMES[result.status]

        async with self.ledger.lock(transaction.id):
            current = await self.ledger.get(transaction.id) or transaction
            # Status only moves forward, so a stale write is retried at most a few times.
            while can_transition(current.status, target):
                try:
                    current = await self.ledger.update(
                        current.transition(target, result.reference), expected=current.status
                    )
                    break
                except StaleTransaction:
                    current = await self.ledger.get(transaction.id)
            if current.status != target:
                # A notification got there first; never move backwards.
                logger.info(
                    "Transaction %s already %s, ignoring purchase result %s",
                    current.id, current.status.value, result.status.value,
                )

        response = current.to_response(result.message, result.raw)
        await self.ledger.audit(f"purchase_{result.status.value}", current.id, self.name, {
            "reference": result.reference,
            "status": current.status.value,
        })

        if result.status != ResponseStatus.REJECTED:
            return response
        if current.status in (TransactionStatus.AUTHORIZED, TransactionStatus.CAPTURED):
            logger.warning(
                "Provider declined %s on %s but it is already %s; keeping stored status",
                current.id, self.name, current.status.value,
            )
            return response
        raise GatewayError(ErrorKind.PROVIDER_REJECTED, result.message or "Declined by provider", response=response)

    # ─── acknowledge ───────────────────────────────────────────────────

    async def acknowledge(self, data: NotificationData) -> GatewayResponse:
        """
        Process an asynchronous status notification from the provider.

        The same notification is applied at most once; replays return the
        stored response (or raise the stored error) without side effects.

        Raises:
            GatewayError: UNKNOWN_TRANSACTION, AUTHENTICATION_FAILED or
                ILLEGAL_TRANSITION.
        """
        notification = self.parse_notification(data)
        ack_id = notification.dedup_id(self.name)

        record = await self.ledger.get_acknowledgement(ack_id)
        if record is not None:
            return self._replay_acknowledgement(record)

        transaction = await self.ledger.find_by_reference(self.name, notification.reference)
        if transaction is None:
            logger.warning("Notification %s for unknown reference %s", notification.event, notification.reference)
            raise GatewayError(ErrorKind.UNKNOWN_TRANSACTION, f"No transaction for reference {notification.reference}")

        async with self.ledger.lock(transaction.id):
            record = await self.ledger.get_acknowledgement(ack_id)
            if record is not None:
                return self._replay_acknowledgement(record)

            if not await self.verify_notification(data):
                logger.warning("Rejected unauthenticated notification for %s", transaction.id)
                await self.ledger.audit("acknowledgement_rejected", transaction.id, self.name, {
                    "event": notification.event,
                })
                raise GatewayError(ErrorKind.AUTHENTICATION_FAILED, "Notification signature did not validate")

            if notification.status is None:
                logger.warning("Unrecognised event %r for %s", notification.event, transaction.id)
                raise GatewayError(ErrorKind.ILLEGAL_TRANSITION, f"Unrecognised event: {notification.event}")

            current = await self.ledger.get(transaction.id) or transaction
            while True:
                record, updated = self._resolve(current, notification, ack_id)
                try:
                    stored = await self.ledger.commit_acknowledgement(record, updated, expected=current.status)
                    break
                except StaleTransaction:
                    # Another process moved the transaction; decide again on what it holds now.
                    logger.info("Transaction %s changed under notification %s, re-resolving", current.id, ack_id[:12])
                    current = await self.ledger.get(transaction.id)

            if stored is record:
                await self._audit_acknowledgement(current, updated, stored)

        return self._replay_acknowledgement(stored)

    def _resolve(
        self,
        current: Transaction,
        notification: Notification,
        ack_id: str,
    ) -> tuple[AcknowledgementRecord, Optional[Transaction]]:
        """Decide what a fresh notification does to ``current``."""
        target = notification.status
        raw = {"event": notification.event, "reference": notification.reference}

        def record(transaction: Transaction, message: str, error: Optional[ErrorKind] = None):
            return AcknowledgementRecord(
                id=ack_id,
                transaction_id=current.id,
                gateway=self.name,
                event=notification.event,
                response=transaction.to_response(message, raw),
                error=error,
                error_detail=message if error else "",
            )

        if target == current.status:
            return record(current, f"Transaction already {current.status.value}"), None

        try:
            assert_transition(current.status, target)
        except GatewayError as exc:
            return record(current, exc.detail, exc.kind), None

        reference = notification.reference if notification.reference != current.id else None
        updated = current.transition(target, reference)
        return record(updated, f"Transaction {target.value}"), updated

    async def _audit_acknowledgement(
        self,
        current: Transaction,
        updated: Optional[Transaction],
        record: AcknowledgementRecord,
    ) -> None:
        details = {"event": record.event, "from": current.status.value}
        if record.error is not None:
            logger.warning("Illegal transition on %s: %s", current.id, record.error_detail)
            await self.ledger.audit("illegal_transition", current.id, self.name, {
                **details, "detail": record.error_detail,
            })
            return
        details["to"] = (updated or current).status.value
        await self.ledger.audit("acknowledged", current.id, self.name, details)

    @staticmethod
    def _replay_acknowledgement(record: AcknowledgementRecord) -> GatewayResponse:
        if record.error is not None:
            raise GatewayError(record.error, record.error_detail, response=record.response)
        return record.response
