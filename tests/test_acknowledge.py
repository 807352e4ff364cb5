"""Tests for inbound notification handling."""

from decimal import Decimal

import pytest

from paygate.engine.errors import GatewayError
from paygate.gateways import signing
from paygate.gateways.mock_gateway import MockGateway
from paygate.ledger.base import StaleTransaction
from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.options import Option, build_options
from paygate.models.transaction import AcknowledgementRecord, Transaction, new_transaction_id

SECRET = "test-secret"


async def _authorized(gateway):
    return await gateway.purchase(Decimal("10.00"), {Option.CURRENCY: "USD", Option.ORDER_ID: "o-1"})


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_capture_then_replay(self, gateway, ledger):
        purchase = await _authorized(gateway)
        payload = gateway.sign_notification(purchase.reference, "captured")

        first = await gateway.acknowledge(payload)
        txn = await ledger.get(purchase.transaction_id)
        assert first.status == ResponseStatus.CAPTURED
        assert first.reference == purchase.reference
        assert txn.status == TransactionStatus.CAPTURED

        second = await gateway.acknowledge(payload)
        assert second == first
        assert (await ledger.get(purchase.transaction_id)).updated_at == txn.updated_at

        actions = [e.action for e in await ledger.audit_trail(purchase.transaction_id)]
        assert actions.count("acknowledged") == 1

    @pytest.mark.asyncio
    async def test_unknown_reference(self, gateway):
        payload = gateway.sign_notification("mock_does_not_exist", "captured")
        with pytest.raises(GatewayError) as exc:
            await gateway.acknowledge(payload)
        assert exc.value.kind == ErrorKind.UNKNOWN_TRANSACTION


class TestTransitions:
    @pytest.mark.asyncio
    async def test_declined_cancels_authorized(self, gateway, ledger):
        purchase = await _authorized(gateway)
        response = await gateway.acknowledge(gateway.sign_notification(purchase.reference, "declined"))
        assert response.status == ResponseStatus.CANCELLED
        assert (await ledger.get(purchase.transaction_id)).status == TransactionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_captured_cannot_be_cancelled(self, gateway, ledger):
        purchase = await _authorized(gateway)
        await gateway.acknowledge(gateway.sign_notification(purchase.reference, "captured"))

        with pytest.raises(GatewayError) as exc:
            await gateway.acknowledge(gateway.sign_notification(purchase.reference, "expired"))
        assert exc.value.kind == ErrorKind.ILLEGAL_TRANSITION
        assert exc.value.response.status == ResponseStatus.CAPTURED
        assert exc.value.detail == "Invalid transaction transition: captured → cancelled"
        assert (await ledger.get(purchase.transaction_id)).status == TransactionStatus.CAPTURED

    @pytest.mark.asyncio
    async def test_illegal_transition_replay_raises_same_error(self, gateway, ledger):
        purchase = await _authorized(gateway)
        await gateway.acknowledge(gateway.sign_notification(purchase.reference, "captured"))
        payload = gateway.sign_notification(purchase.reference, "cancelled")

        errors = []
        for _ in range(2):
            with pytest.raises(GatewayError) as exc:
                await gateway.acknowledge(payload)
            errors.append(exc.value)
        assert errors[0].kind == errors[1].kind == ErrorKind.ILLEGAL_TRANSITION
        assert errors[0].detail == errors[1].detail

        actions = [e.action for e in await ledger.audit_trail(purchase.transaction_id)]
        assert actions.count("illegal_transition") == 1

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, gateway, ledger):
        purchase = await _authorized(gateway)
        before = await ledger.get(purchase.transaction_id)

        response = await gateway.acknowledge(gateway.sign_notification(purchase.reference, "authorized"))
        assert response.status == ResponseStatus.AUTHORIZED
        assert (await ledger.get(purchase.transaction_id)).updated_at == before.updated_at

    @pytest.mark.asyncio
    async def test_unrecognised_event(self, gateway):
        purchase = await _authorized(gateway)
        with pytest.raises(GatewayError) as exc:
            await gateway.acknowledge(gateway.sign_notification(purchase.reference, "disputed"))
        assert exc.value.kind == ErrorKind.ILLEGAL_TRANSITION

    @pytest.mark.asyncio
    async def test_reconciles_transaction_left_created(self, gateway, ledger):
        """A notification quoting our id settles a purchase whose response was lost."""
        txn = await ledger.insert(_created_transaction(gateway))
        payload = gateway.sign_notification(txn.id, "captured")

        response = await gateway.acknowledge(payload)
        assert response.status == ResponseStatus.CAPTURED
        stored = await ledger.get(txn.id)
        assert stored.status == TransactionStatus.CAPTURED
        assert stored.external_reference is None


def _created_transaction(gateway):
    return Transaction(
        id=new_transaction_id(),
        gateway=gateway.name,
        amount=Decimal("10.00"),
        currency="USD",
        options=build_options({Option.CURRENCY: "USD"}),
    )


class TestAuthenticity:
    @pytest.mark.asyncio
    async def test_bad_signature(self, gateway, ledger):
        purchase = await _authorized(gateway)
        payload = signing.sign({"reference": [purchase.reference], "event": ["captured"]}, "wrong-secret")

        with pytest.raises(GatewayError) as exc:
            await gateway.acknowledge(payload)
        assert exc.value.kind == ErrorKind.AUTHENTICATION_FAILED
        assert (await ledger.get(purchase.transaction_id)).status == TransactionStatus.AUTHORIZED

    @pytest.mark.asyncio
    async def test_rejected_notification_is_not_deduplicated(self, gateway, ledger):
        purchase = await _authorized(gateway)
        forged = {"reference": [purchase.reference], "event": ["captured"], "signature": ["00"]}
        with pytest.raises(GatewayError):
            await gateway.acknowledge(forged)

        response = await gateway.acknowledge(gateway.sign_notification(purchase.reference, "captured"))
        assert response.status == ResponseStatus.CAPTURED

    @pytest.mark.asyncio
    async def test_tampered_line_items(self, gateway):
        purchase = await _authorized(gateway)
        payload = gateway.sign_notification(purchase.reference, "captured", item=["mug", "spoon"])
        payload["item"] = ["mug", "teapot"]
        with pytest.raises(GatewayError) as exc:
            await gateway.acknowledge(payload)
        assert exc.value.kind == ErrorKind.AUTHENTICATION_FAILED

    @pytest.mark.asyncio
    async def test_missing_reference(self, gateway):
        payload = signing.sign({"event": ["captured"]}, SECRET)
        with pytest.raises(GatewayError) as exc:
            await gateway.acknowledge(payload)
        assert exc.value.kind == ErrorKind.UNKNOWN_TRANSACTION


@pytest.mark.asyncio
async def test_notifications_are_scoped_to_their_gateway(ledger):
    first = MockGateway(ledger, name="first", secret=SECRET, failure_rate=0.0, latency_ms=0)
    second = MockGateway(ledger, name="second", secret=SECRET, failure_rate=0.0, latency_ms=0)
    purchase = await first.purchase(Decimal("1.00"), {Option.CURRENCY: "USD"})

    with pytest.raises(GatewayError) as exc:
        await second.acknowledge(second.sign_notification(purchase.reference, "captured"))
    assert exc.value.kind == ErrorKind.UNKNOWN_TRANSACTION


@pytest.mark.asyncio
async def test_ledger_refuses_stale_acknowledgement(gateway, ledger):
    purchase = await _authorized(gateway)
    authorized = await ledger.get(purchase.transaction_id)
    await ledger.update(authorized.transition(TransactionStatus.CAPTURED), expected=TransactionStatus.AUTHORIZED)

    cancelled = authorized.transition(TransactionStatus.CANCELLED)
    record = AcknowledgementRecord(
        id="ack-stale",
        transaction_id=authorized.id,
        gateway=gateway.name,
        event="declined",
        response=cancelled.to_response("Transaction cancelled"),
    )
    with pytest.raises(StaleTransaction):
        await ledger.commit_acknowledgement(record, cancelled, expected=TransactionStatus.AUTHORIZED)

    assert await ledger.get_acknowledgement("ack-stale") is None
    assert (await ledger.get(authorized.id)).status == TransactionStatus.CAPTURED
