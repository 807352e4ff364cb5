"""Tests for the gateway error taxonomy."""

from paygate.engine.errors import GatewayError, transport_error
from paygate.models.enums import ErrorKind


def test_kind_and_detail():
    err = GatewayError(ErrorKind.PROVIDER_REJECTED, "card declined")
    assert err.kind == ErrorKind.PROVIDER_REJECTED
    assert err.detail == "card declined"
    assert str(err) == "provider_rejected: card declined"


def test_retry_safe_only_for_transport_errors():
    assert not GatewayError(ErrorKind.PROVIDER_REJECTED, retry_safe=True).retry_safe
    assert GatewayError(ErrorKind.TIMEOUT, retry_safe=True).retry_safe


def test_transport_error_with_idempotency_key():
    cause = ConnectionResetError("reset")
    err = transport_error(ErrorKind.NETWORK_ERROR, "unreachable", cause, idempotent=True)
    assert err.retry_safe
    assert err.cause is cause
    assert err.is_transport_error


def test_transport_error_without_idempotency_key():
    err = transport_error(ErrorKind.TIMEOUT, "no answer", None, idempotent=False)
    assert not err.retry_safe
    assert "outcome unknown" in err.detail


def test_kind_accepts_value():
    assert GatewayError("timeout").kind == ErrorKind.TIMEOUT
