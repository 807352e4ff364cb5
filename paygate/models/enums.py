"""Enumerations for the gateway domain model."""

from enum import Enum


class TransactionStatus(str, Enum):
    """Lifecycle states for a transaction held in the ledger."""

    CREATED = "created"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ResponseStatus(str, Enum):
    """Canonical, provider-agnostic outcome of a gateway operation."""

    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ErrorKind(str, Enum):
    """Closed set of failure kinds a gateway operation can report."""

    INVALID_AMOUNT = "invalid_amount"
    UNSUPPORTED_CURRENCY = "unsupported_currency"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    PROVIDER_REJECTED = "provider_rejected"
    AUTHENTICATION_FAILED = "authentication_failed"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    ILLEGAL_TRANSITION = "illegal_transition"
    NO_GATEWAY_CONFIGURED = "no_gateway_configured"
    AMBIGUOUS_GATEWAY = "ambiguous_gateway"


# Transport failures are the only kinds a caller may ever retry.
TRANSPORT_ERRORS = frozenset({ErrorKind.NETWORK_ERROR, ErrorKind.TIMEOUT})
