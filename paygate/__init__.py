"""paygate: one contract for purchases and provider notifications across payment gateways."""

from paygate.engine.errors import GatewayError
from paygate.gateways.base import PaymentGateway
from paygate.ledger.base import LedgerError, TransactionLedger
from paygate.ledger.memory import InMemoryLedger
from paygate.ledger.sql import SqlLedger
from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.options import InvalidOption, MissingOption, Option, PurchaseOptions, build_options
from paygate.models.response import GatewayResponse
from paygate.routing.registry import GatewayRegistry

__all__ = [
    "ErrorKind",
    "GatewayError",
    "GatewayRegistry",
    "GatewayResponse",
    "InMemoryLedger",
    "InvalidOption",
    "LedgerError",
    "MissingOption",
    "Option",
    "PaymentGateway",
    "PurchaseOptions",
    "ResponseStatus",
    "SqlLedger",
    "TransactionLedger",
    "TransactionStatus",
    "build_options",
]
