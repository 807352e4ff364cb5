from paygate.models.enums import ErrorKind, ResponseStatus, TransactionStatus
from paygate.models.options import Option, PurchaseOptions, build_options
from paygate.models.response import GatewayResponse, Notification, ProviderResult, PurchaseRequest
from paygate.models.transaction import AcknowledgementRecord, Transaction

__all__ = [
    "AcknowledgementRecord",
    "ErrorKind",
    "GatewayResponse",
    "Notification",
    "Option",
    "ProviderResult",
    "PurchaseOptions",
    "PurchaseRequest",
    "ResponseStatus",
    "Transaction",
    "TransactionStatus",
    "build_options",
]
