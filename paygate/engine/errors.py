"""
Gateway error taxonomy.

Every failure of a gateway operation is a ``GatewayError`` carrying exactly
one ``ErrorKind``. Callers branch on ``err.kind`` rather than on exception
classes, and consult ``err.retry_safe`` before retrying a purchase: only
transport failures of a purchase that carried an idempotency key are safe.
"""

from typing import Optional

from paygate.models.enums import TRANSPORT_ERRORS, ErrorKind
from paygate.models.response import GatewayResponse


class GatewayError(Exception):
    """A gateway operation failed with a known kind."""

    def __init__(
        self,
        kind: ErrorKind,
        detail: str = "",
        *,
        cause: Optional[BaseException] = None,
        retry_safe: bool = False,
        response: Optional[GatewayResponse] = None,
    ):
        self.kind = ErrorKind(kind)
        self.detail = detail
        self.cause = cause
        self.retry_safe = retry_safe and self.kind in TRANSPORT_ERRORS
        self.response = response
        super().__init__(f"{self.kind.value}: {detail}" if detail else self.kind.value)

    @property
    def is_transport_error(self) -> bool:
        return self.kind in TRANSPORT_ERRORS


def transport_error(
    kind: ErrorKind,
    detail: str,
    cause: Optional[BaseException],
    idempotent: bool,
) -> GatewayError:
    """
    Build a NETWORK_ERROR/TIMEOUT error.

    Retry is only safe when the request carried an idempotency key; otherwise
    the outcome is unknown and the caller must not blindly retry.
    """
    if not idempotent:
        detail = f"{detail} (outcome unknown, no idempotency key)"
    return GatewayError(kind, detail, cause=cause, retry_safe=idempotent)
