"""Transaction state machine."""

from paygate.engine.errors import GatewayError
from paygate.models.enums import ErrorKind, TransactionStatus

TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.CREATED: frozenset({
        TransactionStatus.AUTHORIZED,
        TransactionStatus.CAPTURED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    }),
    TransactionStatus.AUTHORIZED: frozenset({
        TransactionStatus.CAPTURED,
        TransactionStatus.CANCELLED,
    }),
    TransactionStatus.CAPTURED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def is_terminal(status: TransactionStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in TRANSITIONS[current]


def assert_transition(current: TransactionStatus, target: TransactionStatus) -> None:
    if not can_transition(current, target):
        raise GatewayError(
            ErrorKind.ILLEGAL_TRANSITION,
            f"Invalid transaction transition: {current.value} → {target.value}",
        )
