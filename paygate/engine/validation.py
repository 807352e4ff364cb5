"""
Purchase pre-flight checks.

Before a gateway builds a provider request we verify, in order:
  1. Amount is a finite decimal and strictly positive
  2. Currency is present and supported by the gateway
  3. Amount carries no more precision than the currency's minor unit
  4. Every option the gateway declares as required is present

All of these run before any I/O, so a rejected purchase never reaches the
provider.
"""

from collections.abc import Collection, Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from paygate.engine.errors import GatewayError
from paygate.models.enums import ErrorKind
from paygate.models.options import MissingOption, Option, PurchaseOptions
from paygate.routing.currencies import MINOR_UNITS


@dataclass(frozen=True)
class CheckedPurchase:
    """Amount and currency that passed validation."""

    amount: Decimal
    currency: str


def coerce_amount(amount: Any) -> Decimal:
    """
    Convert ``amount`` to a positive ``Decimal``.

    Floats are refused: a binary float cannot be trusted to hold an exact
    minor-unit amount.
    """
    if isinstance(amount, (bool, float)) or not isinstance(amount, (Decimal, int, str)):
        raise GatewayError(
            ErrorKind.INVALID_AMOUNT,
            f"Amount must be a Decimal, int or numeric string, got {type(amount).__name__}",
        )
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(amount)
    except InvalidOperation as exc:
        raise GatewayError(ErrorKind.INVALID_AMOUNT, f"Not a number: {amount!r}", cause=exc) from exc

    if not value.is_finite() or value <= 0:
        raise GatewayError(ErrorKind.INVALID_AMOUNT, f"Amount must be positive: {amount}")
    return value


def decimal_places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return max(0, -exponent)


def check_purchase(
    amount: Any,
    options: PurchaseOptions,
    supported_currencies: Collection[str],
    required_options: Iterable[Option] = (),
) -> CheckedPurchase:
    """
    Validate a purchase before it is sent anywhere.

    Raises:
        GatewayError: INVALID_AMOUNT or UNSUPPORTED_CURRENCY.
        MissingOption: a gateway-required option is absent.
    """
    value = coerce_amount(amount)

    currency = options.currency
    if not currency:
        raise GatewayError(ErrorKind.UNSUPPORTED_CURRENCY, "Missing currency option")
    if currency not in MINOR_UNITS or currency not in supported_currencies:
        raise GatewayError(ErrorKind.UNSUPPORTED_CURRENCY, f"Unsupported currency: {currency}")

    places = decimal_places(value)
    if places > MINOR_UNITS[currency]:
        raise GatewayError(
            ErrorKind.INVALID_AMOUNT,
            f"{value} has {places} decimal places, {currency} allows {MINOR_UNITS[currency]}",
        )

    missing = options.missing(opt for opt in required_options if opt != Option.CURRENCY)
    if missing is not None:
        raise MissingOption(missing)

    return CheckedPurchase(amount=value, currency=currency)
