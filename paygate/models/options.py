"""
Purchase options: a closed, typed key/value bag.

Keys come from the ``Option`` enumeration only. Every value is type-checked
once, at construction, by a frozen pydantic model; after that the options
are read-only and can be shared freely between the caller, the gateway and
the ledger.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, ValidationError, field_validator


class Option(str, Enum):
    """Recognised purchase options."""

    CURRENCY = "currency"
    ORDER_ID = "order_id"
    RETURN_URL = "return_url"
    DESCRIPTION = "description"
    CUSTOMER_EMAIL = "customer_email"
    IDEMPOTENCY_KEY = "idempotency_key"


# Declared value type of every option, used in error messages.
OPTION_TYPES: dict[Option, str] = {
    Option.CURRENCY: "ISO 4217 currency code",
    Option.ORDER_ID: "string",
    Option.RETURN_URL: "absolute http(s) URL",
    Option.DESCRIPTION: "string",
    Option.CUSTOMER_EMAIL: "email address",
    Option.IDEMPOTENCY_KEY: "opaque token",
}


class InvalidOption(ValueError):
    """An option key is not recognised or its value has the wrong type."""

    def __init__(self, key: Any, expected: str, reason: str = ""):
        self.key = key
        self.expected = expected
        self.reason = reason
        name = key.name if isinstance(key, Option) else repr(key)
        message = f"Invalid option {name}: expected {expected}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class MissingOption(InvalidOption):
    """A gateway-required option was not supplied."""

    def __init__(self, key: Option):
        super().__init__(key, OPTION_TYPES[key], "required by this gateway")


class PurchaseOptions(BaseModel):
    """Validated, immutable purchase options. Build with ``build_options``."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    order_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    return_url: Optional[AnyHttpUrl] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    customer_email: Optional[str] = Field(
        default=None, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value

    def get(self, option: Option, default: Any = None) -> Any:
        value = getattr(self, Option(option).value)
        return default if value is None else value

    def __getitem__(self, option: Option) -> Any:
        value = self.get(option)
        if value is None:
            raise KeyError(option)
        return value

    def __contains__(self, option: object) -> bool:
        try:
            return self.get(Option(option)) is not None
        except ValueError:
            return False

    def as_dict(self) -> dict[Option, Any]:
        """JSON-safe view of the options that are set."""
        dumped = self.model_dump(mode="json", exclude_none=True)
        return {Option(key): value for key, value in dumped.items()}

    def missing(self, required: Iterable[Option]) -> Optional[Option]:
        """First option from ``required`` that has no value, if any."""
        for option in required:
            if option not in self:
                return option
        return None


RawOptions = Union[PurchaseOptions, Mapping[Any, Any], Iterable[tuple[Any, Any]], None]


def _option_key(key: Any) -> Option:
    if isinstance(key, Option):
        return key
    if isinstance(key, str):
        normalized = key.strip()
        for option in Option:
            if normalized.lower() == option.value or normalized.upper() == option.name:
                return option
    raise InvalidOption(key, "one of " + ", ".join(o.name for o in Option), "unknown option")


def build_options(raw: RawOptions = None) -> PurchaseOptions:
    """
    Validate raw option pairs into a ``PurchaseOptions`` value.

    Accepts a mapping or an iterable of ``(key, value)`` pairs. Keys may be
    ``Option`` members or their names. Rejects on the first unknown key,
    duplicate key or badly typed value, in input order.

    Raises:
        InvalidOption: naming the offending key and its expected type.
    """
    if isinstance(raw, PurchaseOptions):
        return raw

    if isinstance(raw, (str, bytes)):
        raise InvalidOption(raw, "mapping or (key, value) pairs", "not a collection of options")

    pairs = raw.items() if isinstance(raw, Mapping) else (raw or ())
    values: dict[str, Any] = {}
    for item in pairs:
        if isinstance(item, (str, bytes)) or not isinstance(item, Iterable):
            raise InvalidOption(item, "(key, value) pair", "not a pair")
        item = tuple(item)
        if len(item) != 2:
            raise InvalidOption(item, "(key, value) pair", f"got {len(item)} elements")
        key, value = item
        option = _option_key(key)
        if option.value in values:
            raise InvalidOption(option, OPTION_TYPES[option], "duplicate option")
        values[option.value] = value

    try:
        return PurchaseOptions.model_validate(values)
    except ValidationError as exc:
        order = list(values)
        first = min(exc.errors(), key=lambda err: order.index(err["loc"][0]))
        option = Option(first["loc"][0])
        raise InvalidOption(option, OPTION_TYPES[option], first["msg"]) from exc
