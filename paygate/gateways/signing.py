"""
Shared-secret signatures for form-encoded notifications.

The signed string is every ``key=value`` pair except the signature itself,
sorted by key then value and URL-encoded, so repeated keys (several line
items, for instance) are covered too. The signature is an HMAC-SHA256 hex
digest of that string.
"""

import hashlib
import hmac
from collections.abc import Mapping, Sequence
from typing import Optional
from urllib.parse import urlencode

SIGNATURE_FIELD = "signature"

NotificationData = Mapping[str, Sequence[str]]


def first_value(data: NotificationData, key: str) -> Optional[str]:
    """First value reported for ``key``, stripped, or None."""
    values = data.get(key) or ()
    if isinstance(values, str):
        values = (values,)
    for value in values:
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def canonical_string(data: NotificationData) -> str:
    pairs = []
    for key, values in data.items():
        if key == SIGNATURE_FIELD:
            continue
        if isinstance(values, str):
            values = (values,)
        pairs.extend((key, str(value)) for value in values)
    return urlencode(sorted(pairs))


def compute_signature(data: NotificationData, secret: str) -> str:
    return hmac.new(secret.encode(), canonical_string(data).encode(), hashlib.sha256).hexdigest()


def verify_signature(data: NotificationData, secret: str) -> bool:
    received = first_value(data, SIGNATURE_FIELD)
    if not received or not secret:
        return False
    return hmac.compare_digest(received, compute_signature(data, secret))


def sign(data: Mapping[str, Sequence[str]], secret: str) -> dict[str, list[str]]:
    """Return a copy of ``data`` with its signature field set."""
    signed = {
        key: [values] if isinstance(values, str) else list(values)
        for key, values in data.items()
        if key != SIGNATURE_FIELD
    }
    signed[SIGNATURE_FIELD] = [compute_signature(signed, secret)]
    return signed
