"""
Immutable audit trail for gateway operations.

Every state change gets an append-only audit entry with:
  - Transaction ID (which transaction it concerns)
  - Gateway (which provider handled it)
  - Action (what happened)
  - Details (amounts, references, refusal reasons)
  - Timestamp (UTC)

Entries are built here and persisted by the ledger. They are never
modified or deleted.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger("paygate.audit")


@dataclass(frozen=True)
class AuditEntry:
    action: str
    transaction_id: Optional[str] = None
    gateway: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def log_event(
    action: str,
    transaction_id: Optional[str] = None,
    gateway: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditEntry:
    """
    Build an audit entry and write it to the audit log stream.

    Args:
        action: What happened (e.g. "purchase_authorized", "acknowledged").
        transaction_id: The transaction this event relates to.
        gateway: Name of the gateway that handled it.
        details: Arbitrary JSON-serialisable context.

    Returns:
        The entry, for the ledger to persist.
    """
    entry = AuditEntry(
        action=action,
        transaction_id=transaction_id,
        gateway=gateway,
        details=details or {},
    )
    logger.info(
        "AUDIT | txn=%s gateway=%s action=%s | %s",
        transaction_id or "-",
        gateway or "-",
        action,
        json.dumps(details, default=str)[:200] if details else "",
    )
    return entry
