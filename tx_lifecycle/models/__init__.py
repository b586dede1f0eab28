"""Database models."""
from tx_lifecycle.models.pending_tx import (
    ACTIVE_STATUSES,
    VALID_TRANSITIONS,
    PendingTxRecord,
    PendingTxStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "VALID_TRANSITIONS",
    "PendingTxRecord",
    "PendingTxStatus",
]
