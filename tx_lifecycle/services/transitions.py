"""Pure state transitions for pending transaction entries.

Each function returns a new entry; none of them touch storage. The pending
store applies them under its lock and persists the result.
"""
from datetime import datetime
from typing import Any, Optional

from tx_lifecycle.exceptions import InvalidTransitionError
from tx_lifecycle.models.pending_tx import PendingTxStatus
from tx_lifecycle.schemas.pending import PendingTransactionEntry


def _transition(
    entry: PendingTransactionEntry,
    new_status: PendingTxStatus,
    **changes: Any,
) -> PendingTransactionEntry:
    if not entry.can_transition_to(new_status):
        raise InvalidTransitionError(
            f"Invalid transition from {entry.status.value} to {new_status.value}",
            {"tx_hash": entry.tx_hash},
        )
    return entry.model_copy(
        update={"status": new_status, "updated_at": datetime.utcnow(), **changes}
    )


def mark_retry(entry: PendingTransactionEntry, error: str) -> PendingTransactionEntry:
    """Record a poll transport error.

    Once ``retry_count`` reaches ``max_retries`` the entry becomes
    failedPermanent and drops out of polling.
    """
    retry_count = entry.retry_count + 1
    if retry_count >= entry.max_retries:
        return _transition(
            entry,
            PendingTxStatus.FAILED_PERMANENT,
            retry_count=retry_count,
            last_error=f"Chain query retries exhausted: {error}",
        )
    return _transition(entry, PendingTxStatus.PENDING, retry_count=retry_count, last_error=error)


def mark_confirming(
    entry: PendingTransactionEntry,
    on_chain_data: dict[str, Any],
    confirmations: int = 0,
) -> PendingTransactionEntry:
    """Record that the transaction was found confirmed on-chain."""
    return _transition(
        entry,
        PendingTxStatus.CONFIRMING,
        on_chain_data=on_chain_data,
        confirmations=confirmations,
        last_error=None,
    )


def mark_needs_attention(entry: PendingTransactionEntry, error: str) -> PendingTransactionEntry:
    """Record a critical onConfirmation failure.

    The entry stays for re-attempt until ``max_confirmation_attempts`` is
    reached, after which it becomes failedPermanent.
    """
    attempts = entry.confirmation_attempts + 1
    if attempts >= entry.max_confirmation_attempts:
        return _transition(
            entry,
            PendingTxStatus.FAILED_PERMANENT,
            confirmation_attempts=attempts,
            last_error=f"Confirmation attempts exhausted: {error}",
        )
    return _transition(
        entry,
        PendingTxStatus.NEEDS_ATTENTION,
        confirmation_attempts=attempts,
        last_error=error,
    )


def mark_failed_permanent(entry: PendingTransactionEntry, reason: str) -> PendingTransactionEntry:
    """Stop working on an entry. It stays listed until dismissed."""
    return _transition(entry, PendingTxStatus.FAILED_PERMANENT, last_error=reason)


def is_expired(
    entry: PendingTransactionEntry,
    timeout_seconds: int,
    now: Optional[datetime] = None,
) -> bool:
    """Whether a still-pending entry has outlived the not-found timeout."""
    if entry.status != PendingTxStatus.PENDING:
        return False
    now = now or datetime.utcnow()
    return (now - entry.created_at).total_seconds() > timeout_seconds
