"""Pending transaction status machine and durable row model."""
import enum
from datetime import datetime

from sqlalchemy import String, Enum, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from tx_lifecycle.database import Base


class PendingTxStatus(str, enum.Enum):
    """
    Pending transaction status state machine.

    Flow: pending -> confirming -> (removed on success)
                                -> needsAttention -> (removed on retry success)
          pending -> failedPermanent (poll retries exhausted / dropped tx)
    """
    PENDING = "pending"
    CONFIRMING = "confirming"
    NEEDS_ATTENTION = "needsAttention"
    FAILED_PERMANENT = "failedPermanent"


# Valid state transitions. Removal from the store is not a status.
VALID_TRANSITIONS = {
    PendingTxStatus.PENDING: [
        PendingTxStatus.PENDING,           # Poll transport error, retry_count++
        PendingTxStatus.CONFIRMING,        # Found confirmed on-chain
        PendingTxStatus.FAILED_PERMANENT,  # Retries exhausted or never found
    ],
    PendingTxStatus.CONFIRMING: [
        PendingTxStatus.NEEDS_ATTENTION,   # Critical onConfirmation failure
        PendingTxStatus.FAILED_PERMANENT,  # Unresolvable definition
    ],
    PendingTxStatus.NEEDS_ATTENTION: [
        PendingTxStatus.NEEDS_ATTENTION,   # Retry failed again
        PendingTxStatus.FAILED_PERMANENT,  # Attempt cap reached
    ],
    PendingTxStatus.FAILED_PERMANENT: [],  # Terminal state, kept until dismissed
}

# Statuses whose entries the watcher still works on
ACTIVE_STATUSES = frozenset({
    PendingTxStatus.PENDING,
    PendingTxStatus.CONFIRMING,
    PendingTxStatus.NEEDS_ATTENTION,
})


class PendingTxRecord(Base):
    """Durable row for one pending transaction entry."""
    __tablename__ = "pending_transactions"

    tx_hash: Mapped[str] = mapped_column(String(128), primary_key=True)
    status: Mapped[PendingTxStatus] = mapped_column(Enum(PendingTxStatus), nullable=False, index=True)

    # Full serialized PendingTransactionEntry
    entry: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_pending_transactions_status_created", "status", "created_at"),
    )
