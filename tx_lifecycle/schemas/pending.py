"""Pending transaction entry schema."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from tx_lifecycle.models.pending_tx import ACTIVE_STATUSES, VALID_TRANSITIONS, PendingTxStatus
from tx_lifecycle.schemas.context import SubmissionContext


class PendingTransactionEntry(BaseModel):
    """A submitted-but-unconfirmed transaction tracked by the watcher."""
    tx_hash: str = Field(..., min_length=1)
    tx_type: str  # Registry key of the originating definition
    entity_type: str
    entity_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    status: PendingTxStatus = PendingTxStatus.PENDING

    # Poll transport errors only
    retry_count: int = 0
    max_retries: int = 3

    # Failed onConfirmation runs
    confirmation_attempts: int = 0
    max_confirmation_attempts: int = 10

    context: SubmissionContext
    on_chain_data: Optional[dict[str, Any]] = None
    confirmations: int = 0
    last_error: Optional[str] = None

    def can_transition_to(self, new_status: PendingTxStatus) -> bool:
        """Check if transition to new status is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, [])

    @property
    def is_active(self) -> bool:
        """Whether the watcher still works on this entry."""
        return self.status in ACTIVE_STATUSES

    @property
    def needs_chain_poll(self) -> bool:
        """Only entries not yet seen on-chain are polled."""
        return self.status == PendingTxStatus.PENDING
