"""HTTP request/response schemas."""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field

from tx_lifecycle.models.pending_tx import PendingTxStatus
from tx_lifecycle.schemas.execution import ExecutionOutcome, ExecutionResult
from tx_lifecycle.schemas.pending import PendingTransactionEntry


class SubmitTransactionRequest(BaseModel):
    """Schema for registering a submitted transaction."""
    tx_type: str
    tx_hash: str = Field(..., min_length=1, max_length=128)
    wallet_address: str = Field(..., min_length=1)
    tx_params: dict[str, Any] = Field(default_factory=dict)
    side_effect_params: dict[str, Any] = Field(default_factory=dict)
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "tx_type": "COURSE_STUDENT_ASSIGNMENT_COMMIT",
                "tx_hash": "8f2c1a7d2f0e4a3b9c6d5e4f3a2b1c0d9e8f7a6b5c4d3e2f1a0b9c8d7e6f5a4b",
                "wallet_address": "addr_test1qz0example",
                "tx_params": {
                    "alias": "alice",
                    "course_id": "c0ffee",
                    "slt_hash": "abc123",
                    "assignment_info": "ipfs://bafy",
                },
                "side_effect_params": {"evidence": {"url": "https://example.com"}},
            }
        }


class SideEffectResultResponse(BaseModel):
    """Per side-effect summary."""
    label: str
    critical: bool
    success: bool
    skipped: bool
    skip_reason: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


class ExecutionResultResponse(BaseModel):
    """Summary of an executed side-effect list."""
    success: bool
    outcome: ExecutionOutcome
    critical_errors: List[str]
    results: List[SideEffectResultResponse]

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecutionResultResponse":
        return cls(
            success=result.success,
            outcome=result.outcome,
            critical_errors=result.critical_errors,
            results=[
                SideEffectResultResponse(
                    label=r.side_effect.label,
                    critical=r.side_effect.critical,
                    success=r.success,
                    skipped=r.skipped,
                    skip_reason=r.skip_reason.value if r.skip_reason else None,
                    error=r.error,
                    status_code=r.status_code,
                )
                for r in result.results
            ],
        )


class PendingTransactionResponse(BaseModel):
    """Schema for pending transaction response."""
    tx_hash: str
    tx_type: str
    entity_type: str
    entity_id: str
    status: PendingTxStatus
    retry_count: int
    max_retries: int
    confirmation_attempts: int
    max_confirmation_attempts: int
    confirmations: int
    last_error: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entry(cls, entry: PendingTransactionEntry) -> "PendingTransactionResponse":
        return cls.model_validate(entry.model_dump(exclude={"context", "on_chain_data"}))


class SubmitTransactionResponse(BaseModel):
    """Result of running onSubmit and registering the entry."""
    execution: ExecutionResultResponse
    pending: PendingTransactionResponse
