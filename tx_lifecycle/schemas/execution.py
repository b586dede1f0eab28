"""Side-effect execution result schemas."""
import enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from tx_lifecycle.schemas.definition import SideEffect


class ExecutionPhase(str, enum.Enum):
    """Lifecycle phase a side-effect list runs in."""
    ON_SUBMIT = "onSubmit"
    ON_CONFIRMATION = "onConfirmation"


class SkipReason(str, enum.Enum):
    """Why a side effect was deliberately not executed."""
    CONDITION_NOT_MET = "condition_not_met"
    NOT_IMPLEMENTED = "not_implemented"


class ExecutionOutcome(str, enum.Enum):
    """User-visible outcome of a side-effect list."""
    COMPLETE = "complete"                # Everything that ran succeeded
    PENDING_UPDATES = "pending_updates"  # Only non-critical items failed
    ACTION_REQUIRED = "action_required"  # A critical item failed


class SideEffectExecutionResult(BaseModel):
    """Result of executing one side effect."""
    side_effect: SideEffect
    success: bool
    skipped: bool = False
    skip_reason: Optional[SkipReason] = None
    skip_detail: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    response: Any = None
    attempts: int = 0

    @property
    def failed(self) -> bool:
        return not self.success and not self.skipped


class ExecutionResult(BaseModel):
    """Aggregate result of a side-effect list."""
    success: bool = True
    results: list[SideEffectExecutionResult] = Field(default_factory=list)
    critical_errors: list[str] = Field(default_factory=list)

    @property
    def failures(self) -> list[SideEffectExecutionResult]:
        return [r for r in self.results if r.failed]

    @property
    def skipped(self) -> list[SideEffectExecutionResult]:
        return [r for r in self.results if r.skipped]

    @property
    def outcome(self) -> ExecutionOutcome:
        if not self.success:
            return ExecutionOutcome.ACTION_REQUIRED
        if self.failures:
            return ExecutionOutcome.PENDING_UPDATES
        return ExecutionOutcome.COMPLETE


class SideEffectRequestLog(BaseModel):
    """Emitted through ``on_request`` before a side-effect call."""
    phase: ExecutionPhase
    label: str
    method: str
    url: str
    body: Optional[dict[str, Any]] = None


class SideEffectResultLog(BaseModel):
    """Emitted through ``on_result`` after a side effect completes or is skipped."""
    phase: ExecutionPhase
    label: str
    success: bool
    skipped: bool = False
    skip_reason: Optional[str] = None
    response: Any = None
    error: Optional[str] = None
