"""Common schema definitions."""
from datetime import datetime
from typing import Generic, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class CorrelatedResponse(BaseModel, Generic[T]):
    """Response wrapper with correlation ID."""
    correlation_id: str = Field(..., description="Request correlation ID for tracing")
    data: T
    timestamp: datetime = Field(default_factory=datetime.utcnow)
