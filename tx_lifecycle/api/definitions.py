"""Transaction definition catalog endpoints."""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tx_lifecycle.api.deps import get_correlation_id, get_registry
from tx_lifecycle.exceptions import DefinitionNotFoundError
from tx_lifecycle.schemas.common import CorrelatedResponse
from tx_lifecycle.services.registry import TransactionRegistry

router = APIRouter(prefix="/v1/transaction-definitions", tags=["Transaction Definitions"])


@router.get("", response_model=CorrelatedResponse[List[dict[str, Any]]])
async def list_definitions(
    role: Optional[str] = Query(None),
    version: Optional[str] = Query(None),
    registry: TransactionRegistry = Depends(get_registry),
    correlation_id: str = Depends(get_correlation_id),
):
    """List registered transaction definitions, optionally filtered."""
    definitions = registry.by_role(role) if role else registry.all()
    if version:
        definitions = [d for d in definitions if d.protocol_spec.version == version]

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=[d.summary() for d in definitions],
    )


@router.get("/{tx_type}", response_model=CorrelatedResponse[dict[str, Any]])
async def get_definition(
    tx_type: str,
    registry: TransactionRegistry = Depends(get_registry),
    correlation_id: str = Depends(get_correlation_id),
):
    """Get a single definition with its parameter JSON schemas."""
    try:
        definition = registry.get(tx_type)
    except DefinitionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return CorrelatedResponse(correlation_id=correlation_id, data=definition.summary())
