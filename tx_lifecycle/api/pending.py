"""Pending transaction endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tx_lifecycle.api.deps import get_caller_token, get_correlation_id, get_engine
from tx_lifecycle.exceptions import (
    CriticalSideEffectFailure,
    DefinitionNotFoundError,
    DefinitionValidationError,
    ResolutionError,
)
from tx_lifecycle.schemas.api import (
    ExecutionResultResponse,
    PendingTransactionResponse,
    SubmitTransactionRequest,
    SubmitTransactionResponse,
)
from tx_lifecycle.schemas.common import CorrelatedResponse
from tx_lifecycle.schemas.context import SubmissionContext
from tx_lifecycle.services.engine import TransactionEngine

router = APIRouter(prefix="/v1/pending-transactions", tags=["Pending Transactions"])


@router.post(
    "",
    response_model=CorrelatedResponse[SubmitTransactionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register_submitted_transaction(
    request: SubmitTransactionRequest,
    engine: TransactionEngine = Depends(get_engine),
    caller_token: Optional[str] = Depends(get_caller_token),
    correlation_id: str = Depends(get_correlation_id),
):
    """
    Register a transaction that was built, signed and submitted externally.

    Runs the definition's onSubmit side effects with the caller's token, then
    starts watching the transaction for confirmation.
    """
    try:
        definition = engine.registry.get(request.tx_type)
        context = SubmissionContext.for_definition(
            definition,
            tx_hash=request.tx_hash,
            wallet_address=request.wallet_address,
            tx_params=request.tx_params,
            side_effect_params=request.side_effect_params,
        )
        result = await engine.register_submitted_transaction(
            definition,
            context,
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            auth_token=caller_token,
        )
    except DefinitionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DefinitionValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "errors": e.details},
        )
    except CriticalSideEffectFailure as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": e.message, "critical_errors": e.critical_errors},
        )
    except ResolutionError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=SubmitTransactionResponse(
            execution=ExecutionResultResponse.from_result(result.execution),
            pending=PendingTransactionResponse.from_entry(result.entry),
        ),
    )


@router.get("", response_model=CorrelatedResponse[List[PendingTransactionResponse]])
async def list_pending_transactions(
    include_failed: bool = Query(True),
    engine: TransactionEngine = Depends(get_engine),
    correlation_id: str = Depends(get_correlation_id),
):
    """List watched transactions, oldest first."""
    entries = engine.list_pending(include_failed=include_failed)
    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=[PendingTransactionResponse.from_entry(e) for e in entries],
    )


@router.delete("/{tx_hash}", response_model=CorrelatedResponse[PendingTransactionResponse])
async def stop_watching(
    tx_hash: str,
    engine: TransactionEngine = Depends(get_engine),
    correlation_id: str = Depends(get_correlation_id),
):
    """Stop watching a transaction. Side effects already run are not undone."""
    entry = engine.store.get(tx_hash)
    if entry is None or not await engine.stop_watching(tx_hash):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Pending transaction {tx_hash} not found",
        )

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=PendingTransactionResponse.from_entry(entry),
    )
