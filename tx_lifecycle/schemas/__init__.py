"""Pydantic schemas for definitions, contexts, results and API payloads."""
from tx_lifecycle.schemas.common import CorrelatedResponse
from tx_lifecycle.schemas.definition import (
    NOT_IMPLEMENTED,
    AdditionalCost,
    BuildConfig,
    ContextValue,
    Documentation,
    EmptyParams,
    HttpMethod,
    LiteralValue,
    ProtocolSpec,
    RetryPolicy,
    SideEffect,
    SideEffectCondition,
    TransactionCost,
    TransactionDefinition,
    UIMetadata,
    ValueSource,
    from_context,
    literal,
)
from tx_lifecycle.schemas.context import (
    ChainTxStatus,
    SubmissionContext,
    TxAsset,
    TxOutput,
)
from tx_lifecycle.schemas.execution import (
    ExecutionOutcome,
    ExecutionPhase,
    ExecutionResult,
    SideEffectExecutionResult,
    SideEffectRequestLog,
    SideEffectResultLog,
    SkipReason,
)
from tx_lifecycle.schemas.pending import PendingTransactionEntry
