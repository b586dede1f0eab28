"""Transaction lifecycle engine.

Flow:
    caller builds, signs and submits externally
    -> register_submitted_transaction: run onSubmit, store entry (pending)
    -> watcher polls chain, runs onConfirmation, removes entry on success
"""
import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, Mapping, Optional, Union

from tx_lifecycle.config import Settings, get_settings
from tx_lifecycle.exceptions import CriticalSideEffectFailure
from tx_lifecycle.schemas.context import SubmissionContext
from tx_lifecycle.schemas.definition import TransactionDefinition
from tx_lifecycle.schemas.execution import ExecutionResult
from tx_lifecycle.schemas.pending import PendingTransactionEntry
from tx_lifecycle.services.chain_query import ChainQueryService
from tx_lifecycle.services.extractors import DEFAULT_EXTRACTORS, OnChainExtractor
from tx_lifecycle.services.pending_store import PendingTransactionStore
from tx_lifecycle.services.registry import TransactionRegistry
from tx_lifecycle.services.side_effects import (
    ExecutionOptions,
    execute_on_submit,
    log_side_effect_request,
    log_side_effect_result,
)
from tx_lifecycle.services.watcher import (
    ConfirmationCallback,
    ConfirmationWatcher,
    ErrorCallback,
    RetryCallback,
)

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    """Outcome of ``register_submitted_transaction``."""
    execution: ExecutionResult
    entry: PendingTransactionEntry


class TransactionEngine:
    """
    Coordinates the off-chain data store with the eventually-confirmed ledger:
    onSubmit side effects at registration, onConfirmation side effects once
    the watcher sees the transaction confirmed.
    """

    def __init__(
        self,
        registry: TransactionRegistry,
        store: PendingTransactionStore,
        chain_query: ChainQueryService,
        settings: Optional[Settings] = None,
        options: Optional[ExecutionOptions] = None,
        extractors: Mapping[str, OnChainExtractor] = DEFAULT_EXTRACTORS,
    ):
        self.registry = registry
        self.store = store
        self.settings = settings or get_settings()
        self.options = options or ExecutionOptions(
            base_url=self.settings.side_effect_api_base_url,
            auth_token=self.settings.side_effect_api_token,
            throw_on_critical_failure=self.settings.throw_on_critical_failure,
            timeout_seconds=self.settings.side_effect_timeout_seconds,
            on_request=log_side_effect_request,
            on_result=log_side_effect_result,
        )
        self.watcher = ConfirmationWatcher(
            store, registry, chain_query, self.options, self.settings, extractors
        )
        self._watcher_task: Optional[asyncio.Task] = None

    async def load(self) -> int:
        """Rehydrate pending entries after a restart."""
        return await self.store.load()

    async def register_submitted_transaction(
        self,
        definition: Union[TransactionDefinition, str],
        context: SubmissionContext,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        auth_token: Optional[str] = None,
        throw_on_critical_failure: Optional[bool] = None,
    ) -> RegistrationResult:
        """Run onSubmit side effects, then start watching the transaction.

        In best-effort mode the entry is stored even when a critical onSubmit
        item failed; the result carries the critical errors. A transaction that
        is already being watched is returned as-is without re-running onSubmit.

        Raises:
            CriticalSideEffectFailure: In fail-fast mode; nothing is stored.
            ResolutionError: If a side effect path cannot be resolved.
            DefinitionNotFoundError: If ``definition`` names an unknown type.
        """
        if isinstance(definition, str):
            definition = self.registry.get(definition)

        existing = self.store.get(context.tx_hash)
        if existing is not None:
            logger.info(
                f"Transaction {context.tx_hash} already registered ({existing.status.value}), "
                f"skipping onSubmit"
            )
            return RegistrationResult(execution=ExecutionResult(), entry=existing)

        options = self.options
        if auth_token is not None:
            options = replace(options, auth_token=auth_token)
        if throw_on_critical_failure is not None:
            options = replace(options, throw_on_critical_failure=throw_on_critical_failure)

        logger.info(f"Registering submitted transaction {context.tx_hash} ({definition.tx_type})")
        try:
            result = await execute_on_submit(definition.on_submit, context, options)
        except CriticalSideEffectFailure as e:
            logger.error(f"onSubmit aborted for {context.tx_hash}: {e.message}")
            raise

        if not result.success:
            logger.warning(
                f"onSubmit for {context.tx_hash} finished with critical errors: "
                f"{result.critical_errors}"
            )

        entry = await self.store.register(PendingTransactionEntry(
            tx_hash=context.tx_hash,
            tx_type=definition.tx_type,
            entity_type=entity_type or definition.entity_type or definition.tx_type,
            entity_id=entity_id or context.tx_hash,
            max_retries=self.settings.pending_max_retries,
            max_confirmation_attempts=self.settings.pending_max_confirmation_attempts,
            context=context,
        ))
        return RegistrationResult(execution=result, entry=entry)

    def subscribe(
        self,
        on_confirmation: Optional[ConfirmationCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> Callable[[], None]:
        """Register watcher callbacks. Returns an unsubscribe function."""
        return self.watcher.subscribe(on_confirmation, on_error, on_retry)

    def list_pending(self, include_failed: bool = True) -> list[PendingTransactionEntry]:
        """Pending entries, oldest first."""
        return self.store.list(include_failed=include_failed)

    async def stop_watching(self, tx_hash: str) -> bool:
        """Stop tracking a transaction. Side effects already run are kept."""
        removed = await self.store.remove(tx_hash)
        if removed:
            logger.info(f"Stopped watching {tx_hash}")
        return removed

    async def start(self) -> None:
        """Run the confirmation watcher as a background task."""
        if self._watcher_task is not None and not self._watcher_task.done():
            return
        self.watcher.reset()
        self._watcher_task = asyncio.create_task(self.watcher.start())

    async def stop(self) -> None:
        """Stop the watcher and wait for the running tick to end."""
        await self.watcher.stop()
        if self._watcher_task is None:
            return
        try:
            await asyncio.wait_for(self._watcher_task, timeout=self.settings.side_effect_timeout_seconds)
        except asyncio.TimeoutError:
            self._watcher_task.cancel()
            try:
                await self._watcher_task
            except asyncio.CancelledError:
                pass
        self._watcher_task = None
