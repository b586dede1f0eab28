"""Confirmation watcher.

Background service that polls the chain for pending transactions and
drives their onConfirmation side effects to completion:

    pending --(found confirmed)--> confirming --(all critical succeed)--> removed
    confirming --(critical failure)--> needsAttention --(retry next tick)--> removed
    pending --(poll transport errors >= max_retries)--> failedPermanent

needsAttention entries re-run side effects without re-polling the chain, so
every onConfirmation side effect must be an idempotent upsert downstream.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

from tx_lifecycle.config import Settings, get_settings
from tx_lifecycle.exceptions import (
    ChainQueryError,
    ChainQueryNetworkError,
    CriticalSideEffectFailure,
    DefinitionNotFoundError,
    ResolutionError,
    TxLifecycleError,
)
from tx_lifecycle.models.pending_tx import PendingTxStatus
from tx_lifecycle.schemas.context import ChainTxStatus
from tx_lifecycle.schemas.definition import TransactionDefinition
from tx_lifecycle.schemas.execution import ExecutionResult
from tx_lifecycle.schemas.pending import PendingTransactionEntry
from tx_lifecycle.services.chain_query import ChainQueryService
from tx_lifecycle.services.extractors import (
    DEFAULT_EXTRACTORS,
    OnChainExtractor,
    extract_on_chain_data,
)
from tx_lifecycle.services.pending_store import PendingTransactionStore
from tx_lifecycle.services.registry import TransactionRegistry
from tx_lifecycle.services.side_effects import ExecutionOptions, execute_on_confirmation
from tx_lifecycle.services.transitions import is_expired

logger = logging.getLogger(__name__)

ConfirmationCallback = Callable[[PendingTransactionEntry, ExecutionResult], Any]
ErrorCallback = Callable[[PendingTransactionEntry, TxLifecycleError], Any]
RetryCallback = Callable[[PendingTransactionEntry, TxLifecycleError], Any]


@dataclass
class WatcherSubscription:
    """Callbacks registered through ``subscribe``. Each may be sync or async."""
    on_confirmation: Optional[ConfirmationCallback] = None
    on_error: Optional[ErrorCallback] = None
    on_retry: Optional[RetryCallback] = None


class ConfirmationWatcher:
    """Periodic task processing a bounded, oldest-first batch of entries per tick."""

    def __init__(
        self,
        store: PendingTransactionStore,
        registry: TransactionRegistry,
        chain_query: ChainQueryService,
        options: ExecutionOptions,
        settings: Optional[Settings] = None,
        extractors: Mapping[str, OnChainExtractor] = DEFAULT_EXTRACTORS,
    ):
        self.store = store
        self.registry = registry
        self.chain_query = chain_query
        # Critical failures become needsAttention entries, never exceptions
        self.options = replace(options, throw_on_critical_failure=False)
        self.settings = settings or get_settings()
        self.extractors = extractors

        self.poll_interval = self.settings.watcher_poll_interval_seconds
        self.batch_size = self.settings.watcher_batch_size
        self.max_concurrency = self.settings.watcher_max_concurrency
        self.query_timeout = self.settings.chain_query_timeout_seconds
        self.not_found_timeout = self.settings.pending_not_found_timeout_seconds

        self._subscriptions: list[WatcherSubscription] = []
        self._running = False
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(
        self,
        on_confirmation: Optional[ConfirmationCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> Callable[[], None]:
        """Register callbacks. Returns a function that removes them again."""
        subscription = WatcherSubscription(on_confirmation, on_error, on_retry)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    async def _notify(self, kind: str, entry: PendingTransactionEntry, payload: Any) -> None:
        for subscription in list(self._subscriptions):
            callback = getattr(subscription, kind)
            if callback is None:
                continue
            try:
                outcome = callback(entry, payload)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Watcher {kind} callback failed for {entry.tx_hash}: {e}", exc_info=True)

    def reset(self) -> None:
        """Discard a stop request that was made while no loop was running."""
        self._stop_event.clear()

    async def start(self):
        """Run ticks until ``stop`` is called.

        A ``stop`` issued before the loop begins ends it immediately.
        """
        if self._stop_event.is_set():
            self._stop_event.clear()
            logger.info("Confirmation watcher stopped before its first tick")
            return

        self._running = True
        logger.info(
            f"Confirmation watcher started (interval {self.poll_interval}s, "
            f"batch {self.batch_size}, concurrency {self.max_concurrency})"
        )

        while self._running:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Confirmation watcher error: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        self._stop_event.clear()

    async def stop(self):
        """Stop the watcher after the current tick."""
        self._running = False
        self._stop_event.set()
        logger.info("Confirmation watcher stopped")

    async def tick(self) -> int:
        """Process one batch. Returns the number of entries looked at."""
        async with self._tick_lock:
            entries = self.store.list_active(limit=self.batch_size)
            if not entries:
                return 0

            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def guarded(entry: PendingTransactionEntry):
                async with semaphore:
                    await self.process_entry(entry)

            outcomes = await asyncio.gather(
                *(guarded(entry) for entry in entries), return_exceptions=True
            )
            for entry, outcome in zip(entries, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(
                        f"Error processing pending transaction {entry.tx_hash}: {outcome}",
                        exc_info=outcome,
                    )
            return len(entries)

    async def process_entry(self, entry: PendingTransactionEntry) -> None:
        """Advance one entry by at most one step of its state machine."""
        try:
            definition = self.registry.get(entry.tx_type)
        except DefinitionNotFoundError as e:
            await self._fail_permanently(entry, e)
            return

        if entry.needs_chain_poll:
            entry = await self._poll(entry)
            if entry is None or entry.status != PendingTxStatus.CONFIRMING:
                return

        await self._run_confirmation(entry, definition)

    async def _poll(self, entry: PendingTransactionEntry) -> Optional[PendingTransactionEntry]:
        """Query chain status; returns the entry as confirming once seen confirmed."""
        try:
            status = await asyncio.wait_for(
                self.chain_query.query(entry.tx_hash), timeout=self.query_timeout
            )
        except asyncio.TimeoutError:
            await self._record_poll_error(
                entry, ChainQueryNetworkError(f"Chain query timed out after {self.query_timeout}s")
            )
            return None
        except ChainQueryError as e:
            await self._record_poll_error(entry, e)
            return None
        except Exception as e:
            # Any other collaborator failure is treated as a transport error
            await self._record_poll_error(entry, ChainQueryNetworkError(f"{type(e).__name__}: {e}"))
            return None

        if not status.found:
            if is_expired(entry, self.not_found_timeout):
                await self._fail_permanently(
                    entry,
                    ChainQueryError(
                        f"Transaction not found on chain after {self.not_found_timeout}s"
                    ),
                )
            else:
                logger.debug(f"Transaction {entry.tx_hash} not found on chain yet")
            return None

        if not status.confirmed:
            logger.debug(f"Transaction {entry.tx_hash} seen but not confirmed yet")
            return None

        on_chain_data = self._build_on_chain_data(entry, status)
        updated = await self.store.mark_confirming(entry.tx_hash, on_chain_data, status.confirmations)
        if updated is not None:
            logger.info(
                f"Transaction {entry.tx_hash} confirmed on chain "
                f"({status.confirmations} confirmations)"
            )
        return updated

    def _build_on_chain_data(self, entry: PendingTransactionEntry, status: ChainTxStatus) -> dict[str, Any]:
        data = extract_on_chain_data(entry.entity_type, status.outputs, self.extractors)
        data.update({
            "tx_hash": status.tx_hash,
            "confirmations": status.confirmations,
            "block_height": status.block_height,
            "block_time": status.block_time,
        })
        return data

    async def _record_poll_error(self, entry: PendingTransactionEntry, error: ChainQueryError) -> None:
        logger.warning(f"Chain query failed for {entry.tx_hash}: {error}")
        updated = await self.store.mark_retry(entry.tx_hash, str(error))
        if updated is None:
            return
        if updated.status == PendingTxStatus.FAILED_PERMANENT:
            logger.error(
                f"Transaction {entry.tx_hash} failed permanently after "
                f"{updated.retry_count} chain query errors"
            )
            await self._notify("on_error", updated, error)
        else:
            await self._notify("on_retry", updated, error)

    async def _fail_permanently(self, entry: PendingTransactionEntry, error: TxLifecycleError) -> None:
        logger.error(f"Transaction {entry.tx_hash} failed permanently: {error}")
        updated = await self.store.mark_failed_permanent(entry.tx_hash, str(error))
        if updated is not None:
            await self._notify("on_error", updated, error)

    async def _run_confirmation(
        self,
        entry: PendingTransactionEntry,
        definition: TransactionDefinition,
    ) -> None:
        context = entry.context.for_confirmation(entry.on_chain_data or {})
        try:
            result = await execute_on_confirmation(definition.on_confirmation, context, self.options)
        except ResolutionError as e:
            await self._fail_permanently(entry, e)
            return

        if result.success:
            await self.store.remove(entry.tx_hash)
            logger.info(f"Transaction {entry.tx_hash} fully processed ({result.outcome.value})")
            await self._notify("on_confirmation", entry, result)
            return

        error = CriticalSideEffectFailure(
            "; ".join(result.critical_errors), result.critical_errors, result
        )
        updated = await self.store.mark_needs_attention(entry.tx_hash, str(error.message))
        if updated is None:
            return
        logger.error(
            f"Transaction {entry.tx_hash} needs attention "
            f"(attempt {updated.confirmation_attempts}/{updated.max_confirmation_attempts}): {error.message}"
        )
        await self._notify("on_error", updated, error)
