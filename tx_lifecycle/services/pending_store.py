"""Pending transaction store.

Single-writer registry of submitted-but-unconfirmed transactions. Every
mutation runs under one ``asyncio.Lock`` and persists the complete entry set
to the backend before returning, so a restart never loses a "seen confirmed"
transition.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from tx_lifecycle.models.pending_tx import PendingTxStatus
from tx_lifecycle.schemas.pending import PendingTransactionEntry
from tx_lifecycle.services import transitions
from tx_lifecycle.services.backends import KeyValueBackend

logger = logging.getLogger(__name__)


class PendingTransactionStore:
    """Keyed by ``tx_hash``; ordered oldest-first on listing."""

    def __init__(self, backend: KeyValueBackend):
        self.backend = backend
        self._entries: dict[str, PendingTransactionEntry] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    async def load(self) -> int:
        """Rehydrate entries from the backend. Returns the number loaded."""
        async with self._lock:
            raw_entries = await self.backend.get_all()
            self._entries = {}
            for raw in raw_entries:
                entry = PendingTransactionEntry.model_validate(raw)
                self._entries[entry.tx_hash] = entry
            self._loaded = True

        logger.info(f"Loaded {len(self._entries)} pending transaction(s) from storage")
        return len(self._entries)

    async def _commit(self, entries: dict[str, PendingTransactionEntry]) -> None:
        """Persist a candidate entry set, then make it current."""
        ordered = sorted(entries.values(), key=lambda e: e.created_at)
        await self.backend.set_all([entry.model_dump(mode="json") for entry in ordered])
        self._entries = entries

    def _ordered(self) -> list[PendingTransactionEntry]:
        return sorted(self._entries.values(), key=lambda e: e.created_at)

    async def register(self, entry: PendingTransactionEntry) -> PendingTransactionEntry:
        """Insert an entry; re-registering a known hash returns the stored one."""
        async with self._lock:
            existing = self._entries.get(entry.tx_hash)
            if existing is not None:
                logger.info(f"Transaction {entry.tx_hash} already pending, ignoring re-registration")
                return existing

            await self._commit({**self._entries, entry.tx_hash: entry})

        logger.info(f"Registered pending transaction {entry.tx_hash} ({entry.tx_type})")
        return entry

    def get(self, tx_hash: str) -> Optional[PendingTransactionEntry]:
        return self._entries.get(tx_hash)

    def list(self, include_failed: bool = True) -> list[PendingTransactionEntry]:
        """All entries, oldest first."""
        entries = self._ordered()
        if include_failed:
            return entries
        return [e for e in entries if e.is_active]

    def list_active(self, limit: Optional[int] = None) -> list[PendingTransactionEntry]:
        """Entries the watcher still works on, oldest first."""
        entries = [e for e in self._ordered() if e.is_active]
        return entries[:limit] if limit is not None else entries

    async def remove(self, tx_hash: str) -> bool:
        """Delete an entry. Returns False if it was not present."""
        async with self._lock:
            if tx_hash not in self._entries:
                return False
            await self._commit({k: v for k, v in self._entries.items() if k != tx_hash})

        logger.info(f"Removed pending transaction {tx_hash}")
        return True

    async def _apply(
        self,
        tx_hash: str,
        change: Callable[[PendingTransactionEntry], PendingTransactionEntry],
    ) -> Optional[PendingTransactionEntry]:
        """Apply a pure transition to the current stored entry and persist it.

        Returns None if the entry was removed concurrently.
        """
        async with self._lock:
            current = self._entries.get(tx_hash)
            if current is None:
                return None
            updated = change(current)
            await self._commit({**self._entries, tx_hash: updated})

        if updated.status != current.status:
            logger.info(
                f"Pending transaction {tx_hash}: {current.status.value} -> {updated.status.value}"
            )
        return updated

    async def mark_retry(self, tx_hash: str, error: str) -> Optional[PendingTransactionEntry]:
        return await self._apply(tx_hash, lambda e: transitions.mark_retry(e, error))

    async def mark_confirming(
        self,
        tx_hash: str,
        on_chain_data: dict,
        confirmations: int = 0,
    ) -> Optional[PendingTransactionEntry]:
        return await self._apply(
            tx_hash, lambda e: transitions.mark_confirming(e, on_chain_data, confirmations)
        )

    async def mark_needs_attention(self, tx_hash: str, error: str) -> Optional[PendingTransactionEntry]:
        return await self._apply(tx_hash, lambda e: transitions.mark_needs_attention(e, error))

    async def mark_failed_permanent(self, tx_hash: str, reason: str) -> Optional[PendingTransactionEntry]:
        return await self._apply(tx_hash, lambda e: transitions.mark_failed_permanent(e, reason))

    def count_by_status(self) -> dict[PendingTxStatus, int]:
        counts = {status: 0 for status in PendingTxStatus}
        for entry in self._entries.values():
            counts[entry.status] += 1
        return counts

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tx_hash: str) -> bool:
        return tx_hash in self._entries
