"""Durable key-value backends for the pending transaction store.

Backends only know about plain JSON-compatible dicts. Each ``set_all``
replaces the complete entry set.
"""
import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, Union

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from tx_lifecycle.models.pending_tx import PendingTxRecord, PendingTxStatus

logger = logging.getLogger(__name__)


class KeyValueBackend(Protocol):
    """Persistence contract backing the pending store."""

    async def get_all(self) -> list[dict[str, Any]]:
        ...

    async def set_all(self, entries: list[dict[str, Any]]) -> None:
        ...


class InMemoryBackend:
    """Process-local backend, used in tests and with ``pending_store_backend=memory``."""

    def __init__(self, entries: list[dict[str, Any]] = None):
        self._entries = [dict(e) for e in entries or []]
        self.write_count = 0

    async def get_all(self) -> list[dict[str, Any]]:
        return [dict(e) for e in self._entries]

    async def set_all(self, entries: list[dict[str, Any]]) -> None:
        self._entries = [dict(e) for e in entries]
        self.write_count += 1


class JsonFileBackend:
    """Single JSON file, rewritten atomically on every mutation."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def get_all(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read)

    async def set_all(self, entries: list[dict[str, Any]]) -> None:
        await asyncio.to_thread(self._write, entries)

    def _read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Pending store file {self.path} does not contain a list")
        return data

    def _write(self, entries: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entries, f, indent=2, default=str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class SqlAlchemyBackend:
    """One row per entry in ``pending_transactions``."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def get_all(self) -> list[dict[str, Any]]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(PendingTxRecord).order_by(PendingTxRecord.created_at)
            )
            return [record.entry for record in result.scalars().all()]

    async def set_all(self, entries: list[dict[str, Any]]) -> None:
        """Replace the stored set in one transaction."""
        async with self.session_maker() as session:
            async with session.begin():
                await session.execute(delete(PendingTxRecord))
                for entry in entries:
                    session.add(PendingTxRecord(
                        tx_hash=entry["tx_hash"],
                        status=PendingTxStatus(entry["status"]),
                        entry=entry,
                        created_at=datetime.fromisoformat(entry["created_at"]),
                    ))
        logger.debug(f"Persisted {len(entries)} pending transaction(s)")
