"""Tests for the pending transaction store and its backends."""
import json
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from tx_lifecycle.models.pending_tx import PendingTxStatus
from tx_lifecycle.services.backends import InMemoryBackend, JsonFileBackend, SqlAlchemyBackend
from tx_lifecycle.services.pending_store import PendingTransactionStore

T0 = datetime(2026, 1, 1, 12, 0, 0)


class FailingBackend(InMemoryBackend):
    """Backend whose writes fail after being switched off."""

    def __init__(self):
        super().__init__()
        self.broken = False

    async def set_all(self, entries):
        if self.broken:
            raise OSError("disk full")
        await super().set_all(entries)


class TestPendingTransactionStore:
    """Store semantics on the in-memory backend."""

    @pytest.mark.asyncio
    async def test_register_and_get(self, store, make_entry):
        entry = make_entry()

        stored = await store.register(entry)

        assert stored == entry
        assert store.get(entry.tx_hash) == entry
        assert entry.tx_hash in store
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_register_is_idempotent(self, store, backend, make_entry):
        first = await store.register(make_entry(entity_id="first"))
        second = await store.register(make_entry(entity_id="second"))

        assert second is first
        assert second.entity_id == "first"
        assert len(store) == 1
        assert backend.write_count == 1

    @pytest.mark.asyncio
    async def test_list_is_oldest_first(self, store, make_entry):
        await store.register(make_entry("c" * 64, created_at=T0 + timedelta(minutes=2)))
        await store.register(make_entry("a" * 64, created_at=T0))
        await store.register(make_entry("b" * 64, created_at=T0 + timedelta(minutes=1)))

        assert [e.tx_hash[0] for e in store.list()] == ["a", "b", "c"]
        assert [e.tx_hash[0] for e in store.list_active(limit=2)] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failed_entries_are_listed_but_not_active(self, store, make_entry):
        await store.register(make_entry("a" * 64, created_at=T0))
        await store.register(make_entry("b" * 64, created_at=T0 + timedelta(minutes=1)))
        await store.mark_failed_permanent("a" * 64, "dropped")

        assert len(store.list()) == 2
        assert [e.tx_hash for e in store.list(include_failed=False)] == ["b" * 64]
        assert [e.tx_hash for e in store.list_active()] == ["b" * 64]
        counts = store.count_by_status()
        assert counts[PendingTxStatus.FAILED_PERMANENT] == 1
        assert counts[PendingTxStatus.PENDING] == 1
        assert counts[PendingTxStatus.CONFIRMING] == 0

    @pytest.mark.asyncio
    async def test_every_mutation_persists(self, store, backend, make_entry):
        entry = await store.register(make_entry())
        await store.mark_retry(entry.tx_hash, "timeout")
        await store.mark_confirming(entry.tx_hash, {"token_name": "alice"}, confirmations=2)
        await store.mark_needs_attention(entry.tx_hash, "confirm failed")
        await store.remove(entry.tx_hash)

        assert backend.write_count == 5
        assert await backend.get_all() == []

    @pytest.mark.asyncio
    async def test_transitions_survive_reload(self, store, backend, make_entry):
        entry = await store.register(make_entry())
        await store.mark_confirming(entry.tx_hash, {"token_name": "alice"}, confirmations=2)

        reloaded = PendingTransactionStore(backend)
        assert await reloaded.load() == 1

        restored = reloaded.get(entry.tx_hash)
        assert restored.status == PendingTxStatus.CONFIRMING
        assert restored.on_chain_data == {"token_name": "alice"}
        assert restored.context == entry.context

    @pytest.mark.asyncio
    async def test_remove(self, store, make_entry):
        entry = await store.register(make_entry())

        assert await store.remove(entry.tx_hash) is True
        assert await store.remove(entry.tx_hash) is False
        assert store.get(entry.tx_hash) is None

    @pytest.mark.asyncio
    async def test_transitions_on_removed_entry_are_noops(self, store):
        assert await store.mark_retry("f" * 64, "timeout") is None
        assert await store.mark_confirming("f" * 64, {}) is None
        assert await store.mark_needs_attention("f" * 64, "x") is None
        assert await store.mark_failed_permanent("f" * 64, "x") is None

    @pytest.mark.asyncio
    async def test_failed_write_leaves_state_unchanged(self, make_entry):
        backend = FailingBackend()
        store = PendingTransactionStore(backend)
        entry = await store.register(make_entry())
        backend.broken = True

        with pytest.raises(OSError):
            await store.mark_confirming(entry.tx_hash, {"token_name": "alice"})
        with pytest.raises(OSError):
            await store.register(make_entry("b" * 64))

        assert store.get(entry.tx_hash).status == PendingTxStatus.PENDING
        assert len(store) == 1


class TestJsonFileBackend:
    """Atomic file persistence."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        assert await JsonFileBackend(tmp_path / "pending.json").get_all() == []

    @pytest.mark.asyncio
    async def test_round_trip_through_store(self, tmp_path, make_entry):
        path = tmp_path / "state" / "pending.json"
        store = PendingTransactionStore(JsonFileBackend(path))
        entry = await store.register(make_entry())
        await store.mark_retry(entry.tx_hash, "timeout")

        data = json.loads(path.read_text())
        assert data[0]["tx_hash"] == entry.tx_hash
        assert data[0]["retry_count"] == 1
        assert list(path.parent.glob("*.tmp")) == []

        reloaded = PendingTransactionStore(JsonFileBackend(path))
        await reloaded.load()
        assert reloaded.get(entry.tx_hash).retry_count == 1
        assert reloaded.get(entry.tx_hash).context.build_inputs == {"item_id": "item-1"}

    @pytest.mark.asyncio
    async def test_rejects_non_list_file(self, tmp_path):
        path = tmp_path / "pending.json"
        path.write_text(json.dumps({"not": "a list"}))

        with pytest.raises(ValueError):
            await JsonFileBackend(path).get_all()


class TestSqlAlchemyBackend:
    """One row per entry in the pending_transactions table."""

    @pytest_asyncio.fixture
    async def sql_store(self, session_maker):
        store = PendingTransactionStore(SqlAlchemyBackend(session_maker))
        await store.load()
        return store

    @pytest.mark.asyncio
    async def test_persists_and_reloads(self, sql_store, session_maker, make_entry):
        await sql_store.register(make_entry("b" * 64, created_at=T0 + timedelta(minutes=1)))
        await sql_store.register(make_entry("a" * 64, created_at=T0))
        await sql_store.mark_confirming("a" * 64, {"token_name": "alice"}, confirmations=3)

        reloaded = PendingTransactionStore(SqlAlchemyBackend(session_maker))
        assert await reloaded.load() == 2

        entries = reloaded.list()
        assert [e.tx_hash for e in entries] == ["a" * 64, "b" * 64]
        assert entries[0].status == PendingTxStatus.CONFIRMING
        assert entries[0].on_chain_data == {"token_name": "alice"}

    @pytest.mark.asyncio
    async def test_remove_deletes_row(self, sql_store, session_maker, make_entry):
        entry = await sql_store.register(make_entry())
        await sql_store.remove(entry.tx_hash)

        assert await SqlAlchemyBackend(session_maker).get_all() == []
