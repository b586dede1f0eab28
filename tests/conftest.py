"""Pytest configuration and fixtures."""
import asyncio
import json
from datetime import datetime
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio
from pydantic import BaseModel, ConfigDict

from tx_lifecycle.config import Settings
from tx_lifecycle.database import create_engine, create_session_maker, init_db
from tx_lifecycle.schemas.context import ChainTxStatus, SubmissionContext, TxAsset, TxOutput
from tx_lifecycle.schemas.definition import (
    BuildConfig,
    ProtocolSpec,
    SideEffect,
    TransactionDefinition,
    from_context,
)
from tx_lifecycle.schemas.pending import PendingTransactionEntry
from tx_lifecycle.services.backends import InMemoryBackend
from tx_lifecycle.services.pending_store import PendingTransactionStore
from tx_lifecycle.services.registry import TransactionRegistry
from tx_lifecycle.services.side_effects import ExecutionOptions

API_BASE_URL = "http://api.test"
TX_HASH = "a" * 64


class ItemParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item_id: str
    decision: Optional[str] = None


class ItemSideEffectParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    note: Optional[str] = None


ITEM_MINT = TransactionDefinition(
    tx_type="TEST_ITEM_MINT",
    role="tester",
    entity_type="access-token",
    protocol_spec=ProtocolSpec(protocol_id="test.item.mint"),
    build_config=BuildConfig(
        params_schema=ItemParams,
        side_effect_params_schema=ItemSideEffectParams,
        builder_endpoint="/tx/test/item/mint",
    ),
    on_submit=(
        SideEffect(
            label="Mark Item Pending",
            endpoint="/items/{item_id}/pending",
            path_params={"item_id": "build_inputs.item_id"},
            body={
                "tx_hash": from_context("tx_hash"),
                "note": from_context("build_inputs.note"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Item",
            endpoint="/items/confirm",
            body={
                "item_id": from_context("build_inputs.item_id"),
                "tx_hash": from_context("tx_hash"),
                "token_name": from_context("on_chain_data.token_name"),
            },
            critical=True,
        ),
        SideEffect(
            label="Notify Followers",
            endpoint="/notifications",
            body={"item_id": from_context("build_inputs.item_id")},
        ),
    ),
)


class ApiRecorder:
    """Mock side-effect API: records requests, answers 200 unless told to fail."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._failures: dict[str, list] = {}

    def fail(self, path: str, outcome: Any = 500, times: Optional[int] = None) -> None:
        """Answer ``path`` with a status code, or raise ``outcome`` if it is an exception."""
        self._failures[path] = [outcome, times]

    def recover(self, path: str) -> None:
        self._failures.pop(path, None)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        failure = self._failures.get(request.url.path)
        if failure is not None:
            outcome, remaining = failure
            if remaining is None or remaining > 0:
                if remaining is not None:
                    failure[1] = remaining - 1
                if isinstance(outcome, Exception):
                    raise outcome
                return httpx.Response(outcome, json={"error": "boom"})
        return httpx.Response(200, json={"ok": True})

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path and r.content]


class FakeChainQuery:
    """In-process chain query service."""

    def __init__(self):
        self.statuses: dict[str, ChainTxStatus] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def confirm(self, tx_hash: str, outputs: Optional[list[TxOutput]] = None, confirmations: int = 3) -> None:
        self.statuses[tx_hash] = ChainTxStatus(
            tx_hash=tx_hash,
            found=True,
            confirmed=True,
            confirmations=confirmations,
            block_height=1_000,
            block_time=1_700_000_000,
            outputs=outputs or [],
        )

    def seen(self, tx_hash: str) -> None:
        self.statuses[tx_hash] = ChainTxStatus(tx_hash=tx_hash, found=True)

    async def query(self, tx_hash: str) -> ChainTxStatus:
        self.calls.append(tx_hash)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if tx_hash in self.errors:
            raise self.errors[tx_hash]
        return self.statuses.get(tx_hash, ChainTxStatus(tx_hash=tx_hash))


def token_outputs(asset_name: str = "alice") -> list[TxOutput]:
    return [
        TxOutput(
            address="addr_test1qz0example",
            value="2000000",
            assets=[TxAsset(policy_id="p" * 56, asset_name=asset_name)],
        )
    ]


@pytest.fixture
def settings() -> Settings:
    """Settings tuned for fast tests."""
    return Settings(
        _env_file=None,
        side_effect_api_base_url=API_BASE_URL,
        side_effect_timeout_seconds=1.0,
        chain_query_base_url="http://koios.test",
        chain_query_timeout_seconds=1.0,
        chain_query_retry_min_wait_seconds=0,
        chain_query_retry_max_wait_seconds=0,
        watcher_poll_interval_seconds=0.01,
        pending_store_backend="memory",
    )


@pytest.fixture
def api() -> ApiRecorder:
    return ApiRecorder()


@pytest_asyncio.fixture
async def api_client(api: ApiRecorder):
    """HTTP client routed to the recorder."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(api.handler)) as client:
        yield client


@pytest.fixture
def options(api_client: httpx.AsyncClient) -> ExecutionOptions:
    return ExecutionOptions(base_url=API_BASE_URL, auth_token="service-token", client=api_client)


@pytest.fixture
def chain() -> FakeChainQuery:
    return FakeChainQuery()


@pytest.fixture
def registry() -> TransactionRegistry:
    return TransactionRegistry([ITEM_MINT])


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend) -> PendingTransactionStore:
    return PendingTransactionStore(backend)


@pytest.fixture
def make_context():
    """Factory for validated contexts of ``ITEM_MINT``."""

    def factory(
        tx_hash: str = TX_HASH,
        definition: TransactionDefinition = ITEM_MINT,
        tx_params: Optional[dict] = None,
        side_effect_params: Optional[dict] = None,
    ) -> SubmissionContext:
        return SubmissionContext.for_definition(
            definition,
            tx_hash=tx_hash,
            wallet_address="addr_test1qz0example",
            tx_params=tx_params if tx_params is not None else {"item_id": "item-1"},
            side_effect_params=side_effect_params,
        )

    return factory


@pytest.fixture
def make_entry(make_context):
    """Factory for pending entries of ``ITEM_MINT``."""

    def factory(
        tx_hash: str = TX_HASH,
        created_at: Optional[datetime] = None,
        **changes: Any,
    ) -> PendingTransactionEntry:
        fields = {
            "tx_hash": tx_hash,
            "tx_type": ITEM_MINT.tx_type,
            "entity_type": ITEM_MINT.entity_type,
            "entity_id": "item-1",
            "context": make_context(tx_hash),
        }
        if created_at is not None:
            fields["created_at"] = created_at
        fields.update(changes)
        return PendingTransactionEntry(**fields)

    return factory


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine so a second engine can reopen the same data."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'pending.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return create_session_maker(db_engine)


@pytest.fixture
def item_mint() -> TransactionDefinition:
    return ITEM_MINT


@pytest.fixture
def outputs() -> list[TxOutput]:
    """Confirmed outputs minting a token named ``alice``."""
    return token_outputs()
