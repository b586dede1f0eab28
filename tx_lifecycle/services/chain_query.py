"""Chain query collaborators.

The watcher only depends on ``ChainQueryService.query``; ``KoiosChainQuery``
is the default implementation against the Koios REST API.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tx_lifecycle.config import Settings, get_settings
from tx_lifecycle.exceptions import (
    ChainQueryError,
    ChainQueryNetworkError,
    ChainQueryServerError,
)
from tx_lifecycle.schemas.context import ChainTxStatus, TxAsset, TxOutput

logger = logging.getLogger(__name__)


class ChainQueryService(Protocol):
    """Looks up the on-chain status of a transaction.

    Implementations return ``found=False`` for unknown hashes and raise
    ``ChainQueryError`` only on transport failure or malformed responses.
    """

    async def query(self, tx_hash: str) -> ChainTxStatus:
        ...


class KoiosChainQuery:
    """Async Koios client for ``tx_status`` and ``tx_utxos``.

    Usage:
        async with KoiosChainQuery(settings) as chain:
            status = await chain.query(tx_hash)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize client.

        Args:
            settings: Application settings. Defaults to ``get_settings()``.
            client: Preconfigured HTTP client. When given, the caller owns it.
        """
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "KoiosChainQuery":
        """Enter async context."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.settings.chain_query_api_key:
                headers["Authorization"] = f"Bearer {self.settings.chain_query_api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.settings.chain_query_base_url,
                headers=headers,
                timeout=httpx.Timeout(self.settings.chain_query_timeout_seconds),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, ensuring it's initialized."""
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with KoiosChainQuery() as chain:'"
            )
        return self._client

    def _create_retry_decorator(self):
        """Create retry decorator with current settings."""
        return retry(
            retry=retry_if_exception_type((ChainQueryServerError, ChainQueryNetworkError)),
            stop=stop_after_attempt(self.settings.chain_query_retry_attempts),
            wait=wait_exponential(
                min=self.settings.chain_query_retry_min_wait_seconds,
                max=self.settings.chain_query_retry_max_wait_seconds,
            ),
            reraise=True,
        )

    async def _post(self, path: str, tx_hash: str) -> list[dict[str, Any]]:
        """POST ``{"_tx_hashes": [tx_hash]}`` and return the JSON array."""

        @self._create_retry_decorator()
        async def _do_request():
            try:
                response = await self.client.post(path, json={"_tx_hashes": [tx_hash]})
            except httpx.TimeoutException as e:
                raise ChainQueryNetworkError(f"Timeout: {e}")
            except httpx.HTTPError as e:
                raise ChainQueryNetworkError(f"Network error: {e}")

            if response.status_code >= 500:
                raise ChainQueryServerError(f"Koios {path} HTTP {response.status_code}", response.text)
            if not response.is_success:
                raise ChainQueryError(f"Koios {path} HTTP {response.status_code}", response.text)

            try:
                data = response.json()
            except ValueError:
                raise ChainQueryError(f"Koios {path} returned invalid JSON", response.text)
            if not isinstance(data, list):
                raise ChainQueryError(f"Koios {path} returned unexpected payload", data)
            return data

        return await _do_request()

    async def get_outputs(self, tx_hash: str) -> list[TxOutput]:
        """Outputs of a transaction; empty if the indexer has none yet."""
        data = await self._post("/tx_utxos", tx_hash)
        if not data or not data[0].get("outputs"):
            return []

        try:
            return [
                TxOutput(
                    address=output["payment_addr"]["bech32"],
                    output_index=output.get("tx_index", 0),
                    value=str(output.get("value", "0")),
                    datum_hash=output.get("datum_hash"),
                    inline_datum=(output.get("inline_datum") or {}).get("value"),
                    assets=[
                        TxAsset(
                            policy_id=asset["policy_id"],
                            asset_name=asset.get("asset_name") or "",
                            quantity=str(asset.get("quantity", "1")),
                        )
                        for asset in output.get("asset_list") or []
                    ],
                )
                for output in data[0]["outputs"]
            ]
        except (KeyError, TypeError) as e:
            raise ChainQueryError(f"Malformed tx_utxos response for {tx_hash}", str(e))

    async def query(self, tx_hash: str) -> ChainTxStatus:
        """Status of a transaction, with outputs once confirmed."""
        data = await self._post("/tx_status", tx_hash)

        info = next((row for row in data if row.get("tx_hash") == tx_hash), None)
        confirmations = info.get("num_confirmations") if info else None
        if confirmations is None:
            logger.debug(f"Transaction {tx_hash} not found on chain yet")
            return ChainTxStatus(tx_hash=tx_hash)

        status = ChainTxStatus(
            tx_hash=tx_hash,
            found=True,
            confirmed=confirmations > 0,
            confirmations=confirmations,
            block_height=info.get("block_height"),
            block_time=info.get("block_time"),
        )
        if status.confirmed:
            status.outputs = await self.get_outputs(tx_hash)
        return status
