"""Submission context and chain status schemas."""
from datetime import datetime
from typing import Any, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from tx_lifecycle.schemas.definition import TransactionDefinition


class SubmissionContext(BaseModel):
    """Runtime bundle every side-effect value is resolved against.

    ``build_inputs`` is the merge of ``tx_params`` (builder API inputs) and
    ``side_effect_params``; definitions may address any of the three.
    ``on_chain_data`` is only set in the confirmation context.
    """
    tx_hash: str = Field(..., min_length=1)
    wallet_address: str
    build_inputs: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    tx_params: dict[str, Any] = Field(default_factory=dict)
    side_effect_params: dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
    on_chain_data: Optional[dict[str, Any]] = None

    @classmethod
    def for_definition(
        cls,
        definition: "TransactionDefinition",
        tx_hash: str,
        wallet_address: str,
        tx_params: dict[str, Any],
        side_effect_params: Optional[dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> "SubmissionContext":
        """Build a context whose inputs have been validated against the definition."""
        tx, se, merged = definition.validate_inputs(tx_params, side_effect_params)
        return cls(
            tx_hash=tx_hash,
            wallet_address=wallet_address,
            build_inputs=merged,
            tx_params=tx,
            side_effect_params=se,
            user_id=user_id,
        )

    def for_confirmation(self, on_chain_data: dict[str, Any]) -> "SubmissionContext":
        """Copy of this context carrying data extracted from the confirmed tx."""
        return self.model_copy(
            update={"on_chain_data": on_chain_data, "timestamp": datetime.utcnow()}
        )


class TxAsset(BaseModel):
    """Native asset attached to a transaction output."""
    policy_id: str
    asset_name: str
    quantity: str = "1"


class TxOutput(BaseModel):
    """Raw transaction output as reported by the chain indexer."""
    address: str
    output_index: int = 0
    value: str = "0"  # lovelace
    datum_hash: Optional[str] = None
    inline_datum: Any = None
    assets: list[TxAsset] = Field(default_factory=list)


class ChainTxStatus(BaseModel):
    """Result of a chain status query for one transaction hash."""
    tx_hash: str
    found: bool = False
    confirmed: bool = False
    confirmations: int = 0
    block_height: Optional[int] = None
    block_time: Optional[int] = None
    outputs: list[TxOutput] = Field(default_factory=list)
