"""Shared parameter types and builders for the built-in catalog."""
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from tx_lifecycle.schemas.definition import (
    Documentation,
    ProtocolSpec,
    TransactionCost,
    UIMetadata,
)

DOCS_BASE_URL = "https://docs.andamio.io/docs/protocol/v2/transactions"

ACCESS_TOKEN = "global-state.access-token-user"

# Cardano primitives as exchanged with the builder API
Alias = Annotated[str, Field(min_length=1, max_length=31)]
PolicyId = Annotated[str, Field(min_length=56, max_length=56)]
Hash64 = Annotated[str, Field(min_length=64, max_length=64)]
ShortText140 = Annotated[str, Field(max_length=140)]


class InitiatorData(BaseModel):
    """Optional wallet data forwarded to the builder."""
    used_addresses: list[str]
    change_address: str


class TxParams(BaseModel):
    """Base for builder API inputs; unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")


class SideEffectParams(BaseModel):
    """Base for side-effect-only inputs."""
    model_config = ConfigDict(extra="forbid")


class InitiatedTxParams(TxParams):
    alias: Alias
    initiator_data: Optional[InitiatorData] = None


def protocol_spec(protocol_id: str, *capabilities: str) -> ProtocolSpec:
    return ProtocolSpec(protocol_id=protocol_id, version="v2", required_capabilities=capabilities)


def cost(tx_fee: int, min_deposit: Optional[int] = None) -> TransactionCost:
    return TransactionCost(tx_fee=tx_fee, min_deposit=min_deposit)


def docs(protocol_id: str, api_docs: Optional[str] = None) -> Documentation:
    return Documentation(
        protocol_docs=f"{DOCS_BASE_URL}/{protocol_id.replace('.', '/')}",
        api_docs=api_docs,
    )


def ui(
    protocol_id: str,
    button_text: str,
    title: str,
    description: str,
    success_info: str,
) -> UIMetadata:
    return UIMetadata(
        button_text=button_text,
        title=title,
        description=(description,),
        footer_link=f"{DOCS_BASE_URL}/{protocol_id.replace('.', '/')}",
        footer_link_text="Tx Documentation",
        success_info=success_info,
    )
