"""Global transactions: protocol entry points available to every user."""
from pydantic import Field

from tx_lifecycle.definitions.common import (
    Alias,
    TxParams,
    docs,
    protocol_spec,
    ui,
)
from tx_lifecycle.schemas.definition import (
    AdditionalCost,
    BuildConfig,
    SideEffect,
    TransactionCost,
    TransactionDefinition,
    from_context,
    literal,
)

ACCESS_TOKEN_MINT_ID = "global.general.access-token.mint"


class AccessTokenMintParams(TxParams):
    initiator_data: str = Field(..., min_length=1)  # Bech32 wallet address
    alias: Alias


# Entry point for all protocol participation; alias uniqueness is enforced on-chain.
GLOBAL_GENERAL_ACCESS_TOKEN_MINT = TransactionDefinition(
    tx_type="GLOBAL_GENERAL_ACCESS_TOKEN_MINT",
    role="general",
    entity_type="access-token",
    protocol_spec=protocol_spec(ACCESS_TOKEN_MINT_ID),
    build_config=BuildConfig(
        params_schema=AccessTokenMintParams,
        builder_endpoint="/v2/tx/global/general/access-token/mint",
        estimated_cost=TransactionCost(
            tx_fee=200_000,
            min_deposit=2_000_000,
            additional_costs=(AdditionalCost(label="Service fee", amount=5_000_000),),
        ),
    ),
    on_submit=(
        SideEffect(
            label="Set Pending Transaction",
            endpoint="/user/unconfirmed-tx",
            body={"tx_hash": from_context("tx_hash")},
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Update Access Token Alias",
            endpoint="/user/access-token-alias",
            body={"access_token_alias": from_context("tx_params.alias")},
            critical=True,
        ),
        SideEffect(
            label="Clear Pending Transaction",
            endpoint="/user/unconfirmed-tx",
            body={"tx_hash": literal(None)},
        ),
    ),
    ui=ui(
        ACCESS_TOKEN_MINT_ID,
        button_text="Mint Access Token",
        title="Mint Access Token",
        description=(
            "Mint your access token to participate in the Andamio protocol. This is "
            "required before you can enroll in courses or perform any other actions."
        ),
        success_info="Access token minted successfully!",
    ),
    docs=docs(ACCESS_TOKEN_MINT_ID),
)

DEFINITIONS = (GLOBAL_GENERAL_ACCESS_TOKEN_MINT,)
