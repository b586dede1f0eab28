"""Pure extraction of on-chain data from transaction outputs.

An extractor maps raw outputs to the ``on_chain_data`` dict that
onConfirmation side effects address as ``on_chain_data.<key>``.
"""
from typing import Any, Callable, Mapping, Optional, Sequence

from tx_lifecycle.schemas.context import TxOutput

OnChainExtractor = Callable[[Sequence[TxOutput]], dict[str, Any]]


def extract_minted_assets(outputs: Sequence[TxOutput]) -> list[dict[str, str]]:
    """Every native asset found in the outputs, in output order."""
    return [
        {"policy_id": asset.policy_id, "asset_name": asset.asset_name, "quantity": asset.quantity}
        for output in outputs
        for asset in output.assets
    ]


def extract_first_asset_name(
    outputs: Sequence[TxOutput],
    policy_id: Optional[str] = None,
) -> Optional[str]:
    """Name of the first asset, optionally restricted to one policy."""
    for output in outputs:
        for asset in output.assets:
            if policy_id is None or asset.policy_id == policy_id:
                return asset.asset_name
    return None


def extract_inline_datum(outputs: Sequence[TxOutput]) -> Any:
    """First inline datum carried by any output."""
    for output in outputs:
        if output.inline_datum is not None:
            return output.inline_datum
    return None


def extract_outputs_summary(outputs: Sequence[TxOutput]) -> dict[str, Any]:
    """Entity-agnostic view used when no specific extractor is registered."""
    return {
        "outputs": [
            {
                "address": o.address,
                "value": o.value,
                "datum_hash": o.datum_hash,
                "datum": o.inline_datum,
            }
            for o in outputs
        ],
        "mints": extract_minted_assets(outputs),
    }


def extract_module_data(outputs: Sequence[TxOutput]) -> dict[str, Any]:
    data = extract_outputs_summary(outputs)
    data["module_hash"] = extract_first_asset_name(outputs)
    return data


def extract_commitment_data(outputs: Sequence[TxOutput]) -> dict[str, Any]:
    data = extract_outputs_summary(outputs)
    data["network_evidence_hash"] = next(
        (o.datum_hash for o in outputs if o.datum_hash), None
    )
    data["datum"] = extract_inline_datum(outputs)
    return data


def extract_token_data(outputs: Sequence[TxOutput]) -> dict[str, Any]:
    data = extract_outputs_summary(outputs)
    data["token_name"] = extract_first_asset_name(outputs)
    return data


DEFAULT_EXTRACTORS: dict[str, OnChainExtractor] = {
    "module": extract_module_data,
    "assignment-commitment": extract_commitment_data,
    "task-commitment": extract_commitment_data,
    "access-token": extract_token_data,
    "course": extract_token_data,
    "project": extract_token_data,
}


def extract_on_chain_data(
    entity_type: str,
    outputs: Sequence[TxOutput],
    extractors: Mapping[str, OnChainExtractor] = DEFAULT_EXTRACTORS,
) -> dict[str, Any]:
    """Run the extractor registered for ``entity_type``, falling back to the summary."""
    extractor = extractors.get(entity_type, extract_outputs_summary)
    return extractor(outputs)
