"""Transaction definition registry."""
import logging
from collections import Counter
from typing import Any, Iterable, Optional

from tx_lifecycle.exceptions import DefinitionNotFoundError, DefinitionValidationError
from tx_lifecycle.schemas.definition import SideEffect, TransactionDefinition

logger = logging.getLogger(__name__)


def _check_side_effect(tx_type: str, phase: str, side_effect: SideEffect) -> list[str]:
    """Registration-time checks for one side effect."""
    problems = []
    if not side_effect.is_implemented:
        return problems

    placeholders = side_effect.placeholders
    declared = set(side_effect.path_params)

    for name in sorted(declared - placeholders):
        problems.append(
            f"{tx_type}.{phase}['{side_effect.label}']: path param '{name}' "
            f"is not in endpoint '{side_effect.endpoint}'"
        )
    for name in sorted(placeholders - declared):
        problems.append(
            f"{tx_type}.{phase}['{side_effect.label}']: placeholder '{{{name}}}' "
            f"has no path param"
        )
    if side_effect.condition is not None and not side_effect.condition.path:
        problems.append(f"{tx_type}.{phase}['{side_effect.label}']: empty condition path")
    return problems


def validate_definition(definition: TransactionDefinition) -> None:
    """Check the static contract of a definition.

    Raises:
        DefinitionValidationError: If path params and endpoint placeholders
            disagree or a parameter schema does not compile.
    """
    problems = []
    for side_effect in definition.on_submit:
        problems.extend(_check_side_effect(definition.tx_type, "on_submit", side_effect))
    for side_effect in definition.on_confirmation:
        problems.extend(_check_side_effect(definition.tx_type, "on_confirmation", side_effect))

    for schema in (
        definition.build_config.params_schema,
        definition.build_config.side_effect_params_schema,
    ):
        try:
            schema.model_json_schema()
        except Exception as e:
            problems.append(f"{definition.tx_type}: schema {schema.__name__} does not compile: {e}")

    if problems:
        raise DefinitionValidationError(
            f"Invalid transaction definition {definition.tx_type}", problems
        )


class TransactionRegistry:
    """Immutable-after-startup catalog of transaction definitions, keyed by tx_type."""

    def __init__(self, definitions: Iterable[TransactionDefinition] = ()):
        self._definitions: dict[str, TransactionDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: TransactionDefinition) -> None:
        """Validate and add a definition. Intended for startup only."""
        if definition.tx_type in self._definitions:
            raise DefinitionValidationError(
                f"Duplicate transaction type {definition.tx_type}"
            )
        validate_definition(definition)
        self._definitions[definition.tx_type] = definition
        logger.debug(f"Registered transaction definition {definition.tx_type}")

    def get(self, tx_type: str) -> TransactionDefinition:
        """Get a definition by type.

        Raises:
            DefinitionNotFoundError: If no definition is registered under ``tx_type``.
        """
        definition = self._definitions.get(tx_type)
        if definition is None:
            raise DefinitionNotFoundError(f"Transaction definition not found: {tx_type}")
        return definition

    def has(self, tx_type: str) -> bool:
        return tx_type in self._definitions

    def all(self) -> list[TransactionDefinition]:
        return list(self._definitions.values())

    def by_role(self, role: str) -> list[TransactionDefinition]:
        return [d for d in self._definitions.values() if d.role == role]

    def by_version(self, version: str) -> list[TransactionDefinition]:
        return [d for d in self._definitions.values() if d.protocol_spec.version == version]

    def versions(self) -> list[str]:
        return sorted({d.protocol_spec.version for d in self._definitions.values()})

    def count_by_version(self) -> dict[str, int]:
        return dict(Counter(d.protocol_spec.version for d in self._definitions.values()))

    def validate_inputs(
        self,
        tx_type: str,
        tx_params: dict[str, Any],
        side_effect_params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Validate build inputs for a type and return the merged build inputs."""
        _, _, merged = self.get(tx_type).validate_inputs(tx_params, side_effect_params)
        return merged

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, tx_type: str) -> bool:
        return self.has(tx_type)
