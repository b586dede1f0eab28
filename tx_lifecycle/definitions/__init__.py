"""Built-in v2 transaction definitions."""
from tx_lifecycle.definitions import course, global_system, instance, project
from tx_lifecycle.schemas.definition import TransactionDefinition
from tx_lifecycle.services.registry import TransactionRegistry

ALL_DEFINITIONS: tuple[TransactionDefinition, ...] = (
    *global_system.DEFINITIONS,
    *instance.DEFINITIONS,
    *course.DEFINITIONS,
    *project.DEFINITIONS,
)


def default_registry() -> TransactionRegistry:
    """Registry holding every built-in definition, validated."""
    return TransactionRegistry(ALL_DEFINITIONS)
