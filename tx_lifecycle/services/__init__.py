"""Business logic services."""
from tx_lifecycle.services.resolver import (
    MISSING,
    check_side_effect_condition,
    construct_request_body,
    get_value_from_path,
    resolve_path_params,
    validate_side_effect,
)
from tx_lifecycle.services.side_effects import (
    ExecutionOptions,
    execute_on_confirmation,
    execute_on_submit,
    execute_side_effect,
    get_executable_side_effects,
    log_side_effect_request,
    log_side_effect_result,
    should_execute_side_effect,
)
from tx_lifecycle.services.registry import TransactionRegistry, validate_definition
from tx_lifecycle.services.backends import (
    InMemoryBackend,
    JsonFileBackend,
    KeyValueBackend,
    SqlAlchemyBackend,
)
from tx_lifecycle.services.pending_store import PendingTransactionStore
from tx_lifecycle.services.chain_query import ChainQueryService, KoiosChainQuery
from tx_lifecycle.services.watcher import ConfirmationWatcher
from tx_lifecycle.services.engine import RegistrationResult, TransactionEngine
