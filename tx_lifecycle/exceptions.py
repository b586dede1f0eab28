"""Error taxonomy for the transaction lifecycle engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .schemas.execution import ExecutionResult


class TxLifecycleError(Exception):
    """Base exception for transaction lifecycle errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class DefinitionNotFoundError(TxLifecycleError):
    """No transaction definition registered under the requested type."""

    pass


class DefinitionValidationError(TxLifecycleError):
    """A definition or its build inputs violate the registration contract."""

    pass


class ResolutionError(TxLifecycleError):
    """A declared context path could not be resolved.

    Always raised, regardless of the side effect's critical flag: an
    unresolvable path parameter means the definition itself is wrong.
    """

    pass


class SideEffectError(TxLifecycleError):
    """Base class for side-effect call failures."""

    pass


class SideEffectNetworkError(SideEffectError):
    """Transport failure or timeout while calling the side-effect target."""

    pass


class SideEffectHTTPError(SideEffectError):
    """Side-effect target answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int, details: Any = None):
        super().__init__(message, details)
        self.status_code = status_code


class ChainQueryError(TxLifecycleError):
    """Transport failure or malformed response while polling chain status."""

    pass


class ChainQueryNetworkError(ChainQueryError):
    """Chain indexer unreachable or timed out."""

    pass


class ChainQueryServerError(ChainQueryError):
    """Chain indexer answered with a 5xx status."""

    pass


class CriticalSideEffectFailure(TxLifecycleError):
    """One or more critical side effects failed."""

    def __init__(
        self,
        message: str,
        critical_errors: list[str],
        result: "ExecutionResult | None" = None,
    ):
        super().__init__(message, critical_errors)
        self.critical_errors = critical_errors
        self.result = result


class InvalidTransitionError(TxLifecycleError):
    """Pending transaction status transition is not allowed."""

    pass
