"""Side-effect execution engine.

Runs an ordered list of declarative side effects against a submission
context. Items run strictly one after another; later items may depend on
state written by earlier ones. Skips (unmatched condition, unimplemented
endpoint) are successes without a network call. Only ``critical`` failures
affect overall success.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Callable, Optional, Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from tx_lifecycle.exceptions import (
    CriticalSideEffectFailure,
    SideEffectError,
    SideEffectHTTPError,
    SideEffectNetworkError,
)
from tx_lifecycle.schemas.context import SubmissionContext
from tx_lifecycle.schemas.definition import SideEffect
from tx_lifecycle.schemas.execution import (
    ExecutionPhase,
    ExecutionResult,
    SideEffectExecutionResult,
    SideEffectRequestLog,
    SideEffectResultLog,
    SkipReason,
)
from tx_lifecycle.services.resolver import (
    check_side_effect_condition,
    construct_request_body,
    resolve_path_params,
)

logger = logging.getLogger(__name__)


@dataclass
class ExecutionOptions:
    """Per-call configuration for side-effect execution."""
    base_url: str
    auth_token: str = ""
    throw_on_critical_failure: bool = False
    timeout_seconds: float = 10.0
    on_request: Optional[Callable[[SideEffectRequestLog], None]] = None
    on_result: Optional[Callable[[SideEffectResultLog], None]] = None
    client: Optional[httpx.AsyncClient] = None  # Shared client; owned by caller


def log_side_effect_request(log: SideEffectRequestLog) -> None:
    """Default ``on_request`` callback."""
    logger.info(f"[{log.phase.value}] {log.label}: {log.method} {log.url}")
    if log.body is not None:
        logger.debug(f"[{log.phase.value}] {log.label} body: {log.body}")


def log_side_effect_result(log: SideEffectResultLog) -> None:
    """Default ``on_result`` callback."""
    if log.skipped:
        logger.info(f"[{log.phase.value}] {log.label} skipped: {log.skip_reason}")
    elif log.success:
        logger.info(f"[{log.phase.value}] {log.label} succeeded")
    else:
        logger.warning(f"[{log.phase.value}] {log.label} failed: {log.error}")


def should_execute_side_effect(side_effect: SideEffect, context: SubmissionContext) -> bool:
    """Whether a side effect would issue a request for this context."""
    if not side_effect.is_implemented:
        return False
    should_execute, _ = check_side_effect_condition(side_effect.condition, context)
    return should_execute


def get_executable_side_effects(
    side_effects: Sequence[SideEffect],
    context: SubmissionContext,
) -> list[SideEffect]:
    """Side effects that would issue a request for this context, in order."""
    return [se for se in side_effects if should_execute_side_effect(se, context)]


@asynccontextmanager
async def _http_client(options: ExecutionOptions) -> AsyncIterator[httpx.AsyncClient]:
    if options.client is not None:
        yield options.client
        return
    async with httpx.AsyncClient(timeout=httpx.Timeout(options.timeout_seconds)) as client:
        yield client


def _is_retryable(exc: BaseException) -> bool:
    """Transport errors and 5xx are retried; 4xx never is."""
    if isinstance(exc, SideEffectNetworkError):
        return True
    return isinstance(exc, SideEffectHTTPError) and exc.status_code >= 500


def _parse_response(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def _send(
    client: httpx.AsyncClient,
    side_effect: SideEffect,
    url: str,
    body: Optional[dict[str, Any]],
    options: ExecutionOptions,
) -> httpx.Response:
    """Issue one request, raising SideEffectError subclasses on failure."""
    headers = {"Content-Type": "application/json"}
    if options.auth_token:
        headers["Authorization"] = f"Bearer {options.auth_token}"

    try:
        response = await client.request(
            side_effect.method.value,
            url,
            json=body,
            headers=headers,
            timeout=options.timeout_seconds,
        )
    except httpx.TimeoutException as e:
        raise SideEffectNetworkError(f"Request timed out: {side_effect.label}", str(e)) from e
    except httpx.HTTPError as e:
        raise SideEffectNetworkError(f"Network error: {side_effect.label}", str(e)) from e

    if not response.is_success:
        raise SideEffectHTTPError(
            f"API call failed with status {response.status_code}",
            response.status_code,
            response.text or None,
        )
    return response


def _emit_result(
    options: ExecutionOptions,
    phase: ExecutionPhase,
    result: SideEffectExecutionResult,
) -> None:
    if options.on_result is None:
        return
    options.on_result(SideEffectResultLog(
        phase=phase,
        label=result.side_effect.label,
        success=result.success,
        skipped=result.skipped,
        skip_reason=result.skip_detail,
        response=result.response,
        error=result.error,
    ))


async def execute_side_effect(
    side_effect: SideEffect,
    context: SubmissionContext,
    options: ExecutionOptions,
    phase: ExecutionPhase = ExecutionPhase.ON_SUBMIT,
) -> SideEffectExecutionResult:
    """Execute a single side effect.

    Raises:
        ResolutionError: If a path parameter cannot be resolved. This is a
            definition bug and is raised regardless of ``critical``.
    """
    should_execute, reason = check_side_effect_condition(side_effect.condition, context)
    if not should_execute:
        result = SideEffectExecutionResult(
            side_effect=side_effect,
            success=True,
            skipped=True,
            skip_reason=SkipReason.CONDITION_NOT_MET,
            skip_detail=reason,
        )
        _emit_result(options, phase, result)
        return result

    if not side_effect.is_implemented:
        result = SideEffectExecutionResult(
            side_effect=side_effect,
            success=True,
            skipped=True,
            skip_reason=SkipReason.NOT_IMPLEMENTED,
            skip_detail="Not implemented",
        )
        _emit_result(options, phase, result)
        return result

    endpoint = resolve_path_params(side_effect.endpoint, side_effect.path_params, context)
    body = construct_request_body(side_effect.body, context)
    url = f"{options.base_url.rstrip('/')}{endpoint}"

    if options.on_request is not None:
        options.on_request(SideEffectRequestLog(
            phase=phase,
            label=side_effect.label,
            method=side_effect.method.value,
            url=url,
            body=body,
        ))

    attempts = 0
    policy = side_effect.retry
    try:
        async with _http_client(options) as client:
            if policy is None:
                attempts = 1
                response = await _send(client, side_effect, url, body, options)
            else:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(policy.max_attempts),
                    wait=wait_exponential(multiplier=policy.backoff_ms / 1000, max=30),
                    retry=retry_if_exception(_is_retryable),
                    reraise=True,
                ):
                    with attempt:
                        attempts += 1
                        response = await _send(client, side_effect, url, body, options)
    except SideEffectError as e:
        result = SideEffectExecutionResult(
            side_effect=side_effect,
            success=False,
            error=str(e),
            status_code=getattr(e, "status_code", None),
            attempts=attempts,
        )
    else:
        result = SideEffectExecutionResult(
            side_effect=side_effect,
            success=True,
            status_code=response.status_code,
            response=_parse_response(response),
            attempts=attempts,
        )

    _emit_result(options, phase, result)
    return result


async def execute_side_effects(
    side_effects: Sequence[SideEffect],
    context: SubmissionContext,
    options: ExecutionOptions,
    phase: ExecutionPhase,
) -> ExecutionResult:
    """Execute a side-effect list sequentially.

    In best-effort mode every item runs. With
    ``options.throw_on_critical_failure`` the first critical failure aborts
    the rest of the list.

    Raises:
        CriticalSideEffectFailure: In fail-fast mode, on the first critical
            failure. The partial result is attached.
        ResolutionError: If any executed item has an unresolvable path.
    """
    result = ExecutionResult()

    async with _http_client(options) as client:
        item_options = options if options.client is not None else replace(options, client=client)
        for side_effect in side_effects:
            item = await execute_side_effect(side_effect, context, item_options, phase)
            result.results.append(item)

            if item.failed and side_effect.critical:
                message = f"Critical side effect failed: {side_effect.label} - {item.error}"
                result.critical_errors.append(message)
                logger.error(f"[{phase.value}] {message} (tx {context.tx_hash})")

                if options.throw_on_critical_failure:
                    result.success = False
                    raise CriticalSideEffectFailure(message, list(result.critical_errors), result)

    result.success = not result.critical_errors
    return result


async def execute_on_submit(
    side_effects: Sequence[SideEffect],
    context: SubmissionContext,
    options: ExecutionOptions,
) -> ExecutionResult:
    """Run a definition's onSubmit list."""
    return await execute_side_effects(side_effects, context, options, ExecutionPhase.ON_SUBMIT)


async def execute_on_confirmation(
    side_effects: Sequence[SideEffect],
    context: SubmissionContext,
    options: ExecutionOptions,
) -> ExecutionResult:
    """Run a definition's onConfirmation list."""
    return await execute_side_effects(side_effects, context, options, ExecutionPhase.ON_CONFIRMATION)
