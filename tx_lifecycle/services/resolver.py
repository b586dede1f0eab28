"""Path and value resolution against a submission context.

Definitions reference runtime data by dotted path (``tx_hash``,
``build_inputs.course_id``, ``on_chain_data.token_name``). Path parameters
must resolve, because a missing segment produces an unroutable URL. Body
fields that resolve to nothing are omitted so the receiving API can apply
its own defaults.
"""
import logging
import numbers
import re
from typing import Any, Mapping, Optional, Union

from tx_lifecycle.exceptions import ResolutionError
from tx_lifecycle.schemas.context import SubmissionContext
from tx_lifecycle.schemas.definition import (
    PLACEHOLDER_RE,
    HttpMethod,
    LiteralValue,
    SideEffect,
    SideEffectCondition,
    ValueSource,
)

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for a path that does not resolve (distinct from ``None``)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()

ContextLike = Union[SubmissionContext, Mapping[str, Any]]


def _as_mapping(context: ContextLike) -> Mapping[str, Any]:
    if isinstance(context, SubmissionContext):
        return context.model_dump(mode="json")
    return context


def get_value_from_path(obj: Any, path: str) -> Any:
    """Traverse ``obj`` along a dotted path.

    Numeric segments index into lists. Returns ``MISSING`` when any segment
    is absent; an explicit ``None`` value is returned as ``None``.
    """
    if isinstance(obj, SubmissionContext):
        obj = _as_mapping(obj)

    current = obj
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def resolve_path_params(
    template: str,
    path_params: Mapping[str, str],
    context: ContextLike,
) -> str:
    """Substitute every ``{name}`` in ``template`` from the context.

    Raises:
        ResolutionError: If a placeholder has no declared path, or its path
            does not resolve to a value.
    """
    data = _as_mapping(context)

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        path = path_params.get(name)
        if path is None:
            raise ResolutionError(
                f"No path parameter declared for placeholder '{name}'",
                {"endpoint": template},
            )
        value = get_value_from_path(data, path)
        if value is MISSING or value is None:
            raise ResolutionError(
                f"Path parameter '{name}' could not be resolved from '{path}'",
                {"endpoint": template},
            )
        return str(value)

    return PLACEHOLDER_RE.sub(substitute, template)


def resolve_value(source: ValueSource, context: ContextLike) -> Any:
    """Resolve a single body value; may return ``MISSING``."""
    if isinstance(source, LiteralValue):
        return source.value
    return get_value_from_path(_as_mapping(context), source.path)


def construct_request_body(
    body_spec: Optional[Mapping[str, ValueSource]],
    context: ContextLike,
) -> Optional[dict[str, Any]]:
    """Build the JSON body for a side effect.

    Fields whose value is ``MISSING`` are omitted; explicit ``None`` is kept.
    Returns ``None`` when the side effect declares no body at all.
    """
    if body_spec is None:
        return None

    data = _as_mapping(context)
    body = {}
    for field, source in body_spec.items():
        value = resolve_value(source, data)
        if value is MISSING:
            logger.debug(f"Omitting body field '{field}': path not present in context")
            continue
        body[field] = value
    return body


def _condition_matches(value: Any, expected: Any) -> bool:
    """Strict equality: numbers compare by value, bools and strings only to their own kind."""
    if isinstance(value, bool) or isinstance(expected, bool):
        return type(value) is type(expected) and value == expected
    if isinstance(value, numbers.Number) and isinstance(expected, numbers.Number):
        return value == expected
    return type(value) is type(expected) and value == expected


def check_side_effect_condition(
    condition: Optional[SideEffectCondition],
    context: ContextLike,
) -> tuple[bool, Optional[str]]:
    """Evaluate a condition against the context's build inputs.

    Returns:
        Tuple of (should_execute, reason). ``reason`` is set only when the
        side effect must be skipped.
    """
    if condition is None:
        return True, None

    data = _as_mapping(context)
    value = get_value_from_path(data.get("build_inputs", {}), condition.path)
    expected = condition.expected_values

    if value is not MISSING and any(_condition_matches(value, e) for e in expected):
        return True, None

    shown = "undefined" if value is MISSING else repr(value)
    return False, (
        f"Condition not met: {condition.path} is {shown}, "
        f"expected one of [{', '.join(repr(e) for e in expected)}]"
    )


def validate_side_effect(side_effect: SideEffect, context: ContextLike) -> list[str]:
    """Dry-run a side effect against a context without performing I/O.

    Returns a list of human-readable problems; empty means the side effect
    would produce a routable request.
    """
    errors = []

    if not side_effect.is_implemented:
        return errors

    try:
        resolve_path_params(side_effect.endpoint, side_effect.path_params, context)
    except ResolutionError as e:
        errors.append(f"Path parameter resolution failed: {e}")

    if side_effect.body is not None:
        body = construct_request_body(side_effect.body, context)
        if not body:
            errors.append("Body construction resulted in empty object")

    if side_effect.method in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH) and side_effect.body is None:
        errors.append(f"Method {side_effect.method.value} requires a body definition")

    return errors
