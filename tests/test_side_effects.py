"""Tests for the side-effect execution engine."""
from dataclasses import replace

import httpx
import pytest

from tx_lifecycle.definitions.course import COURSE_TEACHER_ASSIGNMENTS_ASSESS
from tx_lifecycle.exceptions import CriticalSideEffectFailure, ResolutionError
from tx_lifecycle.schemas.definition import (
    NOT_IMPLEMENTED,
    RetryPolicy,
    SideEffect,
    SideEffectCondition,
    from_context,
)
from tx_lifecycle.schemas.execution import ExecutionOutcome, ExecutionPhase, SkipReason
from tx_lifecycle.services.side_effects import (
    ExecutionOptions,
    execute_on_confirmation,
    execute_on_submit,
    execute_side_effect,
    get_executable_side_effects,
)

API_BASE_URL = "http://api.test"
COURSE_ID = "c" * 56
TX_HASH = "a" * 64


def _side_effect(label: str, path: str, critical: bool = False, **kwargs) -> SideEffect:
    kwargs.setdefault("body", {"tx_hash": from_context("tx_hash")})
    return SideEffect(label=label, endpoint=path, critical=critical, **kwargs)


class TestExecuteSideEffect:
    """Single side-effect execution."""

    @pytest.mark.asyncio
    async def test_sends_resolved_request(self, api, options, make_context, item_mint):
        context = make_context(side_effect_params={"note": "first"})

        result = await execute_side_effect(item_mint.on_submit[0], context, options)

        assert result.success is True
        assert result.skipped is False
        assert result.status_code == 200
        assert result.response == {"ok": True}
        assert result.attempts == 1

        request = api.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{API_BASE_URL}/items/item-1/pending"
        assert request.headers["Authorization"] == "Bearer service-token"
        assert api.bodies("/items/item-1/pending") == [{"tx_hash": TX_HASH, "note": "first"}]

    @pytest.mark.asyncio
    async def test_absent_optional_input_is_omitted_from_body(self, api, options, make_context, item_mint):
        await execute_side_effect(item_mint.on_submit[0], make_context(), options)

        assert api.bodies("/items/item-1/pending") == [{"tx_hash": TX_HASH}]

    @pytest.mark.asyncio
    async def test_not_implemented_is_skipped_without_request(self, api, options, make_context):
        side_effect = SideEffect(label="Future API", endpoint=NOT_IMPLEMENTED, critical=True)

        result = await execute_side_effect(side_effect, make_context(), options)

        assert result.success is True
        assert result.skipped is True
        assert result.skip_reason == SkipReason.NOT_IMPLEMENTED
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_unmet_condition_is_skipped_without_request(self, api, options, make_context):
        side_effect = _side_effect(
            "Only approved", "/approve",
            condition=SideEffectCondition(path="decision", equals="approve"),
        )

        result = await execute_side_effect(side_effect, make_context(), options)

        assert result.skipped is True
        assert result.skip_reason == SkipReason.CONDITION_NOT_MET
        assert "Condition not met" in result.skip_detail
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_http_error_is_a_failed_result(self, api, options, make_context, item_mint):
        api.fail("/items/item-1/pending", 409)

        result = await execute_side_effect(item_mint.on_submit[0], make_context(), options)

        assert result.success is False
        assert result.failed is True
        assert result.status_code == 409
        assert "409" in result.error

    @pytest.mark.asyncio
    async def test_network_error_is_a_failed_result(self, api, options, make_context, item_mint):
        api.fail("/items/item-1/pending", httpx.ConnectError("connection refused"))

        result = await execute_side_effect(item_mint.on_submit[0], make_context(), options)

        assert result.success is False
        assert "Network error" in result.error
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_unresolvable_path_raises_even_when_not_critical(self, api, options, make_context):
        side_effect = SideEffect(
            label="Broken path",
            endpoint="/tokens/{name}",
            path_params={"name": "on_chain_data.token_name"},
            body={"tx_hash": from_context("tx_hash")},
        )

        with pytest.raises(ResolutionError):
            await execute_side_effect(side_effect, make_context(), options)
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, api, options, make_context):
        api.fail("/flaky", 503, times=2)
        side_effect = _side_effect("Flaky", "/flaky", retry=RetryPolicy(max_attempts=3, backoff_ms=0))

        result = await execute_side_effect(side_effect, make_context(), options)

        assert result.success is True
        assert result.attempts == 3
        assert api.paths == ["/flaky"] * 3

    @pytest.mark.asyncio
    async def test_does_not_retry_client_errors(self, api, options, make_context):
        api.fail("/strict", 400)
        side_effect = _side_effect("Strict", "/strict", retry=RetryPolicy(max_attempts=3, backoff_ms=0))

        result = await execute_side_effect(side_effect, make_context(), options)

        assert result.success is False
        assert result.status_code == 400
        assert result.attempts == 1
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_retries_network_errors_until_exhausted(self, api, options, make_context):
        api.fail("/down", httpx.ConnectError("down"))
        side_effect = _side_effect("Down", "/down", retry=RetryPolicy(max_attempts=2, backoff_ms=0))

        result = await execute_side_effect(side_effect, make_context(), options)

        assert result.success is False
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_callbacks_receive_request_and_result(self, options, make_context, item_mint):
        requests, results = [], []
        options = replace(options, on_request=requests.append, on_result=results.append)

        await execute_side_effect(
            item_mint.on_submit[0], make_context(), options, ExecutionPhase.ON_CONFIRMATION
        )

        assert len(requests) == 1
        assert requests[0].phase == ExecutionPhase.ON_CONFIRMATION
        assert requests[0].label == "Mark Item Pending"
        assert requests[0].url.endswith("/items/item-1/pending")
        assert len(results) == 1
        assert results[0].success is True

    @pytest.mark.asyncio
    async def test_skip_emits_result_but_no_request(self, options, make_context):
        requests, results = [], []
        options = replace(options, on_request=requests.append, on_result=results.append)
        side_effect = SideEffect(label="Future API", endpoint=NOT_IMPLEMENTED)

        await execute_side_effect(side_effect, make_context(), options)

        assert requests == []
        assert results[0].skipped is True
        assert results[0].skip_reason == "Not implemented"


class TestExecuteSideEffects:
    """Ordered list execution."""

    @pytest.mark.asyncio
    async def test_empty_list_succeeds(self, api, options, make_context):
        result = await execute_on_submit((), make_context(), options)

        assert result.success is True
        assert result.results == []
        assert result.outcome == ExecutionOutcome.COMPLETE
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_runs_in_declared_order(self, api, options, make_context):
        side_effects = [_side_effect(f"Step {i}", f"/step/{i}") for i in range(3)]

        result = await execute_on_submit(side_effects, make_context(), options)

        assert result.success is True
        assert api.paths == ["/step/0", "/step/1", "/step/2"]
        assert [r.side_effect.label for r in result.results] == ["Step 0", "Step 1", "Step 2"]

    @pytest.mark.asyncio
    async def test_non_critical_failure_keeps_overall_success(self, api, options, make_context, item_mint):
        api.fail("/notifications", 500)
        context = make_context().for_confirmation({"token_name": "alice"})

        result = await execute_on_confirmation(item_mint.on_confirmation, context, options)

        assert result.success is True
        assert result.critical_errors == []
        assert len(result.failures) == 1
        assert result.outcome == ExecutionOutcome.PENDING_UPDATES

    @pytest.mark.asyncio
    async def test_best_effort_runs_everything_after_critical_failure(self, api, options, make_context, item_mint):
        api.fail("/items/confirm", 500)
        context = make_context().for_confirmation({"token_name": "alice"})

        result = await execute_on_confirmation(item_mint.on_confirmation, context, options)

        assert result.success is False
        assert result.outcome == ExecutionOutcome.ACTION_REQUIRED
        assert api.paths == ["/items/confirm", "/notifications"]
        assert len(result.critical_errors) == 1
        assert result.critical_errors[0].startswith("Critical side effect failed: Confirm Item - ")

    @pytest.mark.asyncio
    async def test_fail_fast_stops_at_first_critical_failure(self, api, options, make_context, item_mint):
        api.fail("/items/confirm", 500)
        context = make_context().for_confirmation({"token_name": "alice"})
        options = replace(options, throw_on_critical_failure=True)

        with pytest.raises(CriticalSideEffectFailure) as exc_info:
            await execute_on_confirmation(item_mint.on_confirmation, context, options)

        assert api.paths == ["/items/confirm"]
        error = exc_info.value
        assert len(error.critical_errors) == 1
        assert error.result is not None
        assert error.result.success is False
        assert len(error.result.results) == 1

    @pytest.mark.asyncio
    async def test_skipped_critical_item_is_not_a_failure(self, api, options, make_context):
        side_effects = [
            SideEffect(label="Future API", endpoint=NOT_IMPLEMENTED, critical=True),
            _side_effect(
                "Conditional", "/conditional", critical=True,
                condition=SideEffectCondition(path="decision", equals="approve"),
            ),
        ]

        result = await execute_on_submit(side_effects, make_context(), options)

        assert result.success is True
        assert len(result.skipped) == 2
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_confirmation_context_values_reach_body(self, api, options, make_context, item_mint):
        context = make_context().for_confirmation({"token_name": "alice"})

        await execute_on_confirmation(item_mint.on_confirmation, context, options)

        assert api.bodies("/items/confirm") == [
            {"item_id": "item-1", "tx_hash": TX_HASH, "token_name": "alice"}
        ]

    @pytest.mark.asyncio
    async def test_creates_own_client_when_none_given(self, api, make_context, item_mint, monkeypatch):
        transport = httpx.MockTransport(api.handler)
        original = httpx.AsyncClient

        def patched_client(*args, **kwargs):
            kwargs["transport"] = transport
            return original(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", patched_client)
        options = ExecutionOptions(base_url=API_BASE_URL)

        result = await execute_on_submit(item_mint.on_submit, make_context(), options)

        assert result.success is True
        assert api.paths == ["/items/item-1/pending"]
        assert "Authorization" not in api.requests[0].headers


class TestAssessmentScenario:
    """Accept/refuse branches of the assignment assessment definition."""

    def _context(self, make_context, outcome: str):
        return make_context(
            definition=COURSE_TEACHER_ASSIGNMENTS_ASSESS,
            tx_params={
                "alias": "teacher1",
                "course_id": COURSE_ID,
                "assignment_decisions": [{"alias": "student1", "outcome": outcome}],
            },
            side_effect_params={
                "module_code": "101",
                "student_access_token_alias": "student1",
                "assessment_result": outcome,
            },
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("outcome,status", [
        ("accept", "PENDING_TX_ASSIGNMENT_ACCEPTED"),
        ("refuse", "PENDING_TX_ASSIGNMENT_REFUSED"),
    ])
    async def test_only_matching_branch_runs(self, api, options, make_context, outcome, status):
        context = self._context(make_context, outcome)

        result = await execute_on_submit(COURSE_TEACHER_ASSIGNMENTS_ASSESS.on_submit, context, options)

        assert result.success is True
        assert len(result.skipped) == 1
        bodies = api.bodies("/course/shared/assignment-commitment/update-status")
        assert bodies == [{
            "policy_id": COURSE_ID,
            "module_code": "101",
            "access_token_alias": "student1",
            "network_status": status,
            "pending_tx_hash": TX_HASH,
        }]

    def test_executable_side_effects(self, make_context):
        context = self._context(make_context, "refuse")

        executable = get_executable_side_effects(COURSE_TEACHER_ASSIGNMENTS_ASSESS.on_submit, context)

        assert [se.label for se in executable] == ["Update Assignment Commitment to Pending Refuse"]
