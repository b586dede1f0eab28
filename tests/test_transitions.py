"""Tests for pending entry state transitions."""
from datetime import datetime, timedelta

import pytest

from tx_lifecycle.exceptions import InvalidTransitionError
from tx_lifecycle.models.pending_tx import PendingTxStatus
from tx_lifecycle.services.transitions import (
    is_expired,
    mark_confirming,
    mark_failed_permanent,
    mark_needs_attention,
    mark_retry,
)


class TestMarkRetry:

    def test_increments_and_stays_pending(self, make_entry):
        entry = make_entry()

        updated = mark_retry(entry, "Koios timeout")

        assert updated.status == PendingTxStatus.PENDING
        assert updated.retry_count == 1
        assert updated.last_error == "Koios timeout"
        assert entry.retry_count == 0  # original untouched

    def test_exhausted_retries_fail_permanently(self, make_entry):
        entry = make_entry(retry_count=2, max_retries=3)

        updated = mark_retry(entry, "Koios timeout")

        assert updated.status == PendingTxStatus.FAILED_PERMANENT
        assert updated.retry_count == 3
        assert "retries exhausted" in updated.last_error

    def test_only_pending_entries_retry(self, make_entry):
        entry = make_entry(status=PendingTxStatus.CONFIRMING)

        with pytest.raises(InvalidTransitionError):
            mark_retry(entry, "late error")


class TestMarkConfirming:

    def test_records_on_chain_data(self, make_entry):
        entry = make_entry(last_error="earlier poll error")

        updated = mark_confirming(entry, {"token_name": "alice"}, confirmations=4)

        assert updated.status == PendingTxStatus.CONFIRMING
        assert updated.on_chain_data == {"token_name": "alice"}
        assert updated.confirmations == 4
        assert updated.last_error is None
        assert updated.updated_at >= entry.updated_at

    def test_failed_entries_cannot_confirm(self, make_entry):
        entry = make_entry(status=PendingTxStatus.FAILED_PERMANENT)

        with pytest.raises(InvalidTransitionError):
            mark_confirming(entry, {})


class TestMarkNeedsAttention:

    def test_counts_attempts(self, make_entry):
        entry = make_entry(status=PendingTxStatus.CONFIRMING)

        first = mark_needs_attention(entry, "confirm failed")
        second = mark_needs_attention(first, "confirm failed again")

        assert first.status == PendingTxStatus.NEEDS_ATTENTION
        assert first.confirmation_attempts == 1
        assert second.status == PendingTxStatus.NEEDS_ATTENTION
        assert second.confirmation_attempts == 2
        assert second.last_error == "confirm failed again"

    def test_attempt_cap_fails_permanently(self, make_entry):
        entry = make_entry(
            status=PendingTxStatus.NEEDS_ATTENTION,
            confirmation_attempts=1,
            max_confirmation_attempts=2,
        )

        updated = mark_needs_attention(entry, "still failing")

        assert updated.status == PendingTxStatus.FAILED_PERMANENT
        assert "attempts exhausted" in updated.last_error

    def test_pending_entries_cannot_need_attention(self, make_entry):
        with pytest.raises(InvalidTransitionError):
            mark_needs_attention(make_entry(), "too early")


class TestMarkFailedPermanent:

    @pytest.mark.parametrize("status", [
        PendingTxStatus.PENDING,
        PendingTxStatus.CONFIRMING,
        PendingTxStatus.NEEDS_ATTENTION,
    ])
    def test_from_active_statuses(self, make_entry, status):
        updated = mark_failed_permanent(make_entry(status=status), "gave up")

        assert updated.status == PendingTxStatus.FAILED_PERMANENT
        assert updated.last_error == "gave up"
        assert not updated.is_active

    def test_terminal(self, make_entry):
        entry = make_entry(status=PendingTxStatus.FAILED_PERMANENT)

        with pytest.raises(InvalidTransitionError):
            mark_failed_permanent(entry, "again")


class TestIsExpired:

    def test_pending_entry_past_timeout(self, make_entry):
        now = datetime(2026, 1, 1, 12, 0, 0)
        entry = make_entry(created_at=now - timedelta(hours=2))

        assert is_expired(entry, 3600, now=now) is True
        assert is_expired(entry, 3 * 3600, now=now) is False

    def test_only_pending_entries_expire(self, make_entry):
        now = datetime(2026, 1, 1, 12, 0, 0)
        entry = make_entry(created_at=now - timedelta(days=1), status=PendingTxStatus.NEEDS_ATTENTION)

        assert is_expired(entry, 3600, now=now) is False
