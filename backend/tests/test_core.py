from datetime import datetime, timedelta, timezone

import pytest

from prodledger.core.errors import (
    ConflictError,
    NotFoundError,
    TransactionTimeoutError,
    ValidationError,
    error_body,
)
from prodledger.core.optimistic_lock import ensure_expected_timestamp


def test_error_body_carries_reason_only_when_present():
    assert error_body(ValidationError("bad", reason="exceeds_target")) == {
        "success": False,
        "message": "bad",
        "error": "VALIDATION_ERROR",
        "reason": "exceeds_target",
    }
    assert error_body(NotFoundError("group")) == {
        "success": False,
        "message": "Group not found.",
        "error": "NOT_FOUND",
    }


def test_conflict_and_timeout_envelopes_match_other_errors():
    assert error_body(ConflictError("busy", reason="stale_version")) == {
        "success": False,
        "message": "busy",
        "error": "CONFLICT",
        "reason": "stale_version",
    }
    timeout = TransactionTimeoutError("slow", retry_after=3)
    assert error_body(timeout) == {"success": False, "message": "slow", "error": "TRANSACTION_TIMEOUT"}
    assert timeout.headers() == {"Retry-After": "3"}


def test_expected_timestamp_matches_ignoring_timezone():
    stored = datetime(2024, 5, 1, 10, 30, 0, 125000)
    ensure_expected_timestamp(stored, None)
    ensure_expected_timestamp(stored, stored.replace(tzinfo=timezone.utc))
    with pytest.raises(ConflictError):
        ensure_expected_timestamp(stored, stored - timedelta(seconds=1))


@pytest.mark.anyio
async def test_bad_token_is_forbidden(client):
    resp = await client.get(
        "/api/production-schedule/my-groups", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_oversized_idempotency_key_is_rejected(client, ledger, auth_headers):
    resp = await client.patch(
        "/api/production-schedule/group/update_quantity/100",
        json={"manufactured_quantity": 1},
        headers={**auth_headers, "Idempotency-Key": "k" * 500},
    )
    assert resp.status_code == 400
