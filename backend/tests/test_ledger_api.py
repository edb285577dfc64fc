"""HTTP behaviour of the quantity ledger and history endpoints."""

from __future__ import annotations

import pytest

from prodledger.core.security import create_access_token

UPDATE_URL = "/api/production-schedule/group/update_quantity/{}"
HISTORY_URL = "/api/production-schedule/group/history/{}"


@pytest.mark.anyio
async def test_update_quantity_success_envelope(client, ledger, auth_headers):
    resp = await client.patch(
        UPDATE_URL.format(100), json={"manufactured_quantity": 40}, headers=auth_headers
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["manufactured_quantity"] == 40.0
    assert body["data"]["total_manufactured"] == 40.0
    assert body["data"]["balanced_quantity"] == 60.0
    assert body["data"]["total_quantity"] == 100.0
    assert body["data"]["production_schedule_id"] == 50
    assert "X-Request-ID" in resp.headers


@pytest.mark.anyio
async def test_scenario_partial_then_overdraw(client, ledger, auth_headers):
    first = await client.patch(
        UPDATE_URL.format(100), json={"manufactured_quantity": 40}, headers=auth_headers
    )
    assert first.status_code == 200

    second = await client.patch(
        UPDATE_URL.format(100), json={"manufactured_quantity": 61}, headers=auth_headers
    )
    assert second.status_code == 400
    assert second.json() == {
        "success": False,
        "message": second.json()["message"],
        "error": "VALIDATION_ERROR",
        "reason": "exceeds_balance",
    }


@pytest.mark.anyio
@pytest.mark.parametrize("quantity", [None, 0, -3, "ten"])
async def test_invalid_quantity_is_400(client, ledger, auth_headers, quantity):
    resp = await client.patch(
        UPDATE_URL.format(100), json={"manufactured_quantity": quantity}, headers=auth_headers
    )
    assert resp.status_code == 400
    assert resp.json()["reason"] == "invalid_quantity"


@pytest.mark.anyio
async def test_unknown_employee_is_404(client, ledger):
    token = create_access_token({"id": 99, "company_id": 1})
    resp = await client.patch(
        UPDATE_URL.format(100),
        json={"manufactured_quantity": 1},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_unknown_group_is_404(client, ledger, auth_headers):
    resp = await client.patch(
        UPDATE_URL.format(12345), json={"manufactured_quantity": 1}, headers=auth_headers
    )
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_missing_token_is_rejected(client, ledger):
    resp = await client.patch(UPDATE_URL.format(100), json={"manufactured_quantity": 1})
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_idempotent_retry_is_replayed(client, ledger, auth_headers):
    headers = {**auth_headers, "Idempotency-Key": "tablet-42-0007"}
    first = await client.patch(UPDATE_URL.format(100), json={"manufactured_quantity": 15}, headers=headers)
    second = await client.patch(UPDATE_URL.format(100), json={"manufactured_quantity": 15}, headers=headers)

    assert first.status_code == second.status_code == 200
    assert "Idempotent-Replay" not in first.headers
    assert second.headers["Idempotent-Replay"] == "true"
    assert second.json()["data"]["group_history_id"] == first.json()["data"]["group_history_id"]
    assert second.json()["data"]["total_manufactured"] == 15.0


@pytest.mark.anyio
async def test_blank_idempotency_key_is_400(client, ledger, auth_headers):
    resp = await client.patch(
        UPDATE_URL.format(100),
        json={"manufactured_quantity": 1},
        headers={**auth_headers, "Idempotency-Key": "   "},
    )
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_history_endpoint_after_two_updates(client, ledger, auth_headers):
    for qty in (40, 60):
        resp = await client.patch(
            UPDATE_URL.format(100), json={"manufactured_quantity": qty}, headers=auth_headers
        )
        assert resp.status_code == 200

    resp = await client.get(HISTORY_URL.format(100), headers=auth_headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["production_group"]["group_Qty"] == 100.0
    assert data["production_group"]["production_completed"] == "Completed"
    histories = data["production_histories"]
    assert [h["group_manufactured_quantity"] for h in histories] == [60.0, 40.0]
    assert histories[0]["employee"]["name"] == "Asha Operator"
    assert histories[0]["machine"]["machine_name"] == "Press 1"


@pytest.mark.anyio
async def test_health_probes(client):
    assert (await client.get("/api/healthz")).json() == {"status": "ok"}
