"""
API Tests.

Routes, tenant scoping and error rendering over the ASGI app.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.main import app
from pos_ledger.app.models.ledger_entry import LedgerEntry
from pos_ledger.app.models.order_enums import OrderStatus, OrderType
from pos_ledger.app.models.payout import Payout
from pos_ledger.tests.helpers import OTHER_RESTAURANT_ID, RIDER_ID, STAFF_ID


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_missing_tenant_header_is_rejected(client):
    response = await client.get("/v1/accounting/session")

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_cash_session_flow(client, headers, order_factory):
    response = await client.get("/v1/accounting/session", headers=headers)
    assert response.json() == {"session": None}

    response = await client.post(
        "/v1/accounting/session/open",
        json={"staff_id": STAFF_ID, "opening_balance": "1000"},
        headers=headers,
    )
    assert response.status_code == 201
    session_id = response.json()["id"]

    order_id = await order_factory(5000)
    response = await client.post(f"/v1/accounting/orders/{order_id}/sale", headers=headers)
    assert response.json()["recorded"] is True
    assert len(response.json()["entries"]) == 2

    response = await client.post(f"/v1/accounting/orders/{order_id}/sale", headers=headers)
    assert response.json() == {"order_id": order_id, "recorded": False, "entries": []}

    response = await client.post(
        "/v1/accounting/payouts",
        json={"amount": "300", "category": "Supplies", "processed_by": STAFF_ID},
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["amount"] == "300.00"

    response = await client.get("/v1/accounting/session", headers=headers)
    metrics = response.json()["session"]
    assert metrics["session_id"] == session_id
    assert metrics["expected_cash"] == "5700.00"

    response = await client.get("/v1/accounting/balance/drawer", headers=headers)
    assert response.json()["balance"] == "5700.00"

    response = await client.post(
        "/v1/accounting/session/close",
        json={"session_id": session_id, "staff_id": STAFF_ID, "actual_balance": "5690"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CLOSED"
    assert response.json()["variance"] == "-10.00"

    response = await client.get(f"/v1/accounting/z-report/{session_id}", headers=headers)
    assert response.status_code == 200
    report = response.json()
    assert report["summary"]["gross_sales"] == "5000.00"
    assert report["cash_flow"]["payouts"] == "300.00"
    assert report["cash_flow"]["actual_cash"] == "5690.00"

    response = await client.get("/v1/accounting/ledger", params={"limit": 2}, headers=headers)
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_second_open_returns_conflict(client, headers):
    payload = {"staff_id": STAFF_ID, "opening_balance": "0"}
    await client.post("/v1/accounting/session/open", json=payload, headers=headers)

    response = await client.post("/v1/accounting/session/open", json=payload, headers=headers)

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "ERR_CONFLICT_001"
    assert "opened_at" in body["details"]


@pytest.mark.asyncio
async def test_close_without_open_session_is_rejected(client, headers):
    response = await client.post(
        "/v1/accounting/session/close",
        json={"session_id": "missing", "staff_id": STAFF_ID, "actual_balance": "0"},
        headers=headers,
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_z_report_is_tenant_scoped(client, headers):
    response = await client.post(
        "/v1/accounting/session/open",
        json={"staff_id": STAFF_ID, "opening_balance": "0"},
        headers=headers,
    )
    session_id = response.json()["id"]

    response = await client.get(
        f"/v1/accounting/z-report/{session_id}",
        headers={"X-Restaurant-ID": OTHER_RESTAURANT_ID},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_negative_payout_is_a_validation_error(client, headers):
    response = await client.post(
        "/v1/accounting/payouts",
        json={"amount": "-5", "category": "Supplies", "processed_by": STAFF_ID},
        headers=headers,
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_rider_shift_flow(client, headers, order_factory):
    response = await client.post(
        "/v1/riders/shift/open",
        json={"rider_id": RIDER_ID, "opened_by": STAFF_ID, "opening_float": "2000"},
        headers=headers,
    )
    assert response.status_code == 201
    shift_id = response.json()["id"]

    delivered = await order_factory(
        2500, order_type=OrderType.DELIVERY, assigned_driver_id=RIDER_ID, rider_shift_id=shift_id
    )
    await order_factory(
        400,
        order_type=OrderType.DELIVERY,
        status=OrderStatus.DELIVERED,
        assigned_driver_id=RIDER_ID,
        rider_shift_id=shift_id,
    )
    await client.post(f"/v1/accounting/orders/{delivered}/sale", headers=headers)

    response = await client.get(f"/v1/riders/{RIDER_ID}/active-shift", headers=headers)
    body = response.json()
    assert body["shift"]["id"] == shift_id
    assert body["metrics"]["expected_liability"] == "4500.00"
    assert body["metrics"]["rider_balance"] == "4500.00"

    response = await client.get(f"/v1/riders/{RIDER_ID}/pending-settlement", headers=headers)
    summary = response.json()["summary"]
    assert summary["order_count"] == 1
    assert summary["total_sales"] == "400.00"
    assert summary["expected_liability"] == "2400.00"

    response = await client.post(
        "/v1/riders/shift/close",
        json={"shift_id": shift_id, "closed_by": STAFF_ID, "closing_cash": "4500"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["cash_difference"] == "0.00"

    response = await client.get(f"/v1/accounting/balance/{RIDER_ID}", headers=headers)
    assert response.json()["balance"] == "0.00"

    response = await client.get(f"/v1/riders/{RIDER_ID}/active-shift", headers=headers)
    assert response.json() == {"shift": None, "metrics": None}


@pytest.mark.asyncio
async def test_rider_settlement_and_float(client, headers):
    response = await client.post(
        f"/v1/riders/{RIDER_ID}/float",
        json={"amount": "0", "processed_by": STAFF_ID},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json() == {"entries": []}

    response = await client.post(
        f"/v1/riders/{RIDER_ID}/float",
        json={"amount": "150", "processed_by": STAFF_ID},
        headers=headers,
    )
    assert len(response.json()["entries"]) == 2

    response = await client.post(
        f"/v1/riders/{RIDER_ID}/settlements",
        json={"amount_received": "150", "order_ids": [], "processed_by": STAFF_ID},
        headers=headers,
    )
    assert response.status_code == 201

    response = await client.get(f"/v1/accounting/balance/{RIDER_ID}", headers=headers)
    assert response.json()["balance"] == "0.00"


@pytest.mark.asyncio
async def test_unknown_order_sale_is_a_no_op(client, headers):
    response = await client.post("/v1/accounting/orders/missing/sale", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"order_id": "missing", "recorded": False, "entries": []}


@pytest.mark.asyncio
async def test_other_tenants_order_sale_is_a_no_op(client, order_factory):
    order_id = await order_factory(500)

    response = await client.post(
        f"/v1/accounting/orders/{order_id}/sale",
        headers={"X-Restaurant-ID": OTHER_RESTAURANT_ID},
    )

    assert response.json()["recorded"] is False

    async with UnitOfWork() as uow:
        count = (await uow.session.execute(select(func.count(LedgerEntry.id)))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_close_other_tenants_shift_is_not_found(client, headers):
    response = await client.post(
        "/v1/riders/shift/open",
        json={"rider_id": RIDER_ID, "opened_by": STAFF_ID, "opening_float": "0"},
        headers=headers,
    )
    shift_id = response.json()["id"]

    response = await client.post(
        "/v1/riders/shift/close",
        json={"shift_id": shift_id, "closed_by": STAFF_ID, "closing_cash": "0"},
        headers={"X-Restaurant-ID": OTHER_RESTAURANT_ID},
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_audit_trail(client, headers):
    response = await client.post(
        "/v1/accounting/session/open",
        json={"staff_id": STAFF_ID, "opening_balance": "100"},
        headers=headers,
    )
    session_id = response.json()["id"]
    response = await client.post(
        "/v1/accounting/payouts",
        json={"amount": "20", "category": "Supplies", "processed_by": STAFF_ID},
        headers=headers,
    )
    payout_id = response.json()["id"]

    response = await client.get("/v1/accounting/audit", headers=headers)
    assert response.status_code == 200
    events = response.json()
    assert [event["action"] for event in events] == ["PAYOUT_RECORDED", "CASH_SESSION_OPENED"]
    assert events[0]["entity_id"] == payout_id

    response = await client.get(
        "/v1/accounting/audit", params={"action": "CASH_SESSION_OPENED"}, headers=headers
    )
    assert [event["entity_id"] for event in response.json()] == [session_id]

    response = await client.get(
        "/v1/accounting/audit", headers={"X-Restaurant-ID": OTHER_RESTAURANT_ID}
    )
    assert response.json() == []


@pytest.mark.asyncio
async def test_failed_commit_is_reported_as_server_error(engine, headers, mocker):
    """The client never sees a success for a write that did not commit."""
    mocker.patch.object(
        AsyncSession,
        "commit",
        new=mocker.AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("database is locked"))),
    )

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            "/v1/accounting/payouts",
            json={"amount": "10", "category": "Supplies", "processed_by": STAFF_ID},
            headers=headers,
        )

    assert response.status_code == 500

    mocker.stopall()
    async with UnitOfWork() as uow:
        payouts = (await uow.session.execute(select(func.count(Payout.id)))).scalar_one()
        entries = (await uow.session.execute(select(func.count(LedgerEntry.id)))).scalar_one()

    assert payouts == 0
    assert entries == 0
