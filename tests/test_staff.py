"""
Counter pickup: QR verification, confirm, serve and the staff reports.
"""
import json
from datetime import datetime, timezone

import pytest

from conftest import add_dish, auth, pay_order, place_order
from canteen_portal.core import qr
from canteen_portal.models.menu import Category


async def _paid_order(client, student, quantity=2) -> tuple[str, dict]:
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": quantity}])
    order_id = r.json()["order"]["order_id"]
    body = await pay_order(client, student, order_id)
    return order_id, body["qr_data"]


# ─── QR verification ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_verify_qr_accepts_issued_payload(client, student, staff, dosa, razorpay):
    order_id, payload = await _paid_order(client, student)

    r = await client.post("/staff/verify-qr", json={"qr_data": qr.serialize(payload)}, headers=auth(staff))
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["order"]["order_id"] == order_id
    assert data["order"]["user"]["college_id"] == "BWU/BTS/24/269"
    assert data["payment"]["status"] == "captured"
    assert data["qr_data"] == payload


@pytest.mark.asyncio
async def test_verify_qr_rejects_tampered_amount(client, student, staff, dosa, razorpay):
    _, payload = await _paid_order(client, student)
    payload["amount"] = 1

    r = await client.post("/staff/verify-qr", json={"qr_data": json.dumps(payload)}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "QR code verification failed"


@pytest.mark.asyncio
async def test_verify_qr_rejects_reconstructed_payload_without_signature(client, student, staff, dosa, razorpay):
    """Knowing every field of the order is not enough to mint a pickup QR."""
    _, payload = await _paid_order(client, student)
    payload.pop("signature")

    r = await client.post("/staff/verify-qr", json={"qr_data": json.dumps(payload)}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "QR code verification failed"


@pytest.mark.asyncio
async def test_verify_qr_rejects_unpaid_order(client, student, staff, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]
    payload = qr.build_payload(
        order_id=order_id,
        payer_name="Anirudha Khanrah",
        college_id="BWU/BTS/24/269",
        items=[("Masala Dosa", 1)],
        amount=50,
        payment_time=datetime.now(tz=timezone.utc),
    )

    r = await client.post("/staff/verify-qr", json={"qr_data": qr.serialize(payload)}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "QR code verification failed"


@pytest.mark.asyncio
@pytest.mark.parametrize("field,value", [("name", "Someone Else"), ("college_id", "BWU/BTS/24/999")])
async def test_verify_qr_rejects_owner_mismatch(client, student, staff, admin, dosa, razorpay, field, value):
    """A genuine QR stops matching once the owner's name or college id changes."""
    _, payload = await _paid_order(client, student)
    r = await client.post("/staff/verify-qr", json={"qr_data": qr.serialize(payload)}, headers=auth(staff))
    assert r.status_code == 200

    r = await client.put(f"/users/{student.id}", json={field: value}, headers=auth(admin))
    assert r.status_code == 200, r.text

    r = await client.post("/staff/verify-qr", json={"qr_data": qr.serialize(payload)}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "QR code verification failed"


@pytest.mark.asyncio
async def test_verify_qr_malformed_and_unknown(client, staff):
    r = await client.post("/staff/verify-qr", json={"qr_data": "not json{"}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid QR code format"

    r = await client.post("/staff/verify-qr", json={"qr_data": "[1, 2]"}, headers=auth(staff))
    assert r.status_code == 400

    r = await client.post(
        "/staff/verify-qr", json={"qr_data": json.dumps({"order_id": "ORDMISSING"})}, headers=auth(staff)
    )
    assert r.status_code == 404
    assert r.json()["message"] == "Order not found"

    r = await client.post("/staff/verify-qr", json={"qr_data": ""}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "qr_data"


@pytest.mark.asyncio
async def test_students_cannot_use_staff_routes(client, student):
    for method, path in (("get", "/staff/dashboard"), ("post", "/staff/verify-qr")):
        r = await client.request(method.upper(), path, json={"qr_data": "{}"}, headers=auth(student))
        assert r.status_code == 403


# ─── Confirm / serve ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_confirm_then_serve(client, student, staff, dosa, razorpay):
    order_id, _ = await _paid_order(client, student)

    r = await client.patch(f"/staff/{order_id}/confirm", json={"notes": "Extra chutney"}, headers=auth(staff))
    assert r.status_code == 200, r.text
    assert r.json()["order"]["order_status"] == "confirmed"
    assert r.json()["order"]["notes"] == "Extra chutney"

    r = await client.patch(f"/staff/{order_id}/serve", headers=auth(staff))
    assert r.status_code == 200
    order = r.json()["order"]
    assert order["order_status"] == "served"
    assert order["served_date"] is not None

    r = await client.patch(f"/staff/{order_id}/serve", headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "Order is already served"

    r = await client.patch(f"/staff/{order_id}/confirm", headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "Order is already served"


@pytest.mark.asyncio
async def test_confirm_requires_payment(client, student, staff, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]

    r = await client.patch(f"/staff/{order_id}/confirm", headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "Order is not paid"

    r = await client.patch(f"/staff/{order_id}/serve", headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == "Order is not paid"


@pytest.mark.asyncio
async def test_counter_can_serve_paid_order_straight_away(client, student, staff, dosa, razorpay):
    order_id, _ = await _paid_order(client, student)

    r = await client.patch(f"/staff/{order_id}/serve", headers=auth(staff))
    assert r.status_code == 200
    assert r.json()["order"]["order_status"] == "served"


@pytest.mark.asyncio
async def test_confirm_only_from_pending(client, student, staff, dosa, razorpay):
    order_id, _ = await _paid_order(client, student)
    for status in ("confirmed", "preparing"):
        await client.patch(f"/orders/{order_id}/status", json={"status": status}, headers=auth(staff))

    r = await client.patch(f"/staff/{order_id}/confirm", headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == 'Cannot change status from "preparing" to "confirmed"'


# ─── Reports ───────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_dashboard_and_queues(client, student, staff, dosa, razorpay):
    await add_dish("Iced Tea", 30, 50, Category.BEVERAGES)
    paid_id, _ = await _paid_order(client, student, quantity=2)
    await place_order(client, student, [{"dish_name": "Iced Tea", "quantity": 1}])

    r = await client.get("/staff/dashboard", headers=auth(staff))
    stats = r.json()["stats"]
    assert stats["total"] == 2
    assert stats["pending"] == 2
    assert stats["served"] == 0
    assert stats["total_revenue"] == 100

    await client.patch(f"/staff/{paid_id}/confirm", headers=auth(staff))
    r = await client.get("/staff/orders/pending", headers=auth(staff))
    assert [o["order_id"] for o in r.json()["orders"]] == [paid_id]

    await client.patch(f"/staff/{paid_id}/serve", headers=auth(staff))
    assert (await client.get("/staff/orders/pending", headers=auth(staff))).json()["orders"] == []
    served = (await client.get("/staff/orders/served", headers=auth(staff))).json()["orders"]
    assert [o["order_id"] for o in served] == [paid_id]

    r = await client.get(f"/staff/order/{paid_id}", headers=auth(staff))
    assert r.json()["payment"]["status"] == "captured"
    assert r.json()["order"]["user"]["name"] == "Anirudha Khanrah"


@pytest.mark.asyncio
async def test_daily_summary(client, student, staff, dosa, razorpay):
    await add_dish("Iced Tea", 30, 50, Category.BEVERAGES)
    await _paid_order(client, student, quantity=3)
    await place_order(client, student, [
        {"dish_name": "Iced Tea", "quantity": 2},
        {"dish_name": "Masala Dosa", "quantity": 1},
    ])

    r = await client.get("/staff/summary", headers=auth(staff))
    summary = r.json()["summary"]
    assert summary["total_orders"] == 2
    assert summary["paid_orders"] == 1
    assert summary["total_revenue"] == 150
    assert summary["orders_by_status"]["pending"] == 2
    assert summary["top_items"][0] == {"dish_name": "Masala Dosa", "quantity": 4, "revenue": 200}
    assert summary["top_items"][1] == {"dish_name": "Iced Tea", "quantity": 2, "revenue": 60}

    r = await client.get("/staff/summary?date=2001-01-01", headers=auth(staff))
    assert r.json()["summary"]["total_orders"] == 0
