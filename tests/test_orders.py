"""
Order placement, stock reservation, status transitions and cancellation.
"""
import asyncio

import pytest

from conftest import add_dish, auth, make_user, pay_order, place_order, stock_of
from canteen_portal.core.redis_client import get_redis
from canteen_portal.middleware.idempotency import IN_FLIGHT, order_cache_key
from canteen_portal.models.menu import Category
from canteen_portal.models.user import Role


# ─── Placement ─────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_order_priced_from_catalog_and_stock_reserved(client, student, dosa):
    """A client-sent price is ignored; total and stock follow the catalog."""
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 2, "price": 1}])
    assert r.status_code == 201, r.text

    order = r.json()["order"]
    assert order["total_amount"] == 100
    assert order["items"][0] == {"dish_name": "Masala Dosa", "quantity": 2, "price": 50, "subtotal": 100}
    assert order["order_status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["order_id"].startswith("ORD")
    assert await stock_of(dosa.id) == 18


@pytest.mark.asyncio
async def test_insufficient_stock_rejects_whole_order(client, student, dosa):
    tea = await add_dish("Iced Tea", 30, 5, Category.BEVERAGES)

    r = await place_order(client, student, [
        {"dish_name": "Masala Dosa", "quantity": 2},
        {"dish_name": "Iced Tea", "quantity": 6},
    ])
    assert r.status_code == 400
    assert r.json()["message"] == 'Insufficient quantity for "Iced Tea". Available: 5'

    # The dosa line was reserved first; it must be rolled back with the rest
    assert await stock_of(dosa.id) == 20
    assert await stock_of(tea.id) == 5

    r = await client.get("/orders/my-orders", headers=auth(student))
    assert r.json()["orders"] == []


@pytest.mark.asyncio
async def test_dish_not_on_todays_menu_is_rejected(client, student):
    await add_dish("Veg Thali", 80, 10, is_available=False)

    r = await place_order(client, student, [{"dish_name": "Veg Thali", "quantity": 1}])
    assert r.status_code == 400
    assert "not available" in r.json()["message"]

    r = await place_order(client, student, [{"dish_name": "Unicorn Steak", "quantity": 1}])
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_order_validation_errors(client, student, dosa):
    r = await place_order(client, student, [])
    assert r.status_code == 400
    assert "errors" in r.json()

    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 0}])
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"].startswith("items")
    assert await stock_of(dosa.id) == 20


@pytest.mark.asyncio
async def test_order_requires_token(client, dosa):
    r = await client.post("/orders", json={"items": [{"dish_name": "Masala Dosa", "quantity": 1}]})
    assert r.status_code == 401
    assert r.json() == {"message": "Access denied. No token provided."}


@pytest.mark.asyncio
async def test_idempotency_key_replays_without_new_order(client, student, dosa):
    headers = {**auth(student), "Idempotency-Key": "retry-123"}
    body = {"items": [{"dish_name": "Masala Dosa", "quantity": 3}]}

    first = await client.post("/orders", json=body, headers=headers)
    second = await client.post("/orders", json=body, headers=headers)

    assert first.status_code == second.status_code == 201
    assert second.headers["X-Idempotency-Replay"] == "true"
    assert first.json()["order"]["order_id"] == second.json()["order"]["order_id"]
    assert await stock_of(dosa.id) == 17


@pytest.mark.asyncio
async def test_idempotency_key_is_scoped_to_caller(client, student, other_student, dosa):
    body = {"items": [{"dish_name": "Masala Dosa", "quantity": 1}]}

    a = await client.post("/orders", json=body, headers={**auth(student), "Idempotency-Key": "same"})
    b = await client.post("/orders", json=body, headers={**auth(other_student), "Idempotency-Key": "same"})

    assert "X-Idempotency-Replay" not in b.headers
    assert a.json()["order"]["order_id"] != b.json()["order"]["order_id"]
    assert await stock_of(dosa.id) == 18


@pytest.mark.asyncio
async def test_idempotency_key_in_flight_is_refused(client, student, dosa):
    headers = {**auth(student), "Idempotency-Key": "busy"}
    body = {"items": [{"dish_name": "Masala Dosa", "quantity": 2}]}
    key = order_cache_key(headers["Authorization"], "busy")
    await get_redis().set(key, IN_FLIGHT)

    r = await client.post("/orders", json=body, headers=headers)
    assert r.status_code == 409
    assert await stock_of(dosa.id) == 20

    await get_redis().delete(key)
    r = await client.post("/orders", json=body, headers=headers)
    assert r.status_code == 201
    assert await stock_of(dosa.id) == 18


@pytest.mark.asyncio
async def test_concurrent_retries_place_one_order(client, student, dosa):
    headers = {**auth(student), "Idempotency-Key": "double-tap"}
    body = {"items": [{"dish_name": "Masala Dosa", "quantity": 3}]}

    responses = await asyncio.gather(*(client.post("/orders", json=body, headers=headers) for _ in range(2)))

    placed = {r.json()["order"]["order_id"] for r in responses if r.status_code == 201}
    assert len(placed) == 1
    assert all(r.status_code in (201, 409) for r in responses)
    assert await stock_of(dosa.id) == 17


# ─── Reads ─────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_order_visible_to_owner_and_staff_only(client, student, other_student, staff, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]

    assert (await client.get(f"/orders/{order_id}", headers=auth(student))).status_code == 200
    assert (await client.get(f"/orders/{order_id}", headers=auth(staff))).status_code == 200

    r = await client.get(f"/orders/{order_id}", headers=auth(other_student))
    assert r.status_code == 404
    assert r.json()["message"] == "Order not found"


@pytest.mark.asyncio
async def test_my_orders_paginates(client, student, dosa):
    for _ in range(3):
        await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])

    r = await client.get("/orders/my-orders?page=1&limit=2", headers=auth(student))
    data = r.json()
    assert len(data["orders"]) == 2
    assert data["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "total_items": 3,
        "items_per_page": 2,
    }


@pytest.mark.asyncio
async def test_manage_all_needs_staff(client, student, staff, dosa):
    await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])

    r = await client.get("/orders/manage/all", headers=auth(student))
    assert r.status_code == 403

    r = await client.get("/orders/manage/all?status=pending", headers=auth(staff))
    assert r.status_code == 200
    assert r.json()["pagination"]["total_items"] == 1


# ─── Status transitions ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_status_must_follow_transition_graph(client, student, staff, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]

    r = await client.patch(f"/orders/{order_id}/status", json={"status": "served"}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["message"] == 'Cannot change status from "pending" to "served"'

    r = await client.get(f"/orders/{order_id}", headers=auth(student))
    assert r.json()["order"]["order_status"] == "pending"
    assert r.json()["order"]["served_date"] is None

    for status in ("confirmed", "preparing", "ready", "served"):
        r = await client.patch(f"/orders/{order_id}/status", json={"status": status}, headers=auth(staff))
        assert r.status_code == 200, r.text
        assert r.json()["order"]["order_status"] == status

    assert r.json()["order"]["served_date"] is not None

    r = await client.patch(f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=auth(staff))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_unknown_status_is_a_validation_error(client, student, staff, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]

    r = await client.patch(f"/orders/{order_id}/status", json={"status": "teleported"}, headers=auth(staff))
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "status"


@pytest.mark.asyncio
async def test_students_cannot_change_status(client, student, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]

    r = await client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=auth(student))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_staff_cancellation_restores_stock(client, student, staff, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 4}])
    order_id = r.json()["order"]["order_id"]
    assert await stock_of(dosa.id) == 16

    r = await client.patch(f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=auth(staff))
    assert r.status_code == 200
    assert await stock_of(dosa.id) == 20


# ─── Cancellation ──────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_owner_cancel_restores_stock(client, student, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 5}])
    order_id = r.json()["order"]["order_id"]
    assert await stock_of(dosa.id) == 15

    r = await client.patch(f"/orders/{order_id}/cancel", headers=auth(student))
    assert r.status_code == 200
    assert r.json()["order"]["order_status"] == "cancelled"
    assert await stock_of(dosa.id) == 20

    r = await client.patch(f"/orders/{order_id}/cancel", headers=auth(student))
    assert r.status_code == 400
    assert await stock_of(dosa.id) == 20


@pytest.mark.asyncio
async def test_cannot_cancel_order_in_progress(client, student, staff, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]
    await client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=auth(staff))

    r = await client.patch(f"/orders/{order_id}/cancel", headers=auth(student))
    assert r.status_code == 400
    assert r.json()["message"] == "Cannot cancel order. Order is already being processed."
    assert await stock_of(dosa.id) == 19


@pytest.mark.asyncio
async def test_cannot_cancel_paid_order(client, student, dosa, razorpay):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]
    await pay_order(client, student, order_id)

    r = await client.patch(f"/orders/{order_id}/cancel", headers=auth(student))
    assert r.status_code == 400
    assert r.json()["message"] == "Cannot cancel paid order. Please request a refund."


@pytest.mark.asyncio
async def test_cannot_cancel_someone_elses_order(client, student, other_student, dosa):
    r = await place_order(client, student, [{"dish_name": "Masala Dosa", "quantity": 1}])
    order_id = r.json()["order"]["order_id"]

    r = await client.patch(f"/orders/{order_id}/cancel", headers=auth(other_student))
    assert r.status_code == 404
    assert await stock_of(dosa.id) == 19


@pytest.mark.asyncio
async def test_professor_can_order(client, dosa):
    professor = await make_user(Role.PROFESSOR, college_id="PROF1", name="Dr. Sharma")
    r = await place_order(client, professor, [{"dish_name": "Masala Dosa", "quantity": 1}])
    assert r.status_code == 201
