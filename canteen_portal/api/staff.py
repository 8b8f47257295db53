"""
Canteen Portal — Counter staff API routes

Scan → verify-qr → confirm → serve. Every route here needs the
verify_pickup capability (staff and admin).
"""
import datetime as dt
import logging
from collections import Counter

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.api.deps import require_capability
from canteen_portal.core.clock import day_bounds, start_of_day
from canteen_portal.core.permissions import Capability
from canteen_portal.db import order_ops, pickup_ops
from canteen_portal.db.database import get_db
from canteen_portal.db.payment_ops import payment_for_order
from canteen_portal.models.order import Order, OrderStatus, PaymentStatus
from canteen_portal.models.user import User
from canteen_portal.schemas.payment import PaymentResponse
from canteen_portal.schemas.staff import (
    ConfirmOrderRequest,
    StaffOrderView,
    TopDish,
    VerifyQRRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/staff",
    tags=["staff"],
    dependencies=[Depends(require_capability(Capability.VERIFY_PICKUP))],
)

IN_KITCHEN = (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY)


async def _orders_with_owners(db: AsyncSession, *criteria, order_by=None) -> list[StaffOrderView]:
    stmt = select(Order, User).outerjoin(User, Order.user_id == User.id).where(*criteria)
    stmt = stmt.order_by(order_by if order_by is not None else Order.order_date.desc())
    result = await db.execute(stmt)
    return [StaffOrderView.build(order, owner) for order, owner in result.all()]


def _status_counts(orders: list[StaffOrderView]) -> dict[str, int]:
    counts = Counter(o.order_status.value for o in orders)
    return {status.value: counts.get(status.value, 0) for status in OrderStatus}


def _paid_revenue(orders: list[StaffOrderView]) -> float:
    return round(sum(o.total_amount for o in orders if o.payment_status == PaymentStatus.PAID), 2)


def _payment_view(payment) -> PaymentResponse | None:
    return PaymentResponse.model_validate(payment) if payment else None


@router.get("/dashboard")
async def dashboard(db: AsyncSession = Depends(get_db)):
    """Today's orders with per-status counts and paid revenue."""
    start, end = day_bounds()
    orders = await _orders_with_owners(db, Order.order_date >= start, Order.order_date < end)
    return {
        "message": "Staff dashboard data retrieved successfully",
        "stats": {
            "total": len(orders),
            **_status_counts(orders),
            "total_revenue": _paid_revenue(orders),
        },
        "orders": orders,
    }


@router.post("/verify-qr")
async def verify_qr(payload: VerifyQRRequest, db: AsyncSession = Depends(get_db)):
    pickup = await pickup_ops.verify_qr(db, payload.qr_data)
    return {
        "message": "QR code verified successfully",
        "order": StaffOrderView.build(pickup.order, pickup.owner),
        "payment": _payment_view(pickup.payment),
        "qr_data": pickup.payload,
    }


@router.patch("/{order_id}/confirm")
async def confirm_order(
    order_id: str,
    payload: ConfirmOrderRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    notes = payload.notes if payload else None
    order = await pickup_ops.confirm_order(db, order_id, notes=notes)
    return {"message": "Order confirmed successfully", "order": StaffOrderView.build(order)}


@router.patch("/{order_id}/serve")
async def serve_order(order_id: str, db: AsyncSession = Depends(get_db)):
    order = await pickup_ops.serve_order(db, order_id)
    return {"message": "Order marked as served successfully", "order": StaffOrderView.build(order)}


@router.get("/order/{order_id}")
async def order_details(order_id: str, db: AsyncSession = Depends(get_db)):
    order = await order_ops.get_order(db, order_id)
    owner = await db.get(User, order.user_id)
    payment = await payment_for_order(db, order.order_id)
    return {
        "message": "Order details retrieved successfully",
        "order": StaffOrderView.build(order, owner),
        "payment": _payment_view(payment),
    }


@router.get("/orders/pending")
async def pending_orders(db: AsyncSession = Depends(get_db)):
    """Today's paid orders still in the kitchen."""
    start, end = day_bounds()
    orders = await _orders_with_owners(
        db,
        Order.order_date >= start,
        Order.order_date < end,
        Order.payment_status == PaymentStatus.PAID,
        Order.order_status.in_(IN_KITCHEN),
    )
    return {"message": "Pending orders retrieved successfully", "orders": orders}


@router.get("/orders/served")
async def served_orders(db: AsyncSession = Depends(get_db)):
    start, end = day_bounds()
    orders = await _orders_with_owners(
        db,
        Order.order_date >= start,
        Order.order_date < end,
        Order.order_status == OrderStatus.SERVED,
        order_by=Order.served_date.desc(),
    )
    return {"message": "Served orders retrieved successfully", "orders": orders}


@router.get("/summary")
async def daily_summary(date: dt.date | None = None, db: AsyncSession = Depends(get_db)):
    """Daily totals, status breakdown and the ten best-selling dishes."""
    start, end = day_bounds(date)
    orders = await _orders_with_owners(db, Order.order_date >= start, Order.order_date < end)

    quantities: Counter[str] = Counter()
    revenue: Counter[str] = Counter()
    for order in orders:
        for line in order.items:
            quantities[line.dish_name] += line.quantity
            revenue[line.dish_name] += line.subtotal

    top_items = [
        TopDish(dish_name=dish, quantity=qty, revenue=round(revenue[dish], 2))
        for dish, qty in quantities.most_common(10)
    ]

    return {
        "message": "Daily summary retrieved successfully",
        "summary": {
            "date": start_of_day(date),
            "total_orders": len(orders),
            "paid_orders": sum(1 for o in orders if o.payment_status == PaymentStatus.PAID),
            "served_orders": sum(1 for o in orders if o.order_status == OrderStatus.SERVED),
            "total_revenue": _paid_revenue(orders),
            "orders_by_status": _status_counts(orders),
            "top_items": top_items,
        },
    }
