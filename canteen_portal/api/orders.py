"""
Canteen Portal — Order API routes

POST /orders runs behind IdempotencyMiddleware; a retried request carrying
the same Idempotency-Key gets the first response back and takes no stock.
"""
import datetime as dt
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.api.deps import get_current_user, require_capability
from canteen_portal.core.clock import day_bounds
from canteen_portal.core.permissions import Capability, has_capability
from canteen_portal.db import order_ops
from canteen_portal.db.database import get_db
from canteen_portal.db.pagination import paginate
from canteen_portal.models.order import Order, OrderStatus, PaymentStatus
from canteen_portal.models.user import User
from canteen_portal.schemas.order import OrderRequest, OrderResponse, StatusUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: OrderRequest,
    user: User = Depends(require_capability(Capability.PLACE_ORDER)),
    db: AsyncSession = Depends(get_db),
):
    """
    Place an order for today's menu. Prices come from the catalog; any price
    sent by the client is ignored. Stock for every line is reserved in the
    same transaction that stores the order.
    """
    lines = [order_ops.OrderLine(item.dish_name, item.quantity) for item in payload.items]
    order = await order_ops.create_order(db, user, lines, notes=payload.notes)
    return {"message": "Order placed successfully", "order": OrderResponse.model_validate(order)}


@router.get("/my-orders")
async def my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_status: OrderStatus | None = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Order).where(Order.user_id == user.id).order_by(Order.order_date.desc())
    if order_status is not None:
        stmt = stmt.where(Order.order_status == order_status)

    orders, pagination = await paginate(db, stmt, page, limit)
    return {
        "message": "Orders retrieved successfully",
        "orders": [OrderResponse.model_validate(o) for o in orders],
        "pagination": pagination,
    }


@router.get("/manage/all")
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    order_status: OrderStatus | None = Query(None, alias="status"),
    payment_status: PaymentStatus | None = None,
    day: dt.date | None = Query(None, alias="date"),
    user_id: str | None = None,
    _: User = Depends(require_capability(Capability.VIEW_ALL_ORDERS)),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Order).order_by(Order.order_date.desc())
    if order_status is not None:
        stmt = stmt.where(Order.order_status == order_status)
    if payment_status is not None:
        stmt = stmt.where(Order.payment_status == payment_status)
    if day is not None:
        start, end = day_bounds(day)
        stmt = stmt.where(Order.order_date >= start, Order.order_date < end)
    if user_id:
        stmt = stmt.where(Order.user_id == user_id)

    orders, pagination = await paginate(db, stmt, page, limit)
    return {
        "message": "Orders retrieved successfully",
        "orders": [OrderResponse.model_validate(o) for o in orders],
        "pagination": pagination,
    }


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if has_capability(user.role, Capability.VIEW_ALL_ORDERS):
        order = await order_ops.get_order(db, order_id)
    else:
        order = await order_ops.get_owned_order(db, order_id, user.id)
    return {"message": "Order retrieved successfully", "order": OrderResponse.model_validate(order)}


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    _: User = Depends(require_capability(Capability.UPDATE_ORDER_STATUS)),
    db: AsyncSession = Depends(get_db),
):
    order = await order_ops.set_order_status(db, order_id, payload.status)
    return {"message": "Order status updated successfully", "order": OrderResponse.model_validate(order)}


@router.patch("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_ops.cancel_order(db, user, order_id)
    return {"message": "Order cancelled successfully", "order": OrderResponse.model_validate(order)}
