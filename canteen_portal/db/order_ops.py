"""
Canteen Portal — Order lifecycle operations

Order placement and cancellation each commit once: the order row, its lines
and every stock adjustment land together or not at all. Status changes are
conditional updates on the status the caller read, so two staff members
acting on the same order cannot silently overwrite each other.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.core.clock import local_now
from canteen_portal.core.errors import (
    CannotCancel,
    ConcurrentModification,
    ConflictError,
    OrderNotFound,
)
from canteen_portal.core.order_state import ORDER_TRANSITIONS, TransitionGraph, check_transition
from canteen_portal.db.stock_ops import reserve_stock, restore_stock
from canteen_portal.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    generate_order_id,
)
from canteen_portal.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLine:
    dish_name: str
    quantity: int


# ── Lookups ───────────────────────────────────────────────────────────────────

async def get_order(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(select(Order).where(Order.order_id == order_id))
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound()
    return order


async def get_owned_order(db: AsyncSession, order_id: str, user_id: str) -> Order:
    result = await db.execute(
        select(Order).where(Order.order_id == order_id, Order.user_id == user_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound()
    return order


# ── Placement ─────────────────────────────────────────────────────────────────

async def create_order(
    db: AsyncSession, user: User, lines: list[OrderLine], notes: str | None = None
) -> Order:
    """
    Price every line at the current catalog price, reserve its stock and
    persist the order, all in one transaction.
    """
    items: list[OrderItem] = []
    total = 0.0
    for position, line in enumerate(lines):
        menu_item = await reserve_stock(db, line.dish_name, line.quantity)
        subtotal = round(menu_item.price * line.quantity, 2)
        items.append(OrderItem(
            position=position,
            menu_item_id=menu_item.id,
            dish_name=line.dish_name,
            quantity=line.quantity,
            price=menu_item.price,
            subtotal=subtotal,
        ))
        total += subtotal

    order = Order(
        order_id=generate_order_id(),
        user_id=user.id,
        items=items,
        total_amount=round(total, 2),
        order_status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        notes=notes,
        order_date=local_now(),
    )
    db.add(order)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.error("Order id collision for user %s", user.college_id)
        raise ConflictError("Could not place order. Please retry.")

    await db.refresh(order)
    logger.info(
        "Order %s placed by %s: %d line(s), total %.2f",
        order.order_id, user.college_id, len(items), order.total_amount,
    )
    return order


# ── Status transitions ────────────────────────────────────────────────────────

async def transition_order(
    db: AsyncSession,
    order: Order,
    requested: OrderStatus | str,
    graph: TransitionGraph = ORDER_TRANSITIONS,
    extra_where: Iterable[Any] = (),
    extra_values: dict[str, Any] | None = None,
) -> OrderStatus:
    """
    Validate `order.order_status -> requested` against `graph` and apply it with
    an UPDATE guarded on the status just read. Does not commit.
    """
    target = check_transition(order.order_status, requested, graph)

    values: dict[str, Any] = {"order_status": target}
    if target == OrderStatus.SERVED:
        values["served_date"] = local_now()
    if extra_values:
        values.update(extra_values)

    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.order_status == order.order_status, *extra_where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConcurrentModification()
    return target


async def _restore_order_stock(db: AsyncSession, order: Order) -> None:
    for line in order.items:
        await restore_stock(db, line.menu_item_id, line.dish_name, line.quantity)


async def set_order_status(db: AsyncSession, order_id: str, requested: str) -> Order:
    """Kitchen/staff status change along the general transition graph."""
    order = await get_order(db, order_id)
    previous = order.order_status
    target = await transition_order(db, order, requested)
    if target == OrderStatus.CANCELLED:
        await _restore_order_stock(db, order)
    await db.commit()
    await db.refresh(order)
    logger.info("Order %s: %s -> %s", order.order_id, previous.value, target.value)
    return order


async def cancel_order(db: AsyncSession, user: User, order_id: str) -> Order:
    """Owner cancellation of a pending, unpaid order; puts the stock back."""
    order = await get_owned_order(db, order_id, user.id)

    if order.order_status != OrderStatus.PENDING:
        raise CannotCancel("Cannot cancel order. Order is already being processed.")
    if order.payment_status == PaymentStatus.PAID:
        raise CannotCancel("Cannot cancel paid order. Please request a refund.")

    await transition_order(
        db,
        order,
        OrderStatus.CANCELLED,
        extra_where=(Order.payment_status != PaymentStatus.PAID,),
    )
    await _restore_order_stock(db, order)
    await db.commit()
    await db.refresh(order)
    logger.info("Order %s cancelled by %s", order.order_id, user.college_id)
    return order
