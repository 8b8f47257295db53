"""
Canteen Portal — Counter pickup: QR verification, confirm, serve

Confirm and serve go through the same guarded transition as every other
status change; serve uses the staff edge set from core.order_state.
"""
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.core import qr
from canteen_portal.core.errors import AlreadyServed, MalformedQR, NotPaid, QRVerificationFailed
from canteen_portal.core.order_state import staff_serve_transitions
from canteen_portal.db.order_ops import get_order, transition_order
from canteen_portal.db.payment_ops import payment_for_order
from canteen_portal.models.order import Order, OrderStatus, PaymentStatus
from canteen_portal.models.payment import Payment
from canteen_portal.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class VerifiedPickup:
    order: Order
    owner: User | None
    payment: Payment | None
    payload: dict[str, Any]


def _amount_matches(embedded: Any, total: float) -> bool:
    if isinstance(embedded, bool) or not isinstance(embedded, (int, float)):
        return False
    return float(embedded) == float(total)


async def verify_qr(db: AsyncSession, raw: str) -> VerifiedPickup:
    payload = qr.parse(raw)
    order_id = payload.get("order_id")
    if not isinstance(order_id, str) or not order_id:
        raise MalformedQR()

    order = await get_order(db, order_id)
    owner = await db.get(User, order.user_id)

    checks = (
        qr.has_valid_signature(payload),
        owner is not None and payload.get("payer_name") == owner.name,
        owner is not None and payload.get("college_id") == owner.college_id,
        _amount_matches(payload.get("amount"), order.total_amount),
        payload.get("payment_status") == "PAID",
        order.payment_status == PaymentStatus.PAID,
    )
    if not all(checks):
        logger.warning("QR rejected for order %s", order_id)
        raise QRVerificationFailed()

    payment = await payment_for_order(db, order.order_id)
    return VerifiedPickup(order=order, owner=owner, payment=payment, payload=payload)


def _require_paid_and_unserved(order: Order) -> None:
    if order.payment_status != PaymentStatus.PAID:
        raise NotPaid()
    if order.order_status == OrderStatus.SERVED:
        raise AlreadyServed()


async def confirm_order(db: AsyncSession, order_id: str, notes: str | None = None) -> Order:
    order = await get_order(db, order_id)
    _require_paid_and_unserved(order)
    await transition_order(
        db,
        order,
        OrderStatus.CONFIRMED,
        extra_where=(Order.payment_status == PaymentStatus.PAID,),
        extra_values={"notes": notes} if notes else None,
    )
    await db.commit()
    await db.refresh(order)
    logger.info("Order %s confirmed at counter", order.order_id)
    return order


async def serve_order(db: AsyncSession, order_id: str) -> Order:
    order = await get_order(db, order_id)
    _require_paid_and_unserved(order)
    await transition_order(
        db,
        order,
        OrderStatus.SERVED,
        graph=staff_serve_transitions(),
        extra_where=(Order.payment_status == PaymentStatus.PAID,),
    )
    await db.commit()
    await db.refresh(order)
    logger.info("Order %s served", order.order_id)
    return order
