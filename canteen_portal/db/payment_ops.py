"""
Canteen Portal — Payment intent, capture and refund

Payment.status:       created -> captured -> refunded
Order.payment_status: pending -> paid     -> refunded

Both moves are guarded on the prior status; a forged or mismatched callback
never reaches the UPDATE.
"""
import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.core import qr
from canteen_portal.core.clock import utc_now
from canteen_portal.core.config import get_settings
from canteen_portal.core.errors import (
    AlreadyProcessed,
    ConflictError,
    InvalidSignature,
    NotFoundError,
    ValidationError,
)
from canteen_portal.core.gateway import RazorpayGateway
from canteen_portal.db.order_ops import get_order, get_owned_order
from canteen_portal.models.order import Order, OrderStatus, PaymentStatus
from canteen_portal.models.payment import Payment, PaymentRecordStatus, generate_payment_id
from canteen_portal.models.user import User

settings = get_settings()
logger = logging.getLogger(__name__)


async def get_payment(db: AsyncSession, payment_id: str, user_id: str | None = None) -> Payment:
    stmt = select(Payment).where(Payment.payment_id == payment_id)
    if user_id is not None:
        stmt = stmt.where(Payment.user_id == user_id)
    payment = (await db.execute(stmt)).scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment not found")
    return payment


async def payment_for_order(db: AsyncSession, order_id: str) -> Payment | None:
    """The captured/refunded payment for an order, else its most recent attempt."""
    result = await db.execute(
        select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at.desc())
    )
    payments = result.scalars().all()
    for payment in payments:
        if payment.status in (PaymentRecordStatus.CAPTURED, PaymentRecordStatus.REFUNDED):
            return payment
    return payments[0] if payments else None


async def create_payment_intent(
    db: AsyncSession, gateway: RazorpayGateway, user: User, order_id: str
) -> tuple[Payment, dict[str, Any]]:
    order = await get_owned_order(db, order_id, user.id)
    if order.payment_status != PaymentStatus.PENDING or order.order_status == OrderStatus.CANCELLED:
        raise AlreadyProcessed()

    gateway_order = await gateway.create_order(
        amount=order.total_amount,
        currency=settings.PAYMENT_CURRENCY,
        receipt=order.order_id,
        notes={"user_id": user.id, "order_id": order.order_id},
    )

    payment = Payment(
        payment_id=generate_payment_id(),
        order_id=order.order_id,
        user_id=user.id,
        payment_gateway_id=gateway_order["id"],
        payer_name=user.name,
        amount=order.total_amount,
        currency=settings.PAYMENT_CURRENCY,
        status=PaymentRecordStatus.CREATED,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    logger.info(
        "Payment %s created for order %s (gateway order %s)",
        payment.payment_id, order.order_id, payment.payment_gateway_id,
    )
    return payment, gateway_order


async def verify_payment(
    db: AsyncSession,
    gateway: RazorpayGateway,
    user: User,
    *,
    payment_id: str,
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: str,
) -> tuple[Payment, Order, dict[str, Any]]:
    """
    Check the gateway's capture signature, mark payment and order paid, and
    issue the signed pickup QR payload stored on the order.
    """
    payment = await get_payment(db, payment_id, user_id=user.id)
    if payment.status != PaymentRecordStatus.CREATED:
        raise AlreadyProcessed("Payment is already processed")

    if payment.payment_gateway_id != gateway_order_id or not gateway.verify_signature(
        gateway_order_id, gateway_payment_id, signature
    ):
        logger.warning("Rejected capture callback for payment %s: bad signature", payment.payment_id)
        raise InvalidSignature()

    order = await get_order(db, payment.order_id)
    if order.order_status == OrderStatus.CANCELLED:
        logger.warning("Rejected capture for payment %s: order %s is cancelled", payment.payment_id, order.order_id)
        raise AlreadyProcessed()
    captured_at = utc_now()

    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == PaymentRecordStatus.CREATED)
        .values(
            status=PaymentRecordStatus.CAPTURED,
            gateway_payment_id=gateway_payment_id,
            payment_time=captured_at,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyProcessed("Payment is already processed")

    payload = qr.build_payload(
        order_id=order.order_id,
        payer_name=user.name,
        college_id=user.college_id,
        items=[(line.dish_name, line.quantity) for line in order.items],
        amount=order.total_amount,
        payment_time=captured_at,
    )
    result = await db.execute(
        update(Order)
        .where(
            Order.id == order.id,
            Order.payment_status == PaymentStatus.PENDING,
            Order.order_status != OrderStatus.CANCELLED,
        )
        .values(
            payment_status=PaymentStatus.PAID,
            payment_id=payment.payment_id,
            qr_code_data=qr.serialize(payload),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyProcessed()

    await db.commit()
    await db.refresh(payment)
    await db.refresh(order)
    logger.info("Payment %s captured; order %s paid", payment.payment_id, order.order_id)
    return payment, order, payload


async def refund_payment(
    db: AsyncSession, gateway: RazorpayGateway, payment_id: str, refund_amount: float
) -> tuple[Payment, dict[str, Any]]:
    payment = await get_payment(db, payment_id)
    if payment.status != PaymentRecordStatus.CAPTURED:
        raise ConflictError("Cannot refund. Payment is not captured.")
    if refund_amount > payment.amount:
        raise ValidationError("Refund amount cannot exceed payment amount")

    refund = await gateway.refund(payment.gateway_payment_id, refund_amount)

    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == PaymentRecordStatus.CAPTURED)
        .values(
            status=PaymentRecordStatus.REFUNDED,
            refund_id=refund.get("id"),
            refund_amount=refund_amount,
            refund_time=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError("Cannot refund. Payment is not captured.")

    await db.execute(
        update(Order)
        .where(Order.order_id == payment.order_id)
        .values(payment_status=PaymentStatus.REFUNDED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(payment)
    logger.info("Refund %s of %.2f issued for payment %s", refund.get("id"), refund_amount, payment.payment_id)
    return payment, refund
