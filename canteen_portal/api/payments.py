"""
Canteen Portal — Payment API routes
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.api.deps import gateway_dependency, get_current_user, require_capability
from canteen_portal.core import qr
from canteen_portal.core.gateway import RazorpayGateway
from canteen_portal.core.permissions import Capability, has_capability
from canteen_portal.db import payment_ops
from canteen_portal.db.database import get_db
from canteen_portal.db.pagination import paginate
from canteen_portal.models.payment import Payment, PaymentRecordStatus
from canteen_portal.models.user import User
from canteen_portal.schemas.order import OrderResponse
from canteen_portal.schemas.payment import (
    CreatePaymentRequest,
    PaymentResponse,
    RefundRequest,
    VerifyPaymentRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-order")
async def create_payment_order(
    payload: CreatePaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayGateway = Depends(gateway_dependency),
):
    """Open a gateway payment intent for one of the caller's pending orders."""
    payment, gateway_order = await payment_ops.create_payment_intent(db, gateway, user, payload.order_id)
    return {
        "message": "Payment order created successfully",
        "razorpay_order": gateway_order,
        "payment_id": payment.payment_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "key_id": gateway.key_id,
    }


@router.post("/verify")
async def verify_payment(
    payload: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayGateway = Depends(gateway_dependency),
):
    """
    Gateway checkout callback. On a valid signature the order is marked paid
    and the pickup QR is returned both as an image and as the raw payload.
    """
    payment, order, qr_payload = await payment_ops.verify_payment(
        db,
        gateway,
        user,
        payment_id=payload.payment_id,
        gateway_order_id=payload.gateway_order_id,
        gateway_payment_id=payload.gateway_payment_id,
        signature=payload.signature,
    )
    return {
        "message": "Payment verified successfully",
        "payment": PaymentResponse.model_validate(payment),
        "order": OrderResponse.model_validate(order),
        "qr_code": qr.render_data_url(order.qr_code_data),
        "qr_data": qr_payload,
    }


@router.get("/history")
async def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Payment).where(Payment.user_id == user.id).order_by(Payment.created_at.desc())
    payments, pagination = await paginate(db, stmt, page, limit)
    return {
        "message": "Payment history retrieved successfully",
        "payments": [PaymentResponse.model_validate(p) for p in payments],
        "pagination": pagination,
    }


@router.get("/manage/all")
async def list_all_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    payment_status: PaymentRecordStatus | None = Query(None, alias="status"),
    _: User = Depends(require_capability(Capability.VIEW_ALL_PAYMENTS)),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Payment).order_by(Payment.created_at.desc())
    if payment_status is not None:
        stmt = stmt.where(Payment.status == payment_status)

    payments, pagination = await paginate(db, stmt, page, limit)
    return {
        "message": "Payments retrieved successfully",
        "payments": [PaymentResponse.model_validate(p) for p in payments],
        "pagination": pagination,
    }


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    owner_id = None if has_capability(user.role, Capability.VIEW_ALL_PAYMENTS) else user.id
    payment = await payment_ops.get_payment(db, payment_id, user_id=owner_id)
    return {"message": "Payment retrieved successfully", "payment": PaymentResponse.model_validate(payment)}


@router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: str,
    payload: RefundRequest,
    user: User = Depends(require_capability(Capability.REFUND_PAYMENT)),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayGateway = Depends(gateway_dependency),
):
    payment, refund = await payment_ops.refund_payment(db, gateway, payment_id, payload.refund_amount)
    logger.info(
        "Refund on %s requested by %s: %s", payment.payment_id, user.college_id, payload.reason or "-"
    )
    return {
        "message": "Refund processed successfully",
        "refund": refund,
        "payment": PaymentResponse.model_validate(payment),
    }
