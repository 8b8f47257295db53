"""
Canteen Portal — Payment schemas
"""
from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from canteen_portal.models.payment import PaymentRecordStatus


class CreatePaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)


class VerifyPaymentRequest(BaseModel):
    """Gateway checkout callback; accepts the raw razorpay_* field names too."""
    gateway_order_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("gateway_order_id", "razorpay_order_id")
    )
    gateway_payment_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("gateway_payment_id", "razorpay_payment_id")
    )
    signature: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("signature", "razorpay_signature")
    )
    payment_id: str = Field(..., min_length=1)


class RefundRequest(BaseModel):
    refund_amount: float = Field(..., gt=0)
    reason: str | None = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    user_id: str
    payment_gateway_id: str
    gateway_payment_id: str | None = None
    payer_name: str
    amount: float
    currency: str
    status: PaymentRecordStatus
    payment_time: datetime | None = None
    refund_id: str | None = None
    refund_amount: float | None = None
    refund_time: datetime | None = None

    model_config = {"from_attributes": True}
