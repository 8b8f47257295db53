"""
Canteen Portal — Order schemas

Client-submitted prices on order lines are accepted but discarded; totals are
always computed from the catalog.
"""
from datetime import datetime

from pydantic import BaseModel, Field

from canteen_portal.models.order import OrderStatus, PaymentStatus


class OrderItemRequest(BaseModel):
    dish_name: str = Field(..., min_length=1, max_length=255, examples=["Masala Dosa"])
    quantity: int = Field(..., ge=1, le=100)


class OrderRequest(BaseModel):
    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=50)
    notes: str | None = Field(None, max_length=500)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    dish_name: str
    quantity: int
    price: float
    subtotal: float

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    items: list[OrderItemResponse]
    total_amount: float
    payment_status: PaymentStatus
    order_status: OrderStatus
    payment_id: str | None = None
    qr_code_data: str | None = None
    notes: str | None = None
    order_date: datetime
    served_date: datetime | None = None

    model_config = {"from_attributes": True}
