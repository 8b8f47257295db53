"""
Canteen Portal — Counter staff schemas
"""
from pydantic import BaseModel, Field

from canteen_portal.models.user import Role
from canteen_portal.schemas.order import OrderResponse


class VerifyQRRequest(BaseModel):
    qr_data: str = Field(..., min_length=1)


class ConfirmOrderRequest(BaseModel):
    notes: str | None = Field(None, max_length=500)


class OrderOwner(BaseModel):
    id: str
    name: str
    college_id: str
    email: str
    role: Role

    model_config = {"from_attributes": True}


class StaffOrderView(OrderResponse):
    user: OrderOwner | None = None

    @classmethod
    def build(cls, order, owner=None) -> "StaffOrderView":
        view = OrderResponse.model_validate(order).model_dump()
        return cls(**view, user=OrderOwner.model_validate(owner) if owner else None)


class TopDish(BaseModel):
    dish_name: str
    quantity: int
    revenue: float
