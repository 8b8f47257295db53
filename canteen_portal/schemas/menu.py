"""
Canteen Portal — Menu schemas
"""
import datetime as dt

from pydantic import BaseModel, Field

from canteen_portal.models.menu import Category


class MenuItemCreate(BaseModel):
    dish_name: str = Field(..., min_length=1, max_length=255, examples=["Masala Dosa"])
    price: float = Field(..., ge=0)
    available_quantity: int = Field(..., ge=0)
    category: Category
    description: str | None = Field(None, max_length=2000)
    image_url: str | None = Field(None, max_length=1024)
    date: dt.date | None = Field(None, description="Day the dish is offered; defaults to today")


class MenuItemUpdate(BaseModel):
    dish_name: str | None = Field(None, min_length=1, max_length=255)
    price: float | None = Field(None, ge=0)
    available_quantity: int | None = Field(None, ge=0)
    category: Category | None = None
    description: str | None = Field(None, max_length=2000)
    image_url: str | None = Field(None, max_length=1024)
    is_available: bool | None = None
    date: dt.date | None = None


class MenuItemResponse(BaseModel):
    id: str
    dish_name: str
    price: float
    available_quantity: int
    category: Category
    description: str | None = None
    image_url: str | None = None
    is_available: bool
    date: dt.datetime

    model_config = {"from_attributes": True}
