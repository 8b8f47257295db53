"""
Canteen Portal — Menu item model

A date-scoped catalog entry. available_quantity is only ever changed through
the conditional updates in db/stock_ops.py once orders start coming in.
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    String, Integer, Float, Boolean, DateTime, Text, Enum, CheckConstraint, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from canteen_portal.core.clock import start_of_day
from canteen_portal.db.database import Base
from canteen_portal.models.user import enum_values


class Category(str, PyEnum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    SNACKS = "snacks"
    DINNER = "dinner"
    BEVERAGES = "beverages"


class MenuItem(Base):
    __tablename__ = "menu_items"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_menu_items_price_non_negative"),
        CheckConstraint("available_quantity >= 0", name="ck_menu_items_quantity_non_negative"),
        Index("ix_menu_items_dish_date", "dish_name", "date"),
        Index("ix_menu_items_category_date", "category", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    dish_name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[Category] = mapped_column(
        Enum(Category, name="menu_category", values_callable=enum_values), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: start_of_day(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<MenuItem {self.dish_name} qty={self.available_quantity}>"
