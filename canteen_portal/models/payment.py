"""
Canteen Portal — Payment model

payment_gateway_id is the gateway order (intent) id the row was created for;
gateway_payment_id is filled in when the signed capture callback arrives.
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import String, Float, DateTime, Enum, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from canteen_portal.db.database import Base
from canteen_portal.models.user import enum_values


class PaymentRecordStatus(str, PyEnum):
    CREATED = "created"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"


def generate_payment_id() -> str:
    return f"PAY_{uuid.uuid4().hex.upper()}"


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_user_created", "user_id", "created_at"),
        Index("ix_payments_status_created", "status", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payment_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False, default=generate_payment_id
    )
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.order_id"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    payment_gateway_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="INR", nullable=False)
    status: Mapped[PaymentRecordStatus] = mapped_column(
        Enum(PaymentRecordStatus, name="payment_record_status", values_callable=enum_values),
        default=PaymentRecordStatus.CREATED,
        nullable=False,
    )
    payment_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refund_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    refund_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Payment {self.payment_id} {self.status}>"
