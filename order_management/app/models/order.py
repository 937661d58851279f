from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, Numeric, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import OrderManagementBase, TimestampedModel

if TYPE_CHECKING:
    from .user import User

INVOICE_COUNTER = "order_invoice_no"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Order(TimestampedModel):
    __tablename__ = "orders"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Storage keys, rendered to URLs by the image storage backend
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    invoice_no: Mapped[Optional[str]] = mapped_column(
        String(32), unique=True, nullable=True
    )
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(30), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=OrderStatus.PENDING.value, nullable=False, index=True
    )

    owner: Mapped["User"] = relationship("User", back_populates="orders")


class Counter(OrderManagementBase):
    """Named monotonically increasing sequence (invoice numbers)."""

    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
