from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import TimestampedModel

if TYPE_CHECKING:
    from .order import Order


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(TimestampedModel):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    role: Mapped[str] = mapped_column(
        String(20), default=Role.USER.value, nullable=False
    )
    blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    orders: Mapped[list["Order"]] = relationship(
        "Order", back_populates="owner", cascade="all, delete-orphan"
    )
